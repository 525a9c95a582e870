"""Application builder for the kernel autotuner.

This module wires settings, logging and the tuning pipeline together and
exposes helpers for running complete tuning sessions.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from kernel_autotuner.interfaces.cli import CLIInterface
from kernel_autotuner.tuning.leaderboard import Leaderboard
from kernel_autotuner.tuning.pipeline import TuningPipeline
from kernel_autotuner.tuning.schemas import StrategyKind, TuningReport, TuningRunConfig
from kernel_autotuner.tuning.strategies import (
    FullSearch,
    ParticleSwarm,
    RandomSearch,
    SearchStrategy,
    SimulatedAnnealing,
)
from kernel_autotuner.utils.logger import configure_logging, get_logger
from kernel_autotuner.utils.settings import TunerSettings, get_settings

if TYPE_CHECKING:
    from kernel_autotuner.tuning.configuration import TuningConfig
    from kernel_autotuner.tuning.logging import ResultLogger
    from kernel_autotuner.tuning.runtime import (
        KernelArgument,
        KernelRuntime,
        KernelSpec,
        ReferenceKernel,
    )


class Application:
    """Main application class that orchestrates components."""

    def __init__(self, dotenv_path: Path | None = None) -> None:
        """Initialize the application.

        Args:
            dotenv_path: Optional path to .env file to load

        """
        if dotenv_path:
            load_dotenv(dotenv_path, override=True)
        else:
            load_dotenv(override=True)

        settings = get_settings()
        configure_logging(
            log_level=settings.log_level,
            log_format=settings.log_format,
            log_file=settings.log_file_path,
        )
        self.logger = get_logger(__name__)
        self.settings = settings
        self.interface = CLIInterface()

        self.logger.info(
            "Application initialized",
            interface=self.interface.name,
            settings=settings.model_dump(),
            dotenv_loaded=str(dotenv_path) if dotenv_path else "default",
        )

    def run(self) -> None:
        """Run the application."""
        self.logger.info("Starting application", interface=self.interface.name)

        try:
            self.interface.run()
        except Exception as e:
            self.logger.error("Application error", error=str(e))
            raise
        finally:
            self.logger.info("Application shutting down")


def build_strategy(
    run_config: TuningRunConfig,
    *,
    settings: TunerSettings | None = None,
) -> SearchStrategy:
    """Instantiate the search strategy selected by ``run_config``.

    ``strategy_options`` are passed to the strategy constructor. Random
    search defaults to the whole valid space and annealing takes its
    perturbation bound from the process settings.
    """
    active_settings = settings or get_settings()
    options: dict[str, Any] = dict(run_config.strategy_options)
    seed = run_config.random_seed

    match run_config.strategy:
        case StrategyKind.FULL:
            return FullSearch(**options)
        case StrategyKind.RANDOM:
            if "max_draws" not in options and "fraction" not in options:
                options["fraction"] = 1.0
            return RandomSearch(seed=seed, **options)
        case StrategyKind.ANNEALING:
            options.setdefault(
                "max_perturbation_attempts",
                active_settings.max_perturbation_attempts,
            )
            return SimulatedAnnealing(seed=seed, **options)
        case StrategyKind.PSO:
            return ParticleSwarm(seed=seed, **options)

    msg = f"Unsupported strategy: {run_config.strategy}"  # pragma: no cover
    raise ValueError(msg)  # pragma: no cover


def create_tuning_pipeline(  # noqa: PLR0913
    *,
    kernel_runtime: KernelRuntime,
    kernel: KernelSpec,
    run_config: TuningRunConfig | None = None,
    strategy: SearchStrategy | None = None,
    arguments: Sequence[KernelArgument] = (),
    reference: ReferenceKernel | None = None,
    result_logger: ResultLogger | None = None,
    settings: TunerSettings | None = None,
) -> TuningPipeline:
    """Construct a configured tuning pipeline."""
    active_settings = settings or get_settings()
    selected_strategy = strategy or build_strategy(
        run_config or TuningRunConfig(),
        settings=active_settings,
    )
    return TuningPipeline(
        kernel_runtime=kernel_runtime,
        strategy=selected_strategy,
        kernel=kernel,
        arguments=arguments,
        reference=reference,
        result_logger=result_logger,
        max_sampling_attempts=active_settings.max_sampling_attempts,
    )


def run_tuning_session(  # noqa: PLR0913
    tuning_config: TuningConfig,
    kernel_runtime: KernelRuntime,
    *,
    arguments: Sequence[KernelArgument] = (),
    reference: ReferenceKernel | None = None,
    result_logger: ResultLogger | None = None,
    settings: TunerSettings | None = None,
) -> TuningReport:
    """Execute a full tuning session for the provided configuration."""
    space = tuning_config.build_space()
    pipeline = create_tuning_pipeline(
        kernel_runtime=kernel_runtime,
        kernel=tuning_config.build_kernel_spec(),
        run_config=tuning_config.run,
        arguments=arguments,
        reference=reference or tuning_config.build_reference(),
        result_logger=result_logger,
        settings=settings,
    )
    return pipeline.run(space, tuning_config.run)


def merge_leaderboards(*boards: Leaderboard) -> Leaderboard:
    """Combine leaderboards from independent sessions into one ranking."""
    return Leaderboard.merge(*boards)


def create_app(dotenv_path: Path | None = None) -> Application:
    """Create an application instance.

    Args:
        dotenv_path: Optional path to .env file to load

    Returns:
        Application: Configured application instance

    """
    return Application(dotenv_path=dotenv_path)


def run_app(dotenv_path: Path | None = None) -> None:
    """Create and run the application.

    Args:
        dotenv_path: Optional path to .env file to load

    """
    app = create_app(dotenv_path=dotenv_path)
    app.run()


__all__ = [
    "Application",
    "build_strategy",
    "create_app",
    "create_tuning_pipeline",
    "merge_leaderboards",
    "run_app",
    "run_tuning_session",
]
