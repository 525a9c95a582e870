"""CLI interface implementation using Typer."""

from itertools import islice
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from kernel_autotuner.tuning.configuration import (
    TuningConfig,
    default_tuning_config,
    load_tuning_config,
)
from kernel_autotuner.tuning.errors import SessionAbortedError, TuningError
from kernel_autotuner.tuning.generator import ConfigurationGenerator
from kernel_autotuner.tuning.leaderboard import Leaderboard
from kernel_autotuner.tuning.logging import CSVResultLogger, write_leaderboard_csv
from kernel_autotuner.tuning.runtime import ReplayKernelRuntime
from kernel_autotuner.tuning.schemas import StrategyKind, TuningReport

from .base import BaseInterface

# Configure console for better test compatibility
# Force terminal mode even in non-TTY environments
console = Console(force_terminal=True, force_interactive=False)


def _load_config(config_path: Path | None) -> TuningConfig:
    """Load a YAML configuration or fall back to the GEMM example."""
    if config_path is None:
        return default_tuning_config()
    try:
        return load_tuning_config(config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc)) from exc


def _resolve_strategy(strategy: str | None) -> StrategyKind | None:
    """Convert CLI input into a :class:`StrategyKind`."""
    if strategy is None:
        return None
    try:
        return StrategyKind(strategy.strip().lower())
    except ValueError as exc:
        choices = ", ".join(kind.value for kind in StrategyKind)
        message = f"Strategy must be one of: {choices}."
        raise typer.BadParameter(message) from exc


def _leaderboard_table(report: TuningReport, limit: int) -> Table:
    """Render the ranked entries of a report as a rich table."""
    entries = report.leaderboard[:limit]
    names = list(entries[0].parameters) if entries else []
    table = Table(title="Leaderboard")
    table.add_column("Rank", justify="right")
    table.add_column("Time (ms)", justify="right")
    for name in names:
        table.add_column(name, justify="right")
    for entry in entries:
        table.add_row(
            str(entry.rank),
            f"{entry.elapsed_ms:.3f}",
            *(str(entry.parameters[name]) for name in names),
        )
    return table


def _display_report(report: TuningReport, limit: int) -> None:
    """Render a session report to the console."""
    console.print(
        f"Ran {report.iterations} iterations "
        f"({len(report.results)} measured, stop reason: {report.stop_reason.value}).",
    )
    counts = ", ".join(f"{status}={count}" for status, count in report.status_counts().items())
    console.print(f"Results by status: {counts}")
    best = report.best
    if best is None:
        console.print("No valid configurations were recorded.")
    else:
        console.print(f"Best time: {best.elapsed_ms:.3f} ms")
        console.print(f"Best parameters: {best.parameters}")
        console.print(_leaderboard_table(report, limit))
    console.file.flush()


INSPECT_CONFIG_ARGUMENT = typer.Argument(
    None,
    help="YAML tuning configuration. Defaults to the GEMM example space.",
)
INSPECT_LIMIT_OPTION = typer.Option(
    10,
    "--limit",
    "-l",
    min=0,
    help="Number of valid configurations to list.",
)

SIMULATE_CONFIG_ARGUMENT = typer.Argument(
    None,
    help="YAML tuning configuration. Defaults to the GEMM example space.",
)
SIMULATE_TIMINGS_OPTION = typer.Option(
    ...,
    "--timings",
    "-t",
    help="JSON or CSV file with recorded timings per configuration.",
)
SIMULATE_STRATEGY_OPTION = typer.Option(
    None,
    "--strategy",
    "-s",
    help="Search strategy (full, random, annealing or pso).",
)
SIMULATE_MAX_ITERATIONS_OPTION = typer.Option(
    None,
    "--max-iterations",
    "-n",
    min=1,
    help="Maximum number of pipeline iterations.",
)
SIMULATE_SEED_OPTION = typer.Option(
    None,
    "--seed",
    help="Random seed for stochastic strategies.",
)
SIMULATE_OUTPUT_OPTION = typer.Option(
    None,
    "--output",
    "-o",
    help="Write the ranked leaderboard to this CSV file.",
)
SIMULATE_LOG_OPTION = typer.Option(
    None,
    "--results-log",
    help="Append every execution result to this CSV file.",
)
SIMULATE_TOP_OPTION = typer.Option(
    10,
    "--top",
    min=1,
    help="Number of leaderboard rows to print.",
)


class CLIInterface(BaseInterface):
    """Command Line Interface implementation."""

    def __init__(self) -> None:
        """Initialize the CLI interface."""
        super().__init__()
        self.app = typer.Typer(
            name="kernel-autotuner",
            help="Kernel auto-tuning CLI",
            add_completion=False,
            no_args_is_help=True,
        )
        self._setup_commands()

    @property
    def name(self) -> str:
        """Get the interface name.

        Returns:
            str: The interface name

        """
        return "CLI"

    def _setup_commands(self) -> None:
        """Set up CLI commands."""
        self.app.command(name="inspect-space")(self.inspect_space)
        self.app.command(name="simulate")(self.simulate)

    def inspect_space(
        self,
        config_path: Path | None = INSPECT_CONFIG_ARGUMENT,
        limit: int = INSPECT_LIMIT_OPTION,
    ) -> None:
        """Summarise a parameter space and list its first valid configurations."""
        tuning_config = _load_config(config_path)
        try:
            space = tuning_config.build_space()
        except TuningError as exc:
            raise typer.BadParameter(str(exc)) from exc

        generator = ConfigurationGenerator(space)
        console.print(f"Parameters: {len(space)}")
        console.print(f"Constraints: {len(space.constraints)}")
        console.print(f"Cartesian size: {space.cartesian_size()}")
        console.print(f"Valid configurations: {generator.count()}")
        for configuration in islice(generator, limit):
            console.print(f" - {configuration.describe()}")
        console.file.flush()

    def simulate(  # noqa: PLR0913
        self,
        config_path: Path | None = SIMULATE_CONFIG_ARGUMENT,
        timings: Path = SIMULATE_TIMINGS_OPTION,
        strategy: str | None = SIMULATE_STRATEGY_OPTION,
        max_iterations: int | None = SIMULATE_MAX_ITERATIONS_OPTION,
        seed: int | None = SIMULATE_SEED_OPTION,
        output: Path | None = SIMULATE_OUTPUT_OPTION,
        results_log: Path | None = SIMULATE_LOG_OPTION,
        top: int = SIMULATE_TOP_OPTION,
    ) -> None:
        """Replay recorded timings through a search strategy."""
        tuning_config = _load_config(config_path)
        overrides: dict[str, object] = {}
        strategy_kind = _resolve_strategy(strategy)
        if strategy_kind is not None:
            overrides["strategy"] = strategy_kind
        if max_iterations is not None:
            overrides["max_iterations"] = max_iterations
        if seed is not None:
            overrides["random_seed"] = seed
        if overrides:
            tuning_config = tuning_config.model_copy(
                update={"run": tuning_config.run.model_copy(update=overrides)},
            )

        try:
            runtime = ReplayKernelRuntime.from_file(timings)
        except (FileNotFoundError, ValueError) as exc:
            raise typer.BadParameter(str(exc)) from exc

        result_logger = CSVResultLogger(results_log) if results_log is not None else None

        from kernel_autotuner.app import run_tuning_session

        try:
            report = run_tuning_session(
                tuning_config,
                runtime,
                result_logger=result_logger,
            )
        except SessionAbortedError as exc:
            console.print(f"Session aborted: {exc}")
            _display_report(exc.report, top)
            raise typer.Exit(1) from exc
        except TuningError as exc:
            console.print(f"Tuning failed: {exc}")
            raise typer.Exit(1) from exc

        _display_report(report, top)

        if output is not None:
            board = Leaderboard(result for result in report.results if result.succeeded)
            written = write_leaderboard_csv(board, output)
            console.print(f"Leaderboard written to {written}")
            console.file.flush()

    def run(self) -> None:
        """Run the CLI interface."""
        self.app()


def main() -> None:
    """Console script entry point."""
    from kernel_autotuner.app import run_app

    run_app()


__all__ = ["CLIInterface", "main"]
