"""Orchestration of compile, launch, measure and verify cycles."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from kernel_autotuner.base import BaseComponent

from .errors import (
    CompileError,
    KernelRuntimeError,
    LaunchError,
    ReferenceKernelError,
    SessionAbortedError,
)
from .generator import DEFAULT_MAX_SAMPLING_ATTEMPTS, ConfigurationGenerator
from .leaderboard import Leaderboard
from .schemas import (
    ExecutionResult,
    ExecutionStatus,
    StopReason,
    TuningReport,
    TuningRunConfig,
)

if TYPE_CHECKING:
    from .logging import ResultLogger
    from .runtime import KernelArgument, KernelRuntime, KernelSpec, ReferenceKernel
    from .space import Configuration, ParameterSpace
    from .strategies import SearchStrategy


class TuningPipeline(BaseComponent):
    """Drive one search strategy against one kernel runtime.

    Configurations run strictly one after another. A failure tied to one
    configuration is recorded and the loop continues. A reference kernel
    that fails to compile or launch raises :class:`ReferenceKernelError`
    before anything is measured. Any other exception, from the reference
    run or the loop, aborts the session with :class:`SessionAbortedError`,
    which carries the report collected so far.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        kernel_runtime: KernelRuntime,
        strategy: SearchStrategy,
        kernel: KernelSpec,
        arguments: Sequence[KernelArgument] = (),
        reference: ReferenceKernel | None = None,
        result_logger: ResultLogger | None = None,
        max_sampling_attempts: int = DEFAULT_MAX_SAMPLING_ATTEMPTS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Wire the pipeline to its collaborators."""
        super().__init__()
        self._runtime = kernel_runtime
        self._strategy = strategy
        self._kernel = kernel
        self._arguments = tuple(arguments)
        self._reference = reference
        self._result_logger = result_logger
        self._max_sampling_attempts = max_sampling_attempts
        self._clock = clock
        self._stop_requested = threading.Event()
        self._leaderboard = Leaderboard()
        self._results: list[ExecutionResult] = []
        self._memo: dict[Configuration, ExecutionResult] = {}

    @property
    def leaderboard(self) -> Leaderboard:
        """Valid results ranked by elapsed time."""
        return self._leaderboard

    @property
    def results(self) -> tuple[ExecutionResult, ...]:
        """Every result produced in the current session, in order."""
        return tuple(self._results)

    def stop(self) -> None:
        """Ask the running session to stop before its next iteration."""
        self._stop_requested.set()

    def run(
        self,
        space: ParameterSpace,
        config: TuningRunConfig | None = None,
    ) -> TuningReport:
        """Run a tuning session over ``space`` and return its report."""
        active_config = config or TuningRunConfig()
        self._leaderboard = Leaderboard()
        self._results = []
        self._memo = {}
        self._stop_requested.clear()

        generator = ConfigurationGenerator(
            space,
            max_sampling_attempts=self._max_sampling_attempts,
            seed=active_config.random_seed,
        )
        self._strategy.initialize(generator)

        started = self._clock()
        iterations = 0
        stop_reason = StopReason.STRATEGY_FINISHED

        self.logger.info(
            "Starting tuning session",
            kernel=self._kernel.entry_point,
            strategy=active_config.strategy.value,
            parameters=len(space),
            cartesian_size=space.cartesian_size(),
            max_iterations=active_config.max_iterations,
            timeout_seconds=active_config.timeout_seconds,
        )

        try:
            reference_outputs = self._run_reference()
            while self._strategy.has_next():
                budget_reason = self._budget_exhausted(active_config, iterations, started)
                if budget_reason is not None:
                    stop_reason = budget_reason
                    break

                configuration = self._strategy.next()
                result = self._memo.get(configuration)
                if result is None:
                    result = self._execute(
                        configuration,
                        sequence=len(self._results),
                        reference_outputs=reference_outputs,
                        tolerance=active_config.tolerance,
                    )
                    self._accept(result)
                else:
                    self.logger.debug(
                        "Reusing measured configuration",
                        configuration=configuration.describe(),
                    )
                self._strategy.record(result)
                iterations += 1
        except ReferenceKernelError:
            raise
        except Exception as exc:
            report = self._report(StopReason.ABORTED, iterations, started)
            self.logger.error(
                "Tuning session aborted",
                error=str(exc),
                error_type=type(exc).__name__,
                iterations=iterations,
                valid_results=len(self._leaderboard),
            )
            msg = f"Tuning session aborted: {exc}"
            raise SessionAbortedError(msg, report) from exc

        report = self._report(stop_reason, iterations, started)
        best = report.best
        self.logger.info(
            "Finished tuning session",
            stop_reason=stop_reason.value,
            iterations=iterations,
            results=len(report.results),
            valid_results=len(report.leaderboard),
            best_ms=best.elapsed_ms if best else None,
            best_parameters=best.parameters if best else None,
        )
        return report

    def _budget_exhausted(
        self,
        config: TuningRunConfig,
        iterations: int,
        started: float,
    ) -> StopReason | None:
        """Check cancellation and the global budgets once per iteration."""
        if self._stop_requested.is_set():
            return StopReason.CANCELLED
        if config.max_iterations is not None and iterations >= config.max_iterations:
            return StopReason.ITERATION_BUDGET
        if (
            config.timeout_seconds is not None
            and self._clock() - started >= config.timeout_seconds
        ):
            return StopReason.TIME_BUDGET
        return None

    def _run_reference(self) -> Sequence[Any] | None:
        """Establish ground-truth outputs when a reference kernel is set."""
        reference = self._reference
        if reference is None:
            return None
        try:
            outputs = self._runtime.run_reference(
                reference.source,
                reference.entry_point,
                reference.global_size,
                reference.local_size,
                self._arguments,
            )
        except KernelRuntimeError as exc:
            msg = f"Reference kernel '{reference.entry_point}' failed: {exc}"
            raise ReferenceKernelError(msg) from exc
        self.logger.info("Reference outputs captured", kernel=reference.entry_point)
        return outputs

    def _execute(
        self,
        configuration: Configuration,
        *,
        sequence: int,
        reference_outputs: Sequence[Any] | None,
        tolerance: float,
    ) -> ExecutionResult:
        """Run one configuration and wrap the outcome."""
        try:
            geometry = self._kernel.launch_geometry(configuration)
            outcome = self._runtime.compile_and_launch(
                self._kernel.source,
                self._kernel.entry_point,
                geometry.global_size,
                geometry.local_size,
                self._arguments,
                configuration,
            )
        except CompileError as exc:
            return ExecutionResult(
                configuration=configuration,
                status=ExecutionStatus.COMPILE_FAILED,
                detail=str(exc),
                sequence=sequence,
            )
        except LaunchError as exc:
            return ExecutionResult(
                configuration=configuration,
                status=ExecutionStatus.LAUNCH_FAILED,
                detail=str(exc),
                sequence=sequence,
            )

        if reference_outputs is not None and not self._runtime.compare(
            outcome.outputs,
            reference_outputs,
            tolerance,
        ):
            return ExecutionResult(
                configuration=configuration,
                status=ExecutionStatus.CORRECTNESS_FAILED,
                elapsed_ms=outcome.elapsed_ms,
                detail=f"Outputs differ from reference beyond tolerance {tolerance}",
                sequence=sequence,
            )

        return ExecutionResult(
            configuration=configuration,
            status=ExecutionStatus.VALID,
            elapsed_ms=outcome.elapsed_ms,
            detail="verified" if reference_outputs is not None else None,
            sequence=sequence,
        )

    def _accept(self, result: ExecutionResult) -> None:
        """Store a fresh result, rank it and forward it to the result logger."""
        self._results.append(result)
        self._memo[result.configuration] = result
        if result.succeeded:
            self._leaderboard.add(result)

        self.logger.info(
            "Completed tuning iteration",
            sequence=result.sequence,
            configuration=result.configuration.describe(),
            status=result.status.value,
            elapsed_ms=result.elapsed_ms,
        )

        if self._result_logger is not None:
            try:
                self._result_logger.record(result=result)
            except Exception as exc:  # noqa: BLE001 - result logging is best effort
                self.logger.warning(
                    "Failed to log result",
                    sequence=result.sequence,
                    error=str(exc),
                )

    def _report(self, stop_reason: StopReason, iterations: int, started: float) -> TuningReport:
        return TuningReport(
            results=list(self._results),
            leaderboard=self._leaderboard.entries(),
            stop_reason=stop_reason,
            iterations=iterations,
            elapsed_seconds=max(self._clock() - started, 0.0),
        )


__all__ = ["TuningPipeline"]
