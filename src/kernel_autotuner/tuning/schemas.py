"""Pydantic schemas for tuning runs, execution results and reports."""

from __future__ import annotations

import math
from collections import Counter
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    model_validator,
)

from .space import Configuration


class ExecutionStatus(str, Enum):
    """Outcome of dispatching one configuration to the kernel runtime."""

    VALID = "valid"
    COMPILE_FAILED = "compile_failed"
    LAUNCH_FAILED = "launch_failed"
    CORRECTNESS_FAILED = "correctness_failed"


class StrategyKind(str, Enum):
    """Available search strategies."""

    FULL = "full"
    RANDOM = "random"
    ANNEALING = "annealing"
    PSO = "pso"


class StopReason(str, Enum):
    """Why a tuning session ended."""

    STRATEGY_FINISHED = "strategy_finished"
    ITERATION_BUDGET = "iteration_budget"
    TIME_BUDGET = "time_budget"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


class ExecutionResult(BaseModel):
    """Immutable record of one attempted configuration."""

    configuration: Configuration = Field(
        description="Configuration that was compiled and launched",
    )
    status: ExecutionStatus = Field(description="Outcome of the attempt")
    elapsed_ms: float | None = Field(
        default=None,
        ge=0,
        description="Measured kernel time; required for valid results",
    )
    detail: str | None = Field(
        default=None,
        description="Error message or verification detail",
    )
    sequence: int = Field(
        default=0,
        ge=0,
        description="Zero-based position of the attempt within its session",
    )

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def _require_time_for_valid(self) -> ExecutionResult:
        """Valid results must carry a measured time."""
        if self.status is ExecutionStatus.VALID and self.elapsed_ms is None:
            msg = "Valid execution results require elapsed_ms"
            raise ValueError(msg)
        return self

    @field_serializer("configuration")
    def _serialize_configuration(self, configuration: Configuration) -> dict[str, int]:
        """Serialise configurations as plain mappings."""
        return configuration.as_dict()

    @property
    def succeeded(self) -> bool:
        """Whether the attempt produced a valid, verified timing."""
        return self.status is ExecutionStatus.VALID

    @property
    def fitness(self) -> float:
        """Elapsed time for valid results, ``inf`` otherwise (lower is better)."""
        if self.status is ExecutionStatus.VALID and self.elapsed_ms is not None:
            return self.elapsed_ms
        return math.inf

    @property
    def parameters(self) -> dict[str, int]:
        """Plain parameter-value mapping."""
        return self.configuration.as_dict()


class LeaderboardEntry(BaseModel):
    """Ranked row exposed to result consumers."""

    rank: int = Field(ge=1, description="One-based rank, 1 is fastest")
    parameters: dict[str, int] = Field(description="Parameter-value mapping")
    elapsed_ms: float = Field(ge=0, description="Measured kernel time")
    status: ExecutionStatus = Field(default=ExecutionStatus.VALID)

    model_config = ConfigDict(frozen=True)


class TuningRunConfig(BaseModel):
    """Configuration controlling one tuning session."""

    strategy: StrategyKind = Field(
        default=StrategyKind.FULL,
        description="Search strategy used for the session",
    )
    max_iterations: int | None = Field(
        default=None,
        gt=0,
        description="Optional bound on the number of pipeline iterations",
    )
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Optional wall-clock budget for the session",
    )
    random_seed: int | None = Field(
        default=None,
        description="Seed passed to stochastic strategies and sampling",
    )
    tolerance: float = Field(
        default=1e-4,
        ge=0,
        description="Tolerance forwarded to the runtime's output comparison",
    )
    strategy_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword arguments for the strategy constructor",
    )

    model_config = ConfigDict(extra="forbid")


class TuningReport(BaseModel):
    """Aggregate outcome of a tuning session."""

    results: list[ExecutionResult] = Field(
        default_factory=list,
        description="Chronological record of every attempted configuration",
    )
    leaderboard: list[LeaderboardEntry] = Field(
        default_factory=list,
        description="Valid results ordered by ascending elapsed time",
    )
    stop_reason: StopReason = Field(description="Why the session ended")
    iterations: int = Field(default=0, ge=0, description="Pipeline iterations run")
    elapsed_seconds: float = Field(default=0.0, ge=0, description="Session wall time")

    @property
    def best(self) -> LeaderboardEntry | None:
        """Fastest valid entry, if any."""
        return self.leaderboard[0] if self.leaderboard else None

    def status_counts(self) -> dict[str, int]:
        """Number of results per status."""
        counts = Counter(result.status.value for result in self.results)
        return {status.value: counts.get(status.value, 0) for status in ExecutionStatus}


__all__ = [
    "ExecutionResult",
    "ExecutionStatus",
    "LeaderboardEntry",
    "StopReason",
    "StrategyKind",
    "TuningReport",
    "TuningRunConfig",
]
