"""Tests for tuning schemas."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from kernel_autotuner.tuning.schemas import (
    ExecutionResult,
    ExecutionStatus,
    StopReason,
    TuningReport,
    TuningRunConfig,
)
from kernel_autotuner.tuning.space import Configuration


def test_valid_results_require_a_time() -> None:
    """A valid status without a measurement is rejected."""
    with pytest.raises(ValidationError):
        ExecutionResult(configuration=Configuration([("A", 1)]), status=ExecutionStatus.VALID)


def test_fitness_and_serialisation() -> None:
    """Failures have infinite fitness; configurations dump as mappings."""
    configuration = Configuration([("A", 1), ("B", 2)])
    valid = ExecutionResult(configuration=configuration, status="valid", elapsed_ms=1.5)  # type: ignore[arg-type]
    failed = ExecutionResult(
        configuration=configuration,
        status=ExecutionStatus.CORRECTNESS_FAILED,
        elapsed_ms=0.5,
    )

    assert valid.fitness == 1.5
    assert valid.succeeded is True
    assert math.isinf(failed.fitness)
    assert valid.model_dump()["configuration"] == {"A": 1, "B": 2}
    assert valid.parameters == {"A": 1, "B": 2}


def test_configuration_field_requires_instances() -> None:
    """Plain dictionaries are not configurations."""
    with pytest.raises(ValidationError):
        ExecutionResult(configuration={"A": 1}, status=ExecutionStatus.LAUNCH_FAILED)  # type: ignore[arg-type]


def test_run_config_validation() -> None:
    """Budgets must be positive and unknown fields are forbidden."""
    assert TuningRunConfig().tolerance == 1e-4
    with pytest.raises(ValidationError):
        TuningRunConfig(max_iterations=0)
    with pytest.raises(ValidationError):
        TuningRunConfig(retries=3)  # type: ignore[call-arg]


def test_report_status_counts_cover_every_status() -> None:
    """Counts include statuses that never occurred."""
    report = TuningReport(
        results=[
            ExecutionResult(
                configuration=Configuration([("A", 1)]),
                status=ExecutionStatus.LAUNCH_FAILED,
            ),
        ],
        stop_reason=StopReason.STRATEGY_FINISHED,
    )

    assert report.status_counts() == {
        "valid": 0,
        "compile_failed": 0,
        "launch_failed": 1,
        "correctness_failed": 0,
    }
    assert report.best is None
