"""Tests for the ranked leaderboard."""

from __future__ import annotations

import pytest

from kernel_autotuner.tuning.leaderboard import Leaderboard
from kernel_autotuner.tuning.schemas import ExecutionResult, ExecutionStatus
from kernel_autotuner.tuning.space import Configuration


def _valid(value: int, elapsed_ms: float, sequence: int = 0) -> ExecutionResult:
    return ExecutionResult(
        configuration=Configuration([("BS", value)]),
        status=ExecutionStatus.VALID,
        elapsed_ms=elapsed_ms,
        sequence=sequence,
    )


def test_results_are_ranked_by_time() -> None:
    """The fastest result is ranked first."""
    board = Leaderboard([_valid(1, 10.0), _valid(2, 5.0), _valid(4, 2.5)])

    entries = board.entries()

    assert [entry.parameters["BS"] for entry in entries] == [4, 2, 1]
    assert [entry.rank for entry in entries] == [1, 2, 3]
    assert board.best() is not None
    assert board.best().elapsed_ms == 2.5  # type: ignore[union-attr]


def test_ties_keep_insertion_order() -> None:
    """Equal times rank the earlier measurement first."""
    board = Leaderboard()
    board.add(_valid(1, 3.0))
    board.add(_valid(2, 3.0))
    board.add(_valid(4, 1.0))

    assert [result.configuration["BS"] for result in board] == [4, 1, 2]


def test_only_valid_results_are_accepted() -> None:
    """Failed results cannot be ranked."""
    board = Leaderboard()
    failed = ExecutionResult(
        configuration=Configuration([("BS", 1)]),
        status=ExecutionStatus.LAUNCH_FAILED,
        detail="launch failure",
    )

    with pytest.raises(ValueError, match="launch_failed"):
        board.add(failed)
    assert len(board) == 0
    assert not board


def test_top_and_empty_board() -> None:
    """``top`` slices the ranking; an empty board has no best."""
    board = Leaderboard([_valid(1, 4.0), _valid(2, 1.0), _valid(4, 2.0)])

    assert [result.elapsed_ms for result in board.top(2)] == [1.0, 2.0]
    assert board.top(0) == []
    assert Leaderboard().best() is None
    assert Leaderboard().entries() == []


def test_merge_combines_independent_sessions() -> None:
    """Merging interleaves entries from several boards by time."""
    first = Leaderboard([_valid(1, 4.0), _valid(2, 1.0)])
    second = Leaderboard([_valid(4, 2.0), _valid(8, 0.5)])

    merged = Leaderboard.merge(first, second)

    assert [result.elapsed_ms for result in merged] == [0.5, 1.0, 2.0, 4.0]
    assert len(first) == 2
    assert len(second) == 2
