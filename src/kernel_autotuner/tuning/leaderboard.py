"""Ranked collection of valid execution results."""

from __future__ import annotations

import bisect
from collections.abc import Iterator
from typing import TYPE_CHECKING

from .schemas import ExecutionResult, ExecutionStatus, LeaderboardEntry

if TYPE_CHECKING:
    from collections.abc import Iterable


class Leaderboard:
    """Valid results ordered by ascending elapsed time.

    Ties keep insertion order, so the earlier measurement ranks first.
    """

    def __init__(self, results: Iterable[ExecutionResult] = ()) -> None:
        """Create a leaderboard, optionally seeded with results."""
        self._keys: list[tuple[float, int]] = []
        self._results: list[ExecutionResult] = []
        self._inserted = 0
        for result in results:
            self.add(result)

    def add(self, result: ExecutionResult) -> int:
        """Insert a valid result and return its zero-based position."""
        if result.status is not ExecutionStatus.VALID or result.elapsed_ms is None:
            msg = f"Only valid results can be ranked, got {result.status.value}"
            raise ValueError(msg)
        key = (result.elapsed_ms, self._inserted)
        self._inserted += 1
        position = bisect.bisect_right(self._keys, key)
        self._keys.insert(position, key)
        self._results.insert(position, result)
        return position

    def best(self) -> ExecutionResult | None:
        """Fastest result, if any."""
        return self._results[0] if self._results else None

    def top(self, count: int) -> list[ExecutionResult]:
        """The ``count`` fastest results."""
        return self._results[: max(count, 0)]

    def entries(self) -> list[LeaderboardEntry]:
        """Ranked rows for reporting."""
        return [
            LeaderboardEntry(
                rank=rank,
                parameters=result.parameters,
                elapsed_ms=float(result.elapsed_ms or 0.0),
                status=result.status,
            )
            for rank, result in enumerate(self._results, start=1)
        ]

    @classmethod
    def merge(cls, *boards: Leaderboard) -> Leaderboard:
        """Combine leaderboards from independent sessions into one ranking."""
        merged = cls()
        for board in boards:
            for result in board:
                merged.add(result)
        return merged

    def __iter__(self) -> Iterator[ExecutionResult]:
        """Iterate from fastest to slowest."""
        return iter(list(self._results))

    def __len__(self) -> int:
        """Number of ranked results."""
        return len(self._results)

    def __bool__(self) -> bool:
        """Whether any valid result has been ranked."""
        return bool(self._results)


__all__ = ["Leaderboard"]
