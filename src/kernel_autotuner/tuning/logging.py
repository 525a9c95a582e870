"""Result logging utilities for capturing tuning progress."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .leaderboard import Leaderboard
    from .schemas import ExecutionResult

_RESULT_FIELDS = ("timestamp", "sequence", "status", "elapsed_ms", "detail")
_LEADERBOARD_FIELDS = ("rank", "elapsed_ms", "status")


class ResultLogger(Protocol):
    """Protocol describing per-result logging behaviour."""

    def record(self, *, result: ExecutionResult) -> None:
        """Persist information about one execution result."""


@dataclass
class CSVResultLogger:
    """Append execution results to a CSV file for offline analysis.

    Parameter names become columns. They are fixed from the first result,
    or from ``parameter_names`` when given.
    """

    path: Path | str
    parameter_names: Sequence[str] | None = None
    include_header: bool = True

    def __post_init__(self) -> None:
        """Initialise internal state for CSV persistence."""
        self._path = Path(self.path)
        self._header_written = False
        self._fieldnames: list[str] | None = (
            [*_RESULT_FIELDS, *self.parameter_names]
            if self.parameter_names is not None
            else None
        )

    def record(self, *, result: ExecutionResult) -> None:
        """Build a CSV row from the result and append it to the log."""
        if self._fieldnames is None:
            self._fieldnames = [*_RESULT_FIELDS, *result.configuration]
        self._write_row(self._build_row(result))

    def _build_row(self, result: ExecutionResult) -> dict[str, object]:
        row: dict[str, object] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "sequence": result.sequence,
            "status": result.status.value,
            "elapsed_ms": "" if result.elapsed_ms is None else result.elapsed_ms,
            "detail": result.detail or "",
        }
        row.update(result.parameters)
        return row

    def _write_row(self, row: dict[str, object]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        write_header = False
        if self.include_header and not self._header_written:
            if not self._path.exists() or self._path.stat().st_size == 0:
                write_header = True
            self._header_written = True

        with self._path.open("a", newline="", encoding="utf-8") as handle:
            writer = csv.DictWriter(
                handle,
                fieldnames=self._fieldnames or list(row),
                extrasaction="ignore",
            )
            if write_header:
                writer.writeheader()
            writer.writerow(row)


def write_leaderboard_csv(leaderboard: Leaderboard, path: Path | str) -> Path:
    """Write the ranked leaderboard to ``path`` and return the path."""
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    entries = leaderboard.entries()
    parameter_names: list[str] = list(entries[0].parameters) if entries else []

    with output.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(
            handle,
            fieldnames=[*_LEADERBOARD_FIELDS, *parameter_names],
        )
        writer.writeheader()
        for entry in entries:
            writer.writerow(
                {
                    "rank": entry.rank,
                    "elapsed_ms": entry.elapsed_ms,
                    "status": entry.status.value,
                    **entry.parameters,
                },
            )
    return output


__all__ = ["CSVResultLogger", "ResultLogger", "write_leaderboard_csv"]
