"""Kernel runtime contract and host-side launch helpers.

The tuning pipeline never talks to a device directly. It hands each
configuration to a :class:`KernelRuntime`, which compiles, launches and
times the kernel and can compare its outputs against a reference run.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, cast

from .errors import CompileError, LaunchError
from .schemas import ExecutionStatus


class ArgumentKind(str, Enum):
    """How a kernel argument is bound."""

    SCALAR = "scalar"
    INPUT = "input"
    OUTPUT = "output"


class SizeTarget(str, Enum):
    """Which launch size a modifier applies to."""

    GLOBAL = "global"
    LOCAL = "local"


class SizeAction(str, Enum):
    """Arithmetic applied by a modifier."""

    MULTIPLY = "multiply"
    DIVIDE = "divide"


@dataclass(frozen=True, slots=True)
class KernelArgument:
    """One positional kernel argument."""

    name: str
    value: Any
    kind: ArgumentKind = ArgumentKind.SCALAR


@dataclass(frozen=True, slots=True)
class ThreadSizeModifier:
    """Scale a launch size by parameter values, one entry per dimension.

    ``None`` leaves that dimension unchanged.
    """

    target: SizeTarget
    action: SizeAction
    parameters: tuple[str | None, ...]

    def apply(self, sizes: tuple[int, ...], configuration: Mapping[str, int]) -> tuple[int, ...]:
        """Return the modified sizes."""
        if len(self.parameters) > len(sizes):
            msg = (
                f"{self.target.value} size has {len(sizes)} dimension(s) but the "
                f"modifier names {len(self.parameters)}"
            )
            raise ValueError(msg)
        modified = list(sizes)
        for dimension, name in enumerate(self.parameters):
            if name is None:
                continue
            factor = int(configuration[name])
            if self.action is SizeAction.MULTIPLY:
                modified[dimension] *= factor
                continue
            if factor == 0 or modified[dimension] % factor != 0:
                msg = (
                    f"{self.target.value} size {modified[dimension]} in dimension "
                    f"{dimension} is not divisible by {name}={factor}"
                )
                raise LaunchError(msg)
            modified[dimension] //= factor
        return tuple(modified)


@dataclass(frozen=True, slots=True)
class LaunchGeometry:
    """Global and local work sizes for one launch."""

    global_size: tuple[int, ...]
    local_size: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class KernelSpec:
    """Kernel source, entry point and base launch sizes."""

    source: str
    entry_point: str
    global_size: tuple[int, ...]
    local_size: tuple[int, ...]
    modifiers: tuple[ThreadSizeModifier, ...] = ()

    def launch_geometry(self, configuration: Mapping[str, int]) -> LaunchGeometry:
        """Compute the work sizes for a configuration.

        Modifiers are applied in declaration order. A size that does not
        divide evenly raises :class:`LaunchError`.
        """
        sizes = {SizeTarget.GLOBAL: self.global_size, SizeTarget.LOCAL: self.local_size}
        for modifier in self.modifiers:
            sizes[modifier.target] = modifier.apply(sizes[modifier.target], configuration)
        return LaunchGeometry(
            global_size=sizes[SizeTarget.GLOBAL],
            local_size=sizes[SizeTarget.LOCAL],
        )

    def with_modifier(
        self,
        target: SizeTarget,
        action: SizeAction,
        parameters: Sequence[str | None],
    ) -> KernelSpec:
        """Return a copy with one more modifier appended."""
        modifier = ThreadSizeModifier(
            target=target,
            action=action,
            parameters=tuple(parameters),
        )
        return KernelSpec(
            source=self.source,
            entry_point=self.entry_point,
            global_size=self.global_size,
            local_size=self.local_size,
            modifiers=(*self.modifiers, modifier),
        )


@dataclass(frozen=True, slots=True)
class ReferenceKernel:
    """Kernel whose outputs serve as ground truth."""

    source: str
    entry_point: str
    global_size: tuple[int, ...]
    local_size: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class LaunchOutcome:
    """Timing and outputs of a successful launch."""

    elapsed_ms: float
    outputs: Sequence[Any] = field(default_factory=tuple)


class KernelRuntime(Protocol):
    """Compile, launch and time kernels on one device.

    ``compile_and_launch`` and ``run_reference`` raise :class:`CompileError`
    or :class:`LaunchError` for failures tied to one configuration. Any
    other exception is treated as fatal by the pipeline.
    """

    def compile_and_launch(  # noqa: PLR0913
        self,
        kernel_source: str,
        entry_point: str,
        global_size: tuple[int, ...],
        local_size: tuple[int, ...],
        bound_arguments: Sequence[KernelArgument],
        configuration: Mapping[str, int],
    ) -> LaunchOutcome:
        """Compile the kernel for ``configuration``, run it and time it."""
        ...

    def run_reference(
        self,
        reference_source: str,
        entry_point: str,
        global_size: tuple[int, ...],
        local_size: tuple[int, ...],
        bound_arguments: Sequence[KernelArgument],
    ) -> Sequence[Any]:
        """Run the reference kernel once and return its output buffers."""
        ...

    def compare(
        self,
        output_buffers: Sequence[Any],
        reference_buffers: Sequence[Any],
        tolerance: float,
    ) -> bool:
        """Return whether outputs match the reference within ``tolerance``."""
        ...


def render_defines(configuration: Mapping[str, int]) -> str:
    """Render ``#define`` lines that bake parameter values into a kernel source."""
    return "".join(f"#define {name} {value}\n" for name, value in configuration.items())


def _timing_key(parameters: Mapping[str, int]) -> tuple[tuple[str, int], ...]:
    return tuple(sorted((str(name), int(value)) for name, value in parameters.items()))


@dataclass(frozen=True, slots=True)
class RecordedTiming:
    """Previously measured outcome for one configuration."""

    parameters: Mapping[str, int]
    elapsed_ms: float | None
    status: ExecutionStatus = ExecutionStatus.VALID


class ReplayKernelRuntime:
    """Simulation runtime answering launches from recorded timings.

    Configurations recorded as compile or launch failures raise the
    matching error. Unrecorded configurations raise :class:`LaunchError`.
    There is no output data, so ``compare`` always succeeds.
    """

    def __init__(self, timings: Iterable[RecordedTiming]) -> None:
        """Index the recorded timings by parameter assignment."""
        self._timings = {_timing_key(timing.parameters): timing for timing in timings}
        self.launches: list[dict[str, int]] = []

    @classmethod
    def from_pairs(
        cls,
        timings: Iterable[tuple[Mapping[str, int], float]],
    ) -> ReplayKernelRuntime:
        """Build a runtime from ``(parameters, elapsed_ms)`` pairs."""
        return cls(
            RecordedTiming(parameters=dict(parameters), elapsed_ms=float(elapsed_ms))
            for parameters, elapsed_ms in timings
        )

    @classmethod
    def from_file(cls, path: str | Path) -> ReplayKernelRuntime:
        """Load timings from a JSON list or a CSV table.

        JSON entries look like ``{"parameters": {...}, "elapsed_ms": 1.2,
        "status": "valid"}``. CSV files need an ``elapsed_ms`` column; the
        optional ``status`` column defaults to ``valid`` and every other
        column is a parameter.
        """
        file_path = Path(path)
        if not file_path.exists():
            msg = f"Timing file not found: {file_path}"
            raise FileNotFoundError(msg)
        if file_path.suffix.lower() == ".csv":
            return cls(_read_csv_timings(file_path))
        return cls(_read_json_timings(file_path))

    def __len__(self) -> int:
        """Number of recorded configurations."""
        return len(self._timings)

    def compile_and_launch(  # noqa: PLR0913
        self,
        kernel_source: str,  # noqa: ARG002
        entry_point: str,
        global_size: tuple[int, ...],  # noqa: ARG002
        local_size: tuple[int, ...],  # noqa: ARG002
        bound_arguments: Sequence[KernelArgument],  # noqa: ARG002
        configuration: Mapping[str, int],
    ) -> LaunchOutcome:
        """Return the recorded timing for ``configuration``."""
        self.launches.append(dict(configuration))
        timing = self._timings.get(_timing_key(configuration))
        if timing is None:
            msg = f"No recorded timing for {entry_point} with {dict(configuration)}"
            raise LaunchError(msg)
        if timing.status is ExecutionStatus.COMPILE_FAILED:
            msg = f"Recorded compile failure for {dict(configuration)}"
            raise CompileError(msg)
        if timing.status is ExecutionStatus.LAUNCH_FAILED or timing.elapsed_ms is None:
            msg = f"Recorded launch failure for {dict(configuration)}"
            raise LaunchError(msg)
        return LaunchOutcome(elapsed_ms=timing.elapsed_ms)

    def run_reference(
        self,
        reference_source: str,  # noqa: ARG002
        entry_point: str,  # noqa: ARG002
        global_size: tuple[int, ...],  # noqa: ARG002
        local_size: tuple[int, ...],  # noqa: ARG002
        bound_arguments: Sequence[KernelArgument],  # noqa: ARG002
    ) -> Sequence[Any]:
        """Recorded timings carry no output data."""
        return ()

    def compare(
        self,
        output_buffers: Sequence[Any],  # noqa: ARG002
        reference_buffers: Sequence[Any],  # noqa: ARG002
        tolerance: float,  # noqa: ARG002
    ) -> bool:
        """Replay cannot verify outputs, so every comparison passes."""
        return True


def _read_json_timings(path: Path) -> list[RecordedTiming]:
    loaded: object = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(loaded, list):
        msg = f"Timing file must contain a JSON list: {path}"
        raise ValueError(msg)
    timings: list[RecordedTiming] = []
    for entry in cast("list[object]", loaded):
        if not isinstance(entry, Mapping):
            msg = f"Timing entries must be objects: {entry!r}"
            raise ValueError(msg)
        mapping = cast("Mapping[str, Any]", entry)
        parameters = mapping.get("parameters")
        if not isinstance(parameters, Mapping):
            msg = f"Timing entry is missing 'parameters': {entry!r}"
            raise ValueError(msg)
        elapsed = mapping.get("elapsed_ms")
        timings.append(
            RecordedTiming(
                parameters={str(k): int(v) for k, v in parameters.items()},
                elapsed_ms=float(elapsed) if elapsed is not None else None,
                status=ExecutionStatus(mapping.get("status", ExecutionStatus.VALID.value)),
            ),
        )
    return timings


def _read_csv_timings(path: Path) -> list[RecordedTiming]:
    timings: list[RecordedTiming] = []
    with path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames is None or "elapsed_ms" not in reader.fieldnames:
            msg = f"CSV timing file needs an 'elapsed_ms' column: {path}"
            raise ValueError(msg)
        for row in reader:
            status = ExecutionStatus(row.get("status") or ExecutionStatus.VALID.value)
            elapsed_raw = row.get("elapsed_ms") or ""
            parameters = {
                name: int(value)
                for name, value in row.items()
                if name not in {"elapsed_ms", "status"} and value not in (None, "")
            }
            timings.append(
                RecordedTiming(
                    parameters=parameters,
                    elapsed_ms=float(elapsed_raw) if elapsed_raw else None,
                    status=status,
                ),
            )
    return timings


__all__ = [
    "ArgumentKind",
    "KernelArgument",
    "KernelRuntime",
    "KernelSpec",
    "LaunchGeometry",
    "LaunchOutcome",
    "RecordedTiming",
    "ReferenceKernel",
    "ReplayKernelRuntime",
    "SizeAction",
    "SizeTarget",
    "ThreadSizeModifier",
    "render_defines",
]
