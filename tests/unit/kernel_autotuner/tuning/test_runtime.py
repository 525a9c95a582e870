"""Tests for launch geometry helpers and the replay runtime."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from kernel_autotuner.tuning.errors import CompileError, LaunchError
from kernel_autotuner.tuning.runtime import (
    KernelSpec,
    RecordedTiming,
    ReplayKernelRuntime,
    SizeAction,
    SizeTarget,
    ThreadSizeModifier,
    render_defines,
)
from kernel_autotuner.tuning.schemas import ExecutionStatus
from kernel_autotuner.tuning.space import Configuration

if TYPE_CHECKING:
    from pathlib import Path


def _gemm_spec() -> KernelSpec:
    return (
        KernelSpec(
            source="",
            entry_point="gemm_fast",
            global_size=(256, 512),
            local_size=(1, 1),
        )
        .with_modifier(SizeTarget.LOCAL, SizeAction.MULTIPLY, ["MDIMC", "NDIMC"])
        .with_modifier(SizeTarget.GLOBAL, SizeAction.MULTIPLY, ["MDIMC", "NDIMC"])
        .with_modifier(SizeTarget.GLOBAL, SizeAction.DIVIDE, ["MWG", "NWG"])
    )


class TestLaunchGeometry:
    """Thread-size modifiers scale the base launch sizes."""

    def test_gemm_geometry(self) -> None:
        """Global sizes are multiplied then divided; local sizes multiplied."""
        configuration = {"MDIMC": 16, "NDIMC": 8, "MWG": 64, "NWG": 128}

        geometry = _gemm_spec().launch_geometry(configuration)

        assert geometry.local_size == (16, 8)
        assert geometry.global_size == (256 * 16 // 64, 512 * 8 // 128)

    def test_none_leaves_dimension_unchanged(self) -> None:
        """``None`` entries skip a dimension."""
        modifier = ThreadSizeModifier(
            target=SizeTarget.GLOBAL,
            action=SizeAction.MULTIPLY,
            parameters=(None, "B"),
        )

        assert modifier.apply((10, 10), {"B": 3}) == (10, 30)

    def test_uneven_division_is_a_launch_error(self) -> None:
        """A size that does not divide evenly cannot be launched."""
        spec = KernelSpec(
            source="",
            entry_point="k",
            global_size=(100,),
            local_size=(1,),
        ).with_modifier(SizeTarget.GLOBAL, SizeAction.DIVIDE, ["WG"])

        with pytest.raises(LaunchError):
            spec.launch_geometry({"WG": 64})

    def test_too_many_dimensions(self) -> None:
        """A modifier cannot name more dimensions than the size has."""
        modifier = ThreadSizeModifier(
            target=SizeTarget.LOCAL,
            action=SizeAction.MULTIPLY,
            parameters=("A", "B"),
        )

        with pytest.raises(ValueError, match="dimension"):
            modifier.apply((1,), {"A": 1, "B": 1})


def test_render_defines() -> None:
    """Each parameter becomes one ``#define`` line in declaration order."""
    configuration = Configuration([("MWG", 64), ("VWM", 2)])

    assert render_defines(configuration) == "#define MWG 64\n#define VWM 2\n"


class TestReplayKernelRuntime:
    """Recorded timings answer launches in simulation mode."""

    def test_recorded_timing_is_returned(self) -> None:
        """Lookups ignore parameter order."""
        runtime = ReplayKernelRuntime.from_pairs([({"A": 1, "B": 2}, 3.5)])

        outcome = runtime.compile_and_launch("", "k", (1,), (1,), (), {"B": 2, "A": 1})

        assert outcome.elapsed_ms == 3.5
        assert runtime.launches == [{"B": 2, "A": 1}]
        assert len(runtime) == 1

    def test_recorded_failures_raise(self) -> None:
        """Compile and launch failures are replayed as errors."""
        runtime = ReplayKernelRuntime(
            [
                RecordedTiming({"A": 1}, None, ExecutionStatus.COMPILE_FAILED),
                RecordedTiming({"A": 2}, None, ExecutionStatus.LAUNCH_FAILED),
            ],
        )

        with pytest.raises(CompileError):
            runtime.compile_and_launch("", "k", (1,), (1,), (), {"A": 1})
        with pytest.raises(LaunchError):
            runtime.compile_and_launch("", "k", (1,), (1,), (), {"A": 2})
        with pytest.raises(LaunchError, match="No recorded timing"):
            runtime.compile_and_launch("", "k", (1,), (1,), (), {"A": 3})

    def test_reference_and_compare(self) -> None:
        """Replay has no outputs, so verification always passes."""
        runtime = ReplayKernelRuntime([])

        outputs = runtime.run_reference("", "ref", (1,), (1,), ())

        assert outputs == ()
        assert runtime.compare((), outputs, 1e-4) is True

    def test_from_json_file(self, tmp_path: Path) -> None:
        """JSON timing files hold a list of parameter/time objects."""
        path = tmp_path / "timings.json"
        path.write_text(
            json.dumps(
                [
                    {"parameters": {"A": 1}, "elapsed_ms": 2.0},
                    {"parameters": {"A": 2}, "status": "compile_failed"},
                ],
            ),
            encoding="utf-8",
        )

        runtime = ReplayKernelRuntime.from_file(path)

        assert runtime.compile_and_launch("", "k", (1,), (1,), (), {"A": 1}).elapsed_ms == 2.0
        with pytest.raises(CompileError):
            runtime.compile_and_launch("", "k", (1,), (1,), (), {"A": 2})

    def test_from_csv_file(self, tmp_path: Path) -> None:
        """CSV timing files use one column per parameter."""
        path = tmp_path / "timings.csv"
        path.write_text(
            "A,B,elapsed_ms,status\n1,2,4.5,valid\n2,2,,launch_failed\n",
            encoding="utf-8",
        )

        runtime = ReplayKernelRuntime.from_file(path)

        assert runtime.compile_and_launch("", "k", (1,), (1,), (), {"A": 1, "B": 2}).elapsed_ms == 4.5
        with pytest.raises(LaunchError):
            runtime.compile_and_launch("", "k", (1,), (1,), (), {"A": 2, "B": 2})

    def test_invalid_files(self, tmp_path: Path) -> None:
        """Missing files and malformed content are reported."""
        with pytest.raises(FileNotFoundError):
            ReplayKernelRuntime.from_file(tmp_path / "missing.json")

        not_a_list = tmp_path / "bad.json"
        not_a_list.write_text('{"A": 1}', encoding="utf-8")
        with pytest.raises(ValueError, match="JSON list"):
            ReplayKernelRuntime.from_file(not_a_list)

        no_time = tmp_path / "bad.csv"
        no_time.write_text("A,B\n1,2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="elapsed_ms"):
            ReplayKernelRuntime.from_file(no_time)
