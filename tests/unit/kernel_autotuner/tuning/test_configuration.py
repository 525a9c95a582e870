"""Tests for loading tuning session configurations."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from kernel_autotuner.tuning.configuration import (
    KernelDefinition,
    TuningConfig,
    default_tuning_config,
    load_tuning_config,
)
from kernel_autotuner.tuning.errors import SpaceDefinitionError, UnknownParameterError
from kernel_autotuner.tuning.generator import ConfigurationGenerator
from kernel_autotuner.tuning.runtime import SizeAction, SizeTarget
from kernel_autotuner.tuning.schemas import StrategyKind

if TYPE_CHECKING:
    from pathlib import Path


def _write_config(tmp_path: Path, **overrides: object) -> Path:
    """Create a sample tuning configuration on disk and return its path."""
    (tmp_path / "copy.cl").write_text("__kernel void copy() {}\n", encoding="utf-8")
    config: dict[str, object] = {
        "parameters": [
            {"name": "WG", "values": [32, 64, 128]},
            {"name": "VW", "values": [1, 2, 4]},
        ],
        "constraints": ["WG multiple-of VW multiplied-by 16"],
        "kernel": {
            "entry_point": "copy",
            "source_path": "copy.cl",
            "global_size": [4096],
            "local_size": [1],
            "mul_local": ["WG"],
            "mul_global": ["WG"],
            "div_global": ["VW"],
        },
        "run": {"strategy": "random", "random_seed": 3, "strategy_options": {"max_draws": 4}},
    }
    config.update(overrides)
    path = tmp_path / "tuning.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return path


def test_load_tuning_config_builds_space_and_kernel(tmp_path: Path) -> None:
    """YAML configurations produce a space, kernel and run settings."""
    config = load_tuning_config(_write_config(tmp_path))

    space = config.build_space()
    kernel = config.build_kernel_spec()

    assert space.names == ("WG", "VW")
    assert [constraint.describe() for constraint in space.constraints] == [
        "WG multiple-of VW multiplied-by 16",
    ]
    assert ConfigurationGenerator(space).count() == 8
    assert kernel.source.startswith("__kernel void copy")
    assert [(m.target, m.action) for m in kernel.modifiers] == [
        (SizeTarget.LOCAL, SizeAction.MULTIPLY),
        (SizeTarget.GLOBAL, SizeAction.MULTIPLY),
        (SizeTarget.GLOBAL, SizeAction.DIVIDE),
    ]
    geometry = kernel.launch_geometry({"WG": 64, "VW": 2})
    assert geometry.global_size == (4096 * 64 // 2,)
    assert geometry.local_size == (64,)
    assert config.run.strategy is StrategyKind.RANDOM
    assert config.run.strategy_options == {"max_draws": 4}
    assert config.build_reference() is None


def test_missing_file_raises(tmp_path: Path) -> None:
    """Loading a missing file is reported clearly."""
    with pytest.raises(FileNotFoundError):
        load_tuning_config(tmp_path / "missing.yaml")


def test_invalid_content_raises_value_error(tmp_path: Path) -> None:
    """Schema violations are reported as ``ValueError``."""
    path = _write_config(tmp_path, parameters=[{"name": "WG", "values": []}])

    with pytest.raises(ValueError, match="Invalid tuning configuration"):
        load_tuning_config(path)


def test_unknown_constraint_names(tmp_path: Path) -> None:
    """Constraints that reference undeclared parameters fail at build time."""
    config = load_tuning_config(_write_config(tmp_path, constraints=["WG multiple-of TS"]))

    with pytest.raises(UnknownParameterError):
        config.build_space()


def test_modifiers_must_reference_parameters() -> None:
    """Thread-size modifiers can only use declared parameters."""
    config = TuningConfig(
        parameters=[{"name": "WG", "values": [1]}],  # type: ignore[list-item]
        kernel=KernelDefinition(
            entry_point="k",
            global_size=[8],
            local_size=[1],
            div_global=["TS"],
        ),
    )

    with pytest.raises(SpaceDefinitionError, match="TS"):
        config.build_space()


def test_reference_kernel_is_built(tmp_path: Path) -> None:
    """A reference kernel section produces a ``ReferenceKernel``."""
    path = _write_config(
        tmp_path,
        kernel={
            "entry_point": "copy",
            "source": "inline",
            "global_size": [64],
            "local_size": [1],
            "reference": {
                "entry_point": "copy_reference",
                "source": "reference",
                "global_size": [64],
                "local_size": [8],
            },
        },
    )

    reference = load_tuning_config(path).build_reference()

    assert reference is not None
    assert reference.entry_point == "copy_reference"
    assert reference.local_size == (8,)


def test_default_config_is_gemm_example() -> None:
    """The default configuration is the GEMM sample space."""
    config = default_tuning_config()
    space = config.build_space()
    generator = ConfigurationGenerator(space)

    assert len(space) == 15
    assert space.cartesian_size() == 64
    assert len(space.constraints) == 7
    # Every sampled combination satisfies the GEMM constraints.
    assert generator.count() == 64
    for configuration in ConfigurationGenerator(space):
        geometry = config.build_kernel_spec().launch_geometry(configuration)
        assert geometry.local_size == (16, 16)
        assert geometry.global_size == (
            256 * 16 // configuration["MWG"],
            512 * 16 // configuration["NWG"],
        )
    assert config.describe()[0] == {"name": "MWG", "values": [64, 128], "description": None}
