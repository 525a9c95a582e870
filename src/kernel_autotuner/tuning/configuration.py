"""Utilities for loading tuning session configurations from YAML."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import SpaceDefinitionError
from .runtime import KernelSpec, ReferenceKernel, SizeAction, SizeTarget
from .schemas import TuningRunConfig
from .space import ParameterSpace


class ParameterDefinition(BaseModel):
    """Definition of a tunable parameter loaded from YAML configuration."""

    name: str = Field(min_length=1, description="Parameter name used in the kernel")
    values: list[int] = Field(min_length=1, description="Candidate values in order")
    description: str | None = None

    model_config = ConfigDict(extra="forbid")


class ReferenceDefinition(BaseModel):
    """Ground-truth kernel used for output verification."""

    entry_point: str
    source: str | None = None
    source_path: Path | None = None
    global_size: list[int] = Field(min_length=1)
    local_size: list[int] = Field(min_length=1)

    model_config = ConfigDict(extra="forbid")

    def build(self) -> ReferenceKernel:
        """Convert into a :class:`ReferenceKernel`."""
        return ReferenceKernel(
            source=_read_source(self.source, self.source_path),
            entry_point=self.entry_point,
            global_size=tuple(self.global_size),
            local_size=tuple(self.local_size),
        )


class KernelDefinition(BaseModel):
    """Kernel source, base launch sizes and thread-size modifiers.

    Each modifier list holds one parameter name per dimension; ``null``
    leaves that dimension unchanged.
    """

    entry_point: str
    source: str | None = Field(default=None, description="Inline kernel source")
    source_path: Path | None = Field(default=None, description="Kernel source file")
    global_size: list[int] = Field(min_length=1)
    local_size: list[int] = Field(min_length=1)
    mul_global: list[str | None] = Field(default_factory=list)
    div_global: list[str | None] = Field(default_factory=list)
    mul_local: list[str | None] = Field(default_factory=list)
    div_local: list[str | None] = Field(default_factory=list)
    reference: ReferenceDefinition | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("global_size", "local_size")
    @classmethod
    def _positive_sizes(cls, value: list[int]) -> list[int]:
        if any(size <= 0 for size in value):
            msg = "Launch sizes must be positive"
            raise ValueError(msg)
        return value

    def build(self) -> KernelSpec:
        """Convert into a :class:`KernelSpec` with modifiers applied in a fixed order.

        Local sizes are multiplied, then divided. Global sizes follow the
        same order, which matches how the modifiers are listed in YAML.
        """
        spec = KernelSpec(
            source=_read_source(self.source, self.source_path),
            entry_point=self.entry_point,
            global_size=tuple(self.global_size),
            local_size=tuple(self.local_size),
        )
        for target, action, parameters in (
            (SizeTarget.LOCAL, SizeAction.MULTIPLY, self.mul_local),
            (SizeTarget.LOCAL, SizeAction.DIVIDE, self.div_local),
            (SizeTarget.GLOBAL, SizeAction.MULTIPLY, self.mul_global),
            (SizeTarget.GLOBAL, SizeAction.DIVIDE, self.div_global),
        ):
            if parameters:
                spec = spec.with_modifier(target, action, parameters)
        return spec

    def modifier_names(self) -> set[str]:
        """Parameter names referenced by any modifier."""
        return {
            name
            for names in (self.mul_global, self.div_global, self.mul_local, self.div_local)
            for name in names
            if name is not None
        }


def _empty_parameter_definitions() -> list[ParameterDefinition]:
    """Return an empty parameter definition list with precise typing."""
    return []


def _empty_constraints() -> list[str]:
    return []


class TuningConfig(BaseModel):
    """Container for one tuning session: space, kernel and run settings."""

    parameters: list[ParameterDefinition] = Field(
        default_factory=_empty_parameter_definitions,
    )
    constraints: list[str] = Field(
        default_factory=_empty_constraints,
        description="Constraint token strings such as 'A multiple-of B'",
    )
    kernel: KernelDefinition
    run: TuningRunConfig = Field(default_factory=TuningRunConfig)

    model_config = ConfigDict(extra="forbid")

    def build_space(self) -> ParameterSpace:
        """Declare every parameter and constraint on a fresh space."""
        space = ParameterSpace()
        for parameter in self.parameters:
            space.declare_parameter(parameter.name, parameter.values)
        for constraint in self.constraints:
            space.declare_constraint(constraint)
        unknown = sorted(self.kernel.modifier_names() - set(space.names))
        if unknown:
            msg = f"Thread-size modifiers reference unknown parameter(s): {', '.join(unknown)}"
            raise SpaceDefinitionError(msg)
        return space

    def build_kernel_spec(self) -> KernelSpec:
        """Build the kernel description used by the pipeline."""
        return self.kernel.build()

    def build_reference(self) -> ReferenceKernel | None:
        """Build the reference kernel, when one is configured."""
        if self.kernel.reference is None:
            return None
        return self.kernel.reference.build()

    def describe(self) -> list[dict[str, Any]]:
        """Return a user-friendly description of the tuning parameters."""
        return [
            {
                "name": parameter.name,
                "values": list(parameter.values),
                "description": parameter.description,
            }
            for parameter in self.parameters
        ]


def _read_source(source: str | None, source_path: Path | None) -> str:
    if source is not None:
        return source
    if source_path is None:
        return ""
    if not source_path.exists():
        msg = f"Kernel source file not found: {source_path}"
        raise FileNotFoundError(msg)
    return source_path.read_text(encoding="utf-8")


def _resolve_source_paths(content: dict[str, Any], base_dir: Path) -> None:
    """Make relative ``source_path`` entries relative to the config file."""
    kernel = content.get("kernel")
    if not isinstance(kernel, dict):
        return
    sections: list[dict[str, Any]] = [cast("dict[str, Any]", kernel)]
    reference = sections[0].get("reference")
    if isinstance(reference, dict):
        sections.append(cast("dict[str, Any]", reference))
    for section in sections:
        raw = section.get("source_path")
        if isinstance(raw, str) and not Path(raw).is_absolute():
            section["source_path"] = str(base_dir / raw)


def load_tuning_config(path: str | Path) -> TuningConfig:
    """Load a tuning session configuration from a YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        msg = f"Tuning configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open("r", encoding="utf-8") as handle:
        loaded: object = yaml.safe_load(handle)

    content: dict[str, Any]
    if isinstance(loaded, Mapping):
        mapping = cast("Mapping[str, Any]", loaded)
        content = dict(mapping)
    else:
        content = {}

    _resolve_source_paths(content, config_path.parent)

    try:
        return TuningConfig.model_validate(content)
    except ValidationError as exc:
        msg = f"Invalid tuning configuration: {exc}"
        raise ValueError(msg) from exc


def default_tuning_config() -> TuningConfig:
    """GEMM example space for a 256x512 output matrix."""
    values = {
        "MWG": [64, 128],
        "NWG": [64, 128],
        "KWG": [16],
        "MDIMC": [16],
        "NDIMC": [16],
        "MDIMA": [32],
        "NDIMB": [32],
        "KWI": [8],
        "VWM": [1, 2],
        "VWN": [1, 2],
        "STRM": [1],
        "STRN": [1],
        "SA": [0, 1],
        "SB": [0, 1],
        "PRECISION": [32],
    }
    return TuningConfig(
        parameters=[
            ParameterDefinition(name=name, values=domain) for name, domain in values.items()
        ],
        constraints=[
            # Unrolling the KWG loop
            "KWG multiple-of KWI",
            # Integer MWI and NWI
            "MWG multiple-of MDIMC multiplied-by VWM",
            "NWG multiple-of NDIMC multiplied-by VWN",
            # Integer MWIA and NWIB
            "MWG multiple-of MDIMA multiplied-by VWM",
            "NWG multiple-of NDIMB multiplied-by VWN",
            # KWG must be a multiple of KDIMA and KDIMB
            "KWG multiple-of MDIMC multiplied-by NDIMC divided-by MDIMA",
            "KWG multiple-of MDIMC multiplied-by NDIMC divided-by NDIMB",
        ],
        kernel=KernelDefinition(
            entry_point="gemm_fast",
            global_size=[256, 512],
            local_size=[1, 1],
            mul_local=["MDIMC", "NDIMC"],
            mul_global=["MDIMC", "NDIMC"],
            div_global=["MWG", "NWG"],
        ),
    )


__all__ = [
    "KernelDefinition",
    "ParameterDefinition",
    "ReferenceDefinition",
    "TuningConfig",
    "default_tuning_config",
    "load_tuning_config",
]
