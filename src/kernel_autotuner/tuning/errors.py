"""Exception hierarchy for tuning sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import TuningReport


class TuningError(Exception):
    """Base class for all tuning errors."""


class SpaceDefinitionError(TuningError):
    """Raised while declaring parameters or constraints."""


class DuplicateParameterError(SpaceDefinitionError):
    """A parameter with the same name was already declared."""

    def __init__(self, name: str) -> None:
        """Store the offending parameter name."""
        super().__init__(f"Parameter '{name}' is already declared")
        self.name = name


class EmptyDomainError(SpaceDefinitionError):
    """A parameter was declared without candidate values."""

    def __init__(self, name: str) -> None:
        """Store the offending parameter name."""
        super().__init__(f"Parameter '{name}' requires at least one candidate value")
        self.name = name


class InvalidDomainValueError(SpaceDefinitionError):
    """A candidate value is not an integer."""

    def __init__(self, name: str, value: object) -> None:
        """Store the parameter name and the rejected value."""
        super().__init__(f"Parameter '{name}' has non-integer candidate value {value!r}")
        self.name = name
        self.value = value


class UnknownParameterError(SpaceDefinitionError):
    """A constraint or configuration referenced an undeclared parameter."""

    def __init__(self, names: str | tuple[str, ...]) -> None:
        """Store the undeclared names."""
        missing = (names,) if isinstance(names, str) else tuple(names)
        super().__init__(f"Unknown parameter(s): {', '.join(missing)}")
        self.names = missing


class InvalidConstraintError(SpaceDefinitionError):
    """A constraint expression could not be parsed or built."""


class InvalidConfigurationError(TuningError):
    """A value assignment does not describe a point of the parameter space."""


class SpaceExhaustedError(TuningError):
    """Rejection sampling found no acceptable configuration within its bound."""

    def __init__(self, attempts: int) -> None:
        """Store the number of draws that were rejected."""
        super().__init__(
            f"No valid configuration found after {attempts} sampling attempts",
        )
        self.attempts = attempts


class KernelRuntimeError(TuningError):
    """Recoverable failure reported by the kernel runtime for one configuration."""


class CompileError(KernelRuntimeError):
    """The kernel failed to compile under a configuration."""


class LaunchError(KernelRuntimeError):
    """The kernel compiled but failed to launch or run."""


class ReferenceKernelError(TuningError):
    """The reference kernel could not produce ground-truth outputs."""


class SessionAbortedError(TuningError):
    """An unexpected runtime failure stopped the session.

    The partial report collected before the failure is attached so callers
    keep the leaderboard as it stood.
    """

    def __init__(self, message: str, report: TuningReport) -> None:
        """Attach the partial report."""
        super().__init__(message)
        self.report = report


__all__ = [
    "CompileError",
    "DuplicateParameterError",
    "EmptyDomainError",
    "InvalidConfigurationError",
    "InvalidDomainValueError",
    "InvalidConstraintError",
    "KernelRuntimeError",
    "LaunchError",
    "ReferenceKernelError",
    "SessionAbortedError",
    "SpaceDefinitionError",
    "SpaceExhaustedError",
    "TuningError",
    "UnknownParameterError",
]
