"""Parameter space model: tunable parameters, constraints and configurations."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

from .constraints import Constraint, ConstraintEngine
from .errors import (
    DuplicateParameterError,
    EmptyDomainError,
    InvalidConfigurationError,
    InvalidDomainValueError,
    UnknownParameterError,
)

if TYPE_CHECKING:
    from .constraints import Token


def _as_integer(name: str, value: object) -> int:
    """Convert an integral candidate value, rejecting anything lossy."""
    if isinstance(value, bool):
        raise InvalidDomainValueError(name, value)
    try:
        integer = int(value)  # type: ignore[call-overload]
    except (OverflowError, TypeError, ValueError) as exc:
        raise InvalidDomainValueError(name, value) from exc
    if integer != value:
        raise InvalidDomainValueError(name, value)
    return integer


@dataclass(frozen=True, slots=True)
class Parameter:
    """A named tunable with an ordered, duplicate-free domain of integers."""

    name: str
    values: tuple[int, ...]

    def __post_init__(self) -> None:
        """Reject empty or non-integer domains and normalise duplicates away."""
        if not self.values:
            raise EmptyDomainError(self.name)
        deduplicated = tuple(dict.fromkeys(_as_integer(self.name, value) for value in self.values))
        object.__setattr__(self, "values", deduplicated)

    def index_of(self, value: int) -> int:
        """Position of ``value`` inside the domain."""
        try:
            return self.values.index(value)
        except ValueError as exc:
            msg = f"Value {value} is not in the domain of '{self.name}'"
            raise InvalidConfigurationError(msg) from exc

    def __len__(self) -> int:
        """Domain size."""
        return len(self.values)


class Configuration(Mapping[str, int]):
    """Immutable assignment of one value to every declared parameter.

    Items keep declaration order, and equality and hashing use that
    ordered mapping, so configurations can be used as set members and
    dictionary keys.
    """

    __slots__ = ("_items", "_lookup", "_hash")

    def __init__(self, items: Iterable[tuple[str, int]]) -> None:
        """Store the ordered ``(name, value)`` pairs."""
        pairs = tuple((str(name), int(value)) for name, value in items)
        lookup = dict(pairs)
        if len(lookup) != len(pairs):
            msg = "Configuration assigns the same parameter more than once"
            raise InvalidConfigurationError(msg)
        object.__setattr__(self, "_items", pairs)
        object.__setattr__(self, "_lookup", lookup)
        object.__setattr__(self, "_hash", hash(pairs))

    @classmethod
    def from_mapping(cls, values: Mapping[str, int], order: Iterable[str]) -> Configuration:
        """Build a configuration whose items follow ``order``."""
        return cls((name, int(values[name])) for name in order)

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        source_type: Any,
        handler: GetCoreSchemaHandler,
    ) -> core_schema.CoreSchema:
        """Validate configurations by instance check only."""
        return core_schema.is_instance_schema(cls)

    def __setattr__(self, name: str, value: object) -> None:
        """Configurations are immutable."""
        msg = "Configuration is immutable"
        raise AttributeError(msg)

    def __getitem__(self, name: str) -> int:
        """Value assigned to ``name``."""
        return self._lookup[name]

    def __iter__(self) -> Iterator[str]:
        """Iterate over parameter names in declaration order."""
        return (name for name, _ in self._items)

    def __len__(self) -> int:
        """Number of assigned parameters."""
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        """Compare ordered assignments."""
        if isinstance(other, Configuration):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        """Hash of the ordered assignment."""
        return self._hash

    def __repr__(self) -> str:
        """Debug representation."""
        return f"Configuration({self.describe()})"

    def __reduce__(self) -> tuple[type[Configuration], tuple[tuple[tuple[str, int], ...]]]:
        """Support pickling and copying despite the frozen slots."""
        return (Configuration, (self._items,))

    def as_dict(self) -> dict[str, int]:
        """Plain dictionary copy of the assignment."""
        return dict(self._items)

    def replace(self, name: str, value: int) -> Configuration:
        """Return a new configuration with one value changed."""
        if name not in self._lookup:
            raise UnknownParameterError(name)
        return Configuration(
            (key, int(value) if key == name else current)
            for key, current in self._items
        )

    def describe(self) -> str:
        """Compact ``NAME=value`` rendering."""
        return " ".join(f"{name}={value}" for name, value in self._items)


class ParameterSpace:
    """Declared parameters together with the constraints between them.

    Parameters and constraints can only be added, never changed or removed,
    and declaration order drives enumeration order.
    """

    def __init__(self) -> None:
        """Create an empty space."""
        self._parameters: dict[str, Parameter] = {}
        self._constraints = ConstraintEngine(lambda: self._parameters.keys())

    def declare_parameter(self, name: str, values: Iterable[int]) -> Parameter:
        """Add a parameter with its candidate values."""
        if name in self._parameters:
            raise DuplicateParameterError(name)
        parameter = Parameter(name=name, values=tuple(values))
        self._parameters[name] = parameter
        return parameter

    def declare_constraint(self, *expression: Token | Constraint) -> Constraint:
        """Add a constraint given as a ``Constraint``, a string or a token chain."""
        if len(expression) == 1 and isinstance(expression[0], (Constraint, str)):
            return self._constraints.declare(expression[0])
        tokens = tuple(token for token in expression if not isinstance(token, Constraint))
        if len(tokens) != len(expression):
            msg = "A Constraint object must be passed on its own"
            raise TypeError(msg)
        return self._constraints.declare(Constraint.from_tokens(*tokens))

    def evaluate(self, configuration: Mapping[str, int]) -> bool:
        """Return True when the configuration satisfies every constraint."""
        return self._constraints.evaluate(configuration)

    @property
    def parameters(self) -> tuple[Parameter, ...]:
        """Parameters in declaration order."""
        return tuple(self._parameters.values())

    @property
    def names(self) -> tuple[str, ...]:
        """Parameter names in declaration order."""
        return tuple(self._parameters)

    @property
    def constraints(self) -> tuple[Constraint, ...]:
        """Constraints in declaration order."""
        return self._constraints.constraints

    def parameter(self, name: str) -> Parameter:
        """Look up a parameter by name."""
        try:
            return self._parameters[name]
        except KeyError:
            raise UnknownParameterError(name) from None

    def cartesian_size(self) -> int:
        """Number of unconstrained assignments."""
        size = 1
        for parameter in self._parameters.values():
            size *= len(parameter)
        return size

    def configuration(self, values: Mapping[str, int]) -> Configuration:
        """Validate a full assignment and turn it into a ``Configuration``.

        The assignment must cover every parameter exactly once with values
        from each domain. Constraint satisfaction is not checked here; use
        :meth:`evaluate` for that.
        """
        unknown = tuple(sorted(set(values) - set(self._parameters)))
        if unknown:
            raise UnknownParameterError(unknown)
        missing = [name for name in self._parameters if name not in values]
        if missing:
            msg = f"Configuration is missing parameter(s): {', '.join(missing)}"
            raise InvalidConfigurationError(msg)
        for name, parameter in self._parameters.items():
            parameter.index_of(int(values[name]))
        return Configuration.from_mapping(values, self._parameters)

    def __len__(self) -> int:
        """Number of declared parameters."""
        return len(self._parameters)

    def __contains__(self, name: object) -> bool:
        """Whether a parameter name is declared."""
        return name in self._parameters


__all__ = ["Configuration", "Parameter", "ParameterSpace"]
