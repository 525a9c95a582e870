"""Lazy generation and sampling of valid configurations."""

from __future__ import annotations

import copy
import itertools
import random
from collections.abc import Collection, Iterator, Mapping
from typing import TYPE_CHECKING

from kernel_autotuner.base import BaseComponent

from .errors import SpaceExhaustedError
from .space import Configuration

if TYPE_CHECKING:
    from .constraints import Constraint
    from .space import Parameter, ParameterSpace

DEFAULT_MAX_SAMPLING_ATTEMPTS = 1000


class ConfigurationGenerator(BaseComponent):
    """Single-pass iterator over the valid configurations of a space.

    Candidates are the Cartesian product of the parameter domains in
    declaration order, with the last declared parameter varying fastest.
    Candidates that violate a constraint are skipped. Once exhausted the
    iterator stays exhausted; call :meth:`fresh` for a new pass.

    Parameters and constraints are snapshotted at construction, so later
    declarations on the space do not affect an existing generator.
    """

    def __init__(
        self,
        space: ParameterSpace,
        *,
        max_sampling_attempts: int = DEFAULT_MAX_SAMPLING_ATTEMPTS,
        seed: int | None = None,
    ) -> None:
        """Snapshot the space and prepare sampling state."""
        super().__init__()
        if max_sampling_attempts <= 0:
            msg = "max_sampling_attempts must be positive"
            raise ValueError(msg)
        self._parameters: tuple[Parameter, ...] = space.parameters
        self._constraints: tuple[Constraint, ...] = space.constraints
        self._names = tuple(parameter.name for parameter in self._parameters)
        self._max_sampling_attempts = max_sampling_attempts
        # Pseudo-random sampling is sufficient for search heuristics.
        self._rng = random.Random(seed)  # noqa: S311
        self._iterator: Iterator[Configuration] | None = None
        self._exhausted = False
        self._valid_count: int | None = None
        self._valid: tuple[Configuration, ...] | None = None

    @property
    def parameters(self) -> tuple[Parameter, ...]:
        """Parameters in declaration order."""
        return self._parameters

    @property
    def names(self) -> tuple[str, ...]:
        """Parameter names in declaration order."""
        return self._names

    @property
    def max_sampling_attempts(self) -> int:
        """Retry bound used by :meth:`sample`."""
        return self._max_sampling_attempts

    @property
    def exhausted(self) -> bool:
        """Whether this generator's single pass has completed."""
        return self._exhausted

    @property
    def cartesian_size(self) -> int:
        """Number of unconstrained candidates."""
        size = 1
        for parameter in self._parameters:
            size *= len(parameter)
        return size

    def __iter__(self) -> ConfigurationGenerator:
        """Return the generator itself."""
        return self

    def __next__(self) -> Configuration:
        """Return the next valid configuration in enumeration order."""
        if self._exhausted:
            raise StopIteration
        if self._iterator is None:
            self._iterator = self._enumerate()
        try:
            return next(self._iterator)
        except StopIteration:
            self._exhausted = True
            self._iterator = None
            raise

    def fresh(self) -> ConfigurationGenerator:
        """Return a new, unstarted generator over the same snapshot."""
        clone = copy.copy(self)
        clone._iterator = None  # noqa: SLF001
        clone._exhausted = False  # noqa: SLF001
        # Independent stream, same seed lineage.
        clone._rng = random.Random(self._rng.random())  # noqa: S311, SLF001
        return clone

    def is_valid(self, assignment: Mapping[str, int]) -> bool:
        """Return True when the assignment satisfies every constraint."""
        return all(constraint.evaluate(assignment) for constraint in self._constraints)

    def count(self) -> int:
        """Number of valid configurations, computed once without storing them."""
        if self._valid_count is None:
            self._valid_count = sum(1 for _ in self._enumerate())
        return self._valid_count

    def configuration_at(self, index: int) -> Configuration | None:
        """Return the candidate at a Cartesian index, or None if it is invalid."""
        candidate = self._candidate_at(index)
        return candidate if self.is_valid(candidate) else None

    def sample(
        self,
        rng: random.Random | None = None,
        *,
        exclude: Collection[Configuration] = (),
    ) -> Configuration:
        """Draw a uniformly random valid configuration by rejection sampling.

        Draws that violate a constraint or appear in ``exclude`` are
        rejected. After ``max_sampling_attempts`` rejections the call fails
        with :class:`SpaceExhaustedError`.
        """
        source = rng or self._rng
        size = self.cartesian_size
        for _ in range(self._max_sampling_attempts):
            candidate = self._candidate_at(source.randrange(size))
            if candidate in exclude:
                continue
            if self.is_valid(candidate):
                return candidate
        raise SpaceExhaustedError(self._max_sampling_attempts)

    def remaining(self, exclude: Collection[Configuration] = ()) -> list[Configuration]:
        """Every valid configuration not in ``exclude``, in enumeration order.

        The valid set is enumerated once and cached, so repeated fallbacks
        only scan the valid configurations.
        """
        if self._valid is None:
            self._valid = tuple(self._enumerate())
            self._valid_count = len(self._valid)
        return [candidate for candidate in self._valid if candidate not in exclude]

    def draw(
        self,
        rng: random.Random | None = None,
        *,
        exclude: Collection[Configuration] = (),
    ) -> Configuration:
        """Sample a valid configuration, falling back to full enumeration.

        Raises :class:`SpaceExhaustedError` only when no valid configuration
        outside ``exclude`` exists at all.
        """
        source = rng or self._rng
        try:
            return self.sample(source, exclude=exclude)
        except SpaceExhaustedError:
            self.logger.debug(
                "Rejection sampling exhausted; enumerating remaining space",
                attempts=self._max_sampling_attempts,
                excluded=len(exclude),
            )
        candidates = self.remaining(exclude)
        if not candidates:
            raise SpaceExhaustedError(self._max_sampling_attempts)
        return source.choice(candidates)

    def _enumerate(self) -> Iterator[Configuration]:
        """Yield valid configurations in declaration order."""
        domains = [parameter.values for parameter in self._parameters]
        for values in itertools.product(*domains):
            candidate = Configuration(tuple(zip(self._names, values, strict=True)))
            if self.is_valid(candidate):
                yield candidate

    def _candidate_at(self, index: int) -> Configuration:
        """Decode a mixed-radix Cartesian index into a candidate."""
        size = self.cartesian_size
        if not 0 <= index < size:
            msg = f"Index {index} outside the Cartesian product of size {size}"
            raise IndexError(msg)
        values: list[int] = []
        remainder = index
        for parameter in reversed(self._parameters):
            remainder, position = divmod(remainder, len(parameter))
            values.append(parameter.values[position])
        values.reverse()
        return Configuration(tuple(zip(self._names, values, strict=True)))


__all__ = ["DEFAULT_MAX_SAMPLING_ATTEMPTS", "ConfigurationGenerator"]
