"""Tests for lazy enumeration and sampling of valid configurations."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

import pytest

from kernel_autotuner.tuning.errors import SpaceExhaustedError
from kernel_autotuner.tuning.generator import ConfigurationGenerator
from kernel_autotuner.tuning.space import ParameterSpace

if TYPE_CHECKING:
    from collections.abc import Iterator

    from kernel_autotuner.tuning.space import Configuration


def _constrained_space() -> ParameterSpace:
    space = ParameterSpace()
    space.declare_parameter("A", [1, 2, 4, 8])
    space.declare_parameter("B", [2, 3])
    space.declare_constraint("A multiple-of B")
    return space


def _pairs(generator: ConfigurationGenerator) -> list[tuple[int, int]]:
    return [(configuration["A"], configuration["B"]) for configuration in generator]


class TestEnumeration:
    """Full enumeration walks the valid subset in declaration order."""

    def test_only_valid_configurations_are_yielded(self) -> None:
        """``A multiple-of B`` keeps exactly the three even pairs."""
        generator = ConfigurationGenerator(_constrained_space())

        assert _pairs(generator) == [(2, 2), (4, 2), (8, 2)]

    def test_multiple_of_scenario_yields_three_pairs(self) -> None:
        """A in {2, 4, 8} multiple-of B in {2, 3} keeps exactly three pairs."""
        space = ParameterSpace()
        space.declare_parameter("A", [2, 4, 8])
        space.declare_parameter("B", [2, 3])
        space.declare_constraint("A multiple-of B")
        generator = ConfigurationGenerator(space)

        assert generator.cartesian_size == 6
        assert generator.count() == 3
        assert _pairs(generator) == [(2, 2), (4, 2), (8, 2)]

    def test_last_parameter_varies_fastest(self) -> None:
        """Without constraints the full product is yielded in order."""
        space = ParameterSpace()
        space.declare_parameter("X", [1, 2])
        space.declare_parameter("Y", [10, 20, 30])

        values = [(c["X"], c["Y"]) for c in ConfigurationGenerator(space)]

        assert values == [
            (1, 10),
            (1, 20),
            (1, 30),
            (2, 10),
            (2, 20),
            (2, 30),
        ]

    def test_single_pass_and_fresh(self) -> None:
        """An exhausted generator stays exhausted until refreshed."""
        generator = ConfigurationGenerator(_constrained_space())

        assert len(list(generator)) == 3
        assert generator.exhausted is True
        assert list(generator) == []

        assert _pairs(generator.fresh()) == [(2, 2), (4, 2), (8, 2)]

    def test_count_and_cartesian_size(self) -> None:
        """Counting does not consume the iterator."""
        generator = ConfigurationGenerator(_constrained_space())

        assert generator.cartesian_size == 8
        assert generator.count() == 3
        assert len(list(generator)) == 3

    def test_space_is_snapshotted(self) -> None:
        """Later declarations do not affect an existing generator."""
        space = _constrained_space()
        generator = ConfigurationGenerator(space)
        space.declare_constraint("A equals 8")

        assert generator.count() == 3
        assert ConfigurationGenerator(space).count() == 1

    def test_empty_valid_space(self) -> None:
        """A fully constrained space yields nothing."""
        space = _constrained_space()
        space.declare_constraint("A equals 1")

        assert list(ConfigurationGenerator(space)) == []

    def test_configuration_at_uses_mixed_radix(self) -> None:
        """Cartesian indices decode with the last parameter fastest."""
        generator = ConfigurationGenerator(_constrained_space())

        assert generator.configuration_at(2) is not None
        assert generator.configuration_at(2).as_dict() == {"A": 2, "B": 2}  # type: ignore[union-attr]
        assert generator.configuration_at(3) is None
        with pytest.raises(IndexError):
            generator.configuration_at(8)


class TestSampling:
    """Rejection sampling with an enumeration fallback."""

    def test_sample_returns_valid_configurations(self) -> None:
        """Every sampled configuration satisfies the constraints."""
        space = _constrained_space()
        generator = ConfigurationGenerator(space, seed=3)

        for _ in range(20):
            assert space.evaluate(generator.sample())

    def test_seeded_sampling_is_reproducible(self) -> None:
        """Equal seeds give equal draws."""
        first = ConfigurationGenerator(_constrained_space(), seed=42)
        second = ConfigurationGenerator(_constrained_space(), seed=42)

        assert [first.sample() for _ in range(5)] == [second.sample() for _ in range(5)]

    def test_sample_raises_after_bound(self) -> None:
        """An impossible draw fails once the retry bound is spent."""
        space = _constrained_space()
        space.declare_constraint("A equals 1")
        generator = ConfigurationGenerator(space, max_sampling_attempts=5)

        with pytest.raises(SpaceExhaustedError) as exc_info:
            generator.sample()

        assert exc_info.value.attempts == 5

    def test_draw_falls_back_to_enumeration(self) -> None:
        """A rare valid configuration is still found by ``draw``."""
        space = ParameterSpace()
        space.declare_parameter("A", list(range(1, 201)))
        space.declare_constraint("A equals 137")
        generator = ConfigurationGenerator(space, max_sampling_attempts=1)

        drawn = generator.draw(random.Random(0))  # noqa: S311

        assert drawn.as_dict() == {"A": 137}

    def test_fallback_enumerates_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Repeated fallbacks reuse the valid set instead of re-walking the product."""
        space = ParameterSpace()
        space.declare_parameter("A", list(range(1, 201)))
        space.declare_constraint("A multiple-of 50")
        generator = ConfigurationGenerator(space, max_sampling_attempts=1, seed=5)
        walks: list[int] = []
        enumerate_valid = generator._enumerate  # noqa: SLF001

        def counting_enumerate() -> Iterator[Configuration]:
            walks.append(1)
            return enumerate_valid()

        monkeypatch.setattr(generator, "_enumerate", counting_enumerate)
        seen: set[Configuration] = set()
        for _ in range(4):
            seen.add(generator.draw(exclude=seen))

        assert {c["A"] for c in seen} == {50, 100, 150, 200}
        assert len(walks) == 1
        assert generator.count() == 4
        assert len(walks) == 1

    def test_draw_honours_exclusions(self) -> None:
        """Excluded configurations are never drawn; exhaustion is reported."""
        generator = ConfigurationGenerator(_constrained_space(), seed=1)
        seen = set()
        for _ in range(3):
            seen.add(generator.draw(exclude=seen))

        assert {(c["A"], c["B"]) for c in seen} == {(2, 2), (4, 2), (8, 2)}
        with pytest.raises(SpaceExhaustedError):
            generator.draw(exclude=seen)

    def test_invalid_sampling_bound(self) -> None:
        """The retry bound must be positive."""
        with pytest.raises(ValueError, match="max_sampling_attempts"):
            ConfigurationGenerator(_constrained_space(), max_sampling_attempts=0)
