"""Search strategies that decide which configuration to measure next."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

from kernel_autotuner.base import BaseComponent

from .errors import SpaceExhaustedError
from .generator import ConfigurationGenerator
from .schemas import StrategyKind

if TYPE_CHECKING:
    from .schemas import ExecutionResult
    from .space import Configuration, Parameter

DEFAULT_MAX_PERTURBATION_ATTEMPTS = 100


class SearchStrategy(Protocol):
    """Protocol implemented by every search strategy."""

    def initialize(self, generator: ConfigurationGenerator) -> None:
        """Prepare the strategy for a new session over ``generator``."""
        ...

    def has_next(self) -> bool:
        """Return whether another configuration will be proposed."""
        ...

    def next(self) -> Configuration:
        """Return the next configuration to measure."""
        ...

    def record(self, result: ExecutionResult) -> None:
        """Feed back the outcome of the most recent proposal."""
        ...


class _StrategyBase(BaseComponent):
    """Shared proposal bookkeeping and the terminal-state latch.

    Subclasses implement ``_reset``, ``_is_finished``, ``_propose`` and,
    when adaptive, ``_observe``.
    """

    kind: ClassVar[StrategyKind]
    requires_feedback: ClassVar[bool] = False

    def __init__(self, *, seed: int | None = None) -> None:
        """Store the seed; state is created by :meth:`initialize`."""
        super().__init__()
        self._seed = seed
        # Pseudo-random sampling is sufficient for search heuristics.
        self._rng = random.Random(seed)  # noqa: S311
        self._generator: ConfigurationGenerator | None = None
        self._pending: Configuration | None = None
        self._finished = False
        self._proposals = 0

    def initialize(self, generator: ConfigurationGenerator) -> None:
        """Reset all search state for a new session."""
        self._generator = generator
        self._rng = random.Random(self._seed)  # noqa: S311
        self._pending = None
        self._finished = False
        self._proposals = 0
        self._reset()
        self.logger.info(
            "Initialized search strategy",
            strategy=self.kind.value,
            dimensions=len(generator.names),
            **self._describe(),
        )

    def has_next(self) -> bool:
        """Return False once the strategy has terminated, and forever after."""
        if self._finished or self._generator is None:
            return False
        if self._is_finished():
            self._finished = True
            self.logger.debug(
                "Search strategy finished",
                strategy=self.kind.value,
                proposals=self._proposals,
            )
        return not self._finished

    def next(self) -> Configuration:
        """Propose the next configuration."""
        if self.requires_feedback and self._pending is not None:
            msg = "record() must be called for the previous proposal first"
            raise RuntimeError(msg)
        if not self.has_next():
            msg = f"{type(self).__name__} has no further configurations to propose"
            raise RuntimeError(msg)
        candidate = self._propose()
        self._pending = candidate
        self._proposals += 1
        return candidate

    def record(self, result: ExecutionResult) -> None:
        """Accept feedback for the pending proposal."""
        if self._pending is None:
            if self.requires_feedback:
                msg = "record() called without a pending proposal"
                raise RuntimeError(msg)
            return
        if result.configuration != self._pending:
            msg = (
                "Recorded result does not match the pending proposal: "
                f"{result.configuration.describe()} != {self._pending.describe()}"
            )
            raise ValueError(msg)
        self._pending = None
        self._observe(result)

    @property
    def proposals(self) -> int:
        """Number of configurations proposed since initialization."""
        return self._proposals

    @property
    def generator(self) -> ConfigurationGenerator:
        """Generator bound by :meth:`initialize`."""
        if self._generator is None:
            msg = "Strategy must be initialized before use"
            raise RuntimeError(msg)
        return self._generator

    def _describe(self) -> dict[str, Any]:
        return {}

    def _reset(self) -> None:
        raise NotImplementedError

    def _is_finished(self) -> bool:
        raise NotImplementedError

    def _propose(self) -> Configuration:
        raise NotImplementedError

    def _observe(self, result: ExecutionResult) -> None:  # noqa: ARG002
        return None


class FullSearch(_StrategyBase):
    """Visit every valid configuration once, in enumeration order."""

    kind = StrategyKind.FULL

    def __init__(self) -> None:
        """Full search is deterministic and takes no options."""
        super().__init__(seed=None)
        self._lookahead: Configuration | None = None

    def _reset(self) -> None:
        self._lookahead = None

    def _is_finished(self) -> bool:
        if self._lookahead is None:
            self._lookahead = next(self.generator, None)
        return self._lookahead is None

    def _propose(self) -> Configuration:
        candidate = self._lookahead
        if candidate is None:  # pragma: no cover - guarded by has_next
            msg = "Full search has no lookahead configuration"
            raise RuntimeError(msg)
        self._lookahead = None
        return candidate


class RandomSearch(_StrategyBase):
    """Uniform random draws without replacement.

    Either ``max_draws`` or ``fraction`` (of the valid space) bounds the
    number of proposals. The search also ends once every valid configuration
    has been drawn.
    """

    kind = StrategyKind.RANDOM

    def __init__(
        self,
        *,
        max_draws: int | None = None,
        fraction: float | None = None,
        seed: int | None = None,
    ) -> None:
        """Configure the draw limit."""
        super().__init__(seed=seed)
        if max_draws is None and fraction is None:
            msg = "RandomSearch requires max_draws or fraction"
            raise ValueError(msg)
        if max_draws is not None and max_draws <= 0:
            msg = "max_draws must be positive"
            raise ValueError(msg)
        if fraction is not None and not 0.0 < fraction <= 1.0:
            msg = "fraction must be within (0, 1]"
            raise ValueError(msg)
        self._max_draws_option = max_draws
        self._fraction = fraction
        self._max_draws = max_draws or 0
        self._seen: set[Configuration] = set()
        self._lookahead: Configuration | None = None

    @property
    def max_draws(self) -> int:
        """Resolved draw limit for the current session."""
        return self._max_draws

    def _describe(self) -> dict[str, Any]:
        return {"max_draws": self._max_draws, "fraction": self._fraction}

    def _reset(self) -> None:
        self._seen = set()
        self._lookahead = None
        if self._max_draws_option is not None:
            self._max_draws = self._max_draws_option
        else:
            fraction = self._fraction or 1.0
            self._max_draws = max(1, math.ceil(fraction * self.generator.count()))

    def _is_finished(self) -> bool:
        if self._proposals >= self._max_draws:
            return True
        if self._lookahead is None:
            try:
                self._lookahead = self.generator.draw(self._rng, exclude=self._seen)
            except SpaceExhaustedError:
                return True
        return False

    def _propose(self) -> Configuration:
        candidate = self._lookahead
        if candidate is None:  # pragma: no cover - guarded by has_next
            msg = "Random search has no lookahead configuration"
            raise RuntimeError(msg)
        self._lookahead = None
        self._seen.add(candidate)
        return candidate


class SimulatedAnnealing(_StrategyBase):
    """Single-parameter moves accepted by the Metropolis criterion.

    The temperature decays geometrically by ``cooling_factor`` after every
    recorded result and never drops below ``temperature_floor``. When no
    factor is given it is derived so that the floor is reached at
    ``max_iterations``. The walk ends on the floor either way.
    """

    kind = StrategyKind.ANNEALING
    requires_feedback = True

    def __init__(
        self,
        *,
        max_iterations: int = 100,
        initial_temperature: float = 1.0,
        cooling_factor: float | None = None,
        temperature_floor: float = 1e-3,
        max_perturbation_attempts: int = DEFAULT_MAX_PERTURBATION_ATTEMPTS,
        seed: int | None = None,
    ) -> None:
        """Validate and store the annealing schedule."""
        super().__init__(seed=seed)
        if max_iterations <= 0:
            msg = "max_iterations must be positive"
            raise ValueError(msg)
        if temperature_floor <= 0 or initial_temperature <= temperature_floor:
            msg = "initial_temperature must exceed a positive temperature_floor"
            raise ValueError(msg)
        if cooling_factor is not None and not 0.0 < cooling_factor < 1.0:
            msg = "cooling_factor must be within (0, 1)"
            raise ValueError(msg)
        if max_perturbation_attempts <= 0:
            msg = "max_perturbation_attempts must be positive"
            raise ValueError(msg)
        self._max_iterations = max_iterations
        self._initial_temperature = initial_temperature
        self._temperature_floor = temperature_floor
        self._cooling_factor = cooling_factor or (
            (temperature_floor / initial_temperature) ** (1.0 / max_iterations)
        )
        self._max_perturbation_attempts = max_perturbation_attempts

        self._temperature = initial_temperature
        self._temperatures: list[float] = [initial_temperature]
        self._iteration = 0
        self._current: Configuration | None = None
        self._current_fitness = math.inf
        self._measured_current = False
        self._best: Configuration | None = None
        self._best_fitness = math.inf
        self._empty = False

    @property
    def cooling_factor(self) -> float:
        """Geometric decay applied per iteration."""
        return self._cooling_factor

    @property
    def temperature(self) -> float:
        """Current temperature."""
        return self._temperature

    @property
    def temperature_history(self) -> tuple[float, ...]:
        """Temperature before the first and after every iteration."""
        return tuple(self._temperatures)

    @property
    def iteration(self) -> int:
        """Number of recorded results."""
        return self._iteration

    @property
    def current(self) -> Configuration | None:
        """Configuration the walk currently sits on."""
        return self._current

    @property
    def best(self) -> tuple[Configuration, float] | None:
        """Best configuration seen so far with its elapsed time."""
        if self._best is None or math.isinf(self._best_fitness):
            return None
        return self._best, self._best_fitness

    def acceptance_probability(self, candidate_fitness: float) -> float:
        """Probability of moving to a candidate with the given fitness."""
        if not self._measured_current or candidate_fitness <= self._current_fitness:
            return 1.0
        if math.isinf(candidate_fitness):
            return 0.0
        delta = candidate_fitness - self._current_fitness
        return math.exp(-delta / self._temperature)

    def _temperature_at(self, iteration: int) -> float:
        """Temperature after ``iteration`` results, snapped onto the floor.

        The last iteration of the budget always lands on the floor, as does
        any value within rounding distance of it.
        """
        temperature = self._initial_temperature * self._cooling_factor**iteration
        if iteration >= self._max_iterations or temperature <= self._temperature_floor or (
            math.isclose(temperature, self._temperature_floor, rel_tol=1e-9)
        ):
            return self._temperature_floor
        return temperature

    def _describe(self) -> dict[str, Any]:
        return {
            "max_iterations": self._max_iterations,
            "initial_temperature": self._initial_temperature,
            "cooling_factor": self._cooling_factor,
            "temperature_floor": self._temperature_floor,
        }

    def _reset(self) -> None:
        self._temperature = self._initial_temperature
        self._temperatures = [self._initial_temperature]
        self._iteration = 0
        self._current_fitness = math.inf
        self._measured_current = False
        self._best = None
        self._best_fitness = math.inf
        try:
            self._current = self.generator.draw(self._rng)
            self._empty = False
        except SpaceExhaustedError:
            self._current = None
            self._empty = True

    def _is_finished(self) -> bool:
        return (
            self._empty
            or self._iteration >= self._max_iterations
            or self._temperature <= self._temperature_floor
        )

    def _propose(self) -> Configuration:
        if self._current is None:  # pragma: no cover - guarded by _empty
            msg = "Annealing has no current configuration"
            raise RuntimeError(msg)
        if not self._measured_current:
            return self._current
        return self._perturb(self._current)

    def _perturb(self, current: Configuration) -> Configuration:
        """Change one randomly chosen parameter to a different valid value."""
        generator = self.generator
        movable = [parameter for parameter in generator.parameters if len(parameter) > 1]
        if movable:
            for _ in range(self._max_perturbation_attempts):
                parameter = self._rng.choice(movable)
                options = [value for value in parameter.values if value != current[parameter.name]]
                candidate = current.replace(parameter.name, self._rng.choice(options))
                if generator.is_valid(candidate):
                    return candidate
        try:
            return generator.draw(self._rng, exclude={current})
        except SpaceExhaustedError:
            return current

    def _observe(self, result: ExecutionResult) -> None:
        fitness = result.fitness
        if self._rng.random() < self.acceptance_probability(fitness):
            self._current = result.configuration
            self._current_fitness = fitness
        self._measured_current = True
        if fitness < self._best_fitness:
            self._best = result.configuration
            self._best_fitness = fitness
        self._iteration += 1
        self._temperature = self._temperature_at(self._iteration)
        self._temperatures.append(self._temperature)


@dataclass
class Particle:
    """One member of the swarm, positioned on domain indices."""

    position: Configuration
    velocity: list[float]
    best_position: Configuration | None = None
    best_fitness: float = math.inf
    history: list[float] = field(default_factory=list)


class ParticleSwarm(_StrategyBase):
    """Discrete particle swarm optimisation over domain indices.

    Each generation proposes every particle's position once. After the
    generation is recorded the particles move with
    ``v = w*v + c1*r1*(pbest - x) + c2*r2*(gbest - x)``. The new index is
    rounded and clamped to the domain. Positions that break a constraint
    are repaired one parameter at a time, falling back to a fresh valid
    draw.
    """

    kind = StrategyKind.PSO
    requires_feedback = True

    def __init__(  # noqa: PLR0913
        self,
        *,
        swarm_size: int = 4,
        max_generations: int = 20,
        stagnation_limit: int = 5,
        inertia: float = 0.5,
        cognitive_weight: float = 1.5,
        social_weight: float = 1.5,
        max_repair_attempts: int = DEFAULT_MAX_PERTURBATION_ATTEMPTS,
        seed: int | None = None,
    ) -> None:
        """Validate and store the swarm settings."""
        super().__init__(seed=seed)
        for label, value in (
            ("swarm_size", swarm_size),
            ("max_generations", max_generations),
            ("stagnation_limit", stagnation_limit),
            ("max_repair_attempts", max_repair_attempts),
        ):
            if value <= 0:
                msg = f"{label} must be positive"
                raise ValueError(msg)
        if min(inertia, cognitive_weight, social_weight) < 0:
            msg = "Velocity weights must be non-negative"
            raise ValueError(msg)
        self._swarm_size = swarm_size
        self._max_generations = max_generations
        self._stagnation_limit = stagnation_limit
        self._inertia = inertia
        self._cognitive_weight = cognitive_weight
        self._social_weight = social_weight
        self._max_repair_attempts = max_repair_attempts

        self._particles: list[Particle] = []
        self._cursor = 0
        self._generation = 0
        self._stagnant_generations = 0
        self._improved = False
        self._global_best: Configuration | None = None
        self._global_best_fitness = math.inf
        self._global_best_history: list[float] = []

    @property
    def particles(self) -> tuple[Particle, ...]:
        """Current swarm members."""
        return tuple(self._particles)

    @property
    def generation(self) -> int:
        """Number of completed generations."""
        return self._generation

    @property
    def global_best(self) -> tuple[Configuration, float] | None:
        """Best configuration found by any particle with its elapsed time."""
        if self._global_best is None:
            return None
        return self._global_best, self._global_best_fitness

    @property
    def global_best_history(self) -> tuple[float, ...]:
        """Global-best elapsed time at the end of each generation."""
        return tuple(self._global_best_history)

    def _describe(self) -> dict[str, Any]:
        return {
            "swarm_size": self._swarm_size,
            "max_generations": self._max_generations,
            "stagnation_limit": self._stagnation_limit,
            "inertia": self._inertia,
            "cognitive_weight": self._cognitive_weight,
            "social_weight": self._social_weight,
        }

    def _reset(self) -> None:
        self._particles = []
        self._cursor = 0
        self._generation = 0
        self._stagnant_generations = 0
        self._improved = False
        self._global_best = None
        self._global_best_fitness = math.inf
        self._global_best_history = []

        occupied: set[Configuration] = set()
        for _ in range(self._swarm_size):
            try:
                position = self.generator.draw(self._rng, exclude=occupied)
            except SpaceExhaustedError:
                break
            occupied.add(position)
            velocity = [self._rng.uniform(-1.0, 1.0) for _ in self.generator.names]
            self._particles.append(Particle(position=position, velocity=velocity))

        if len(self._particles) < self._swarm_size:
            self.logger.info(
                "Swarm smaller than requested",
                requested=self._swarm_size,
                actual=len(self._particles),
            )

    def _is_finished(self) -> bool:
        return (
            not self._particles
            or self._generation >= self._max_generations
            or self._stagnant_generations >= self._stagnation_limit
        )

    def _propose(self) -> Configuration:
        return self._particles[self._cursor].position

    def _observe(self, result: ExecutionResult) -> None:
        particle = self._particles[self._cursor]
        fitness = result.fitness
        particle.history.append(fitness)
        if fitness < particle.best_fitness:
            particle.best_fitness = fitness
            particle.best_position = result.configuration
        if fitness < self._global_best_fitness:
            self._global_best_fitness = fitness
            self._global_best = result.configuration
            self._improved = True

        self._cursor += 1
        if self._cursor < len(self._particles):
            return

        self._cursor = 0
        self._generation += 1
        self._global_best_history.append(self._global_best_fitness)
        self._stagnant_generations = 0 if self._improved else self._stagnant_generations + 1
        self._improved = False
        self.logger.debug(
            "Completed swarm generation",
            generation=self._generation,
            global_best_ms=self._global_best_fitness,
            stagnant_generations=self._stagnant_generations,
        )
        for member in self._particles:
            self._move(member)

    def _move(self, particle: Particle) -> None:
        """Apply the velocity update and repair the resulting position."""
        generator = self.generator
        new_values: dict[str, int] = {}
        for index, parameter in enumerate(generator.parameters):
            position = parameter.index_of(particle.position[parameter.name])
            personal = self._index_or(parameter, particle.best_position, position)
            social = self._index_or(parameter, self._global_best, position)
            span = len(parameter) - 1
            velocity = (
                self._inertia * particle.velocity[index]
                + self._cognitive_weight * self._rng.random() * (personal - position)
                + self._social_weight * self._rng.random() * (social - position)
            )
            velocity = max(-float(span), min(float(span), velocity))
            particle.velocity[index] = velocity
            target = min(span, max(0, round(position + velocity)))
            new_values[parameter.name] = parameter.values[target]

        candidate = particle.position
        for name, value in new_values.items():
            candidate = candidate.replace(name, value)
        particle.position = self._repair(candidate, particle.position)

    @staticmethod
    def _index_or(parameter: Parameter, reference: Configuration | None, default: int) -> int:
        if reference is None:
            return default
        return parameter.index_of(reference[parameter.name])

    def _repair(self, candidate: Configuration, previous: Configuration) -> Configuration:
        """Resample offending parameter values until the position is valid.

        Parameters that moved are resampled first. Every parameter gets at
        most as many draws as its domain has values, and the total is capped
        by ``max_repair_attempts``.
        """
        generator = self.generator
        if generator.is_valid(candidate):
            return candidate

        parameters = sorted(
            generator.parameters,
            key=lambda parameter: candidate[parameter.name] == previous[parameter.name],
        )
        attempts = 0
        for parameter in parameters:
            for _ in range(len(parameter)):
                if attempts >= self._max_repair_attempts:
                    break
                attempts += 1
                repaired = candidate.replace(
                    parameter.name,
                    self._rng.choice(parameter.values),
                )
                if generator.is_valid(repaired):
                    return repaired
        try:
            return generator.draw(self._rng)
        except SpaceExhaustedError:
            return previous


__all__ = [
    "FullSearch",
    "Particle",
    "ParticleSwarm",
    "RandomSearch",
    "SearchStrategy",
    "SimulatedAnnealing",
]
