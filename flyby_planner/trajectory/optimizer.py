"""
Differential evolution over trajectory agents.

Each target agent is challenged by ``target + F * (b - c)`` (two other
distinct agents), binomially crossed over with the target with at least one
mutant component. The trial replaces the target when its delta-V is lower
or equal. Out-of-range components are reflected about the violated bound,
then clamped.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from flyby_planner.config import TrajectorySearchSettings
from flyby_planner.results import Cancelled, Failed, Ok, Outcome
from flyby_planner.trajectory.evaluator import TrajectoryEvaluator
from flyby_planner.trajectory.steps import TrajectoryStep

logger = logging.getLogger(__name__)

ProgressFn = Callable[[float, "GenerationResult"], None]


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Snapshot after one generation, for progress reporting only."""
    generation: int
    best_delta_v: float
    best_agent: np.ndarray
    population: np.ndarray
    fitness: np.ndarray
    best_steps: Optional[Tuple[TrajectoryStep, ...]] = None


@dataclass(frozen=True, slots=True)
class SearchResult:
    steps: Tuple[TrajectoryStep, ...]
    total_delta_v: float
    agent: np.ndarray
    generations: int
    history: Tuple[float, ...]  # best delta-V after each generation


def _never_cancelled() -> bool:
    return False


class TrajectoryOptimizer:
    """
    Population-based search for the lowest delta-V agent of one evaluator.

    The population persists between ``search`` and ``resume`` calls, so a
    run can be extended by more generations without restarting.
    """

    def __init__(self, evaluator: TrajectoryEvaluator, settings: TrajectorySearchSettings,
                 seed: Optional[int] = None) -> None:
        self.evaluator = evaluator
        self.settings = settings
        self.rng = np.random.default_rng(seed)
        self.pop_size = max(4, int(round(settings.pop_size_dim_scale * evaluator.dim)))
        self.population: Optional[np.ndarray] = None
        self.fitness: Optional[np.ndarray] = None
        self.generation = 0
        self.history: list[float] = []
        self.best_agent: Optional[np.ndarray] = None
        self.best_delta_v = math.inf

    @property
    def initialized(self) -> bool:
        return self.population is not None

    def initialize(self) -> None:
        """Draw the first population uniformly within the agent bounds."""
        lower, upper = self.evaluator.lower, self.evaluator.upper
        self.population = lower + self.rng.random((self.pop_size, self.evaluator.dim)) * (upper - lower)
        self.fitness = np.array([self.evaluator.delta_v(agent) for agent in self.population])
        self.generation = 0
        self.history = []
        best = int(np.argmin(self.fitness))
        self.best_agent = self.population[best].copy()
        self.best_delta_v = float(self.fitness[best])
        logger.debug("initial population of %d agents, best %.3f m/s", self.pop_size, self.best_delta_v)

    def _into_bounds(self, trial: np.ndarray) -> np.ndarray:
        lower, upper = self.evaluator.lower, self.evaluator.upper
        below = trial < lower
        trial[below] = 2.0 * lower[below] - trial[below]
        above = trial > upper
        trial[above] = 2.0 * upper[above] - trial[above]
        return np.clip(trial, lower, upper)

    def evolve(self) -> GenerationResult:
        """Run one generation with immediate replacement."""
        if not self.initialized:
            self.initialize()
        population, fitness, rng = self.population, self.fitness, self.rng
        size, dim = population.shape
        weight = self.settings.diff_weight
        crossover = self.settings.crossover_proba

        for target in range(size):
            others = rng.choice(size - 1, size=2, replace=False)
            others[others >= target] += 1
            b, c = others
            mutant = population[target] + weight * (population[b] - population[c])
            mask = rng.random(dim) < crossover
            mask[rng.integers(dim)] = True
            trial = self._into_bounds(np.where(mask, mutant, population[target]))

            cost = self.evaluator.delta_v(trial)
            if cost <= fitness[target]:
                population[target] = trial
                fitness[target] = cost
                if cost < self.best_delta_v:
                    self.best_delta_v = cost
                    self.best_agent = trial.copy()

        self.generation += 1
        self.history.append(self.best_delta_v)
        logger.debug("generation %d best %.3f m/s", self.generation, self.best_delta_v)

        best_steps = None
        if self.settings.snapshot_best and math.isfinite(self.best_delta_v):
            best_steps = self.evaluator.evaluate(self.best_agent).steps
        return GenerationResult(
            generation=self.generation,
            best_delta_v=self.best_delta_v,
            best_agent=self.best_agent.copy(),
            population=population.copy(),
            fitness=fitness.copy(),
            best_steps=best_steps,
        )

    def search(self, max_generations: Optional[int] = None, on_progress: Optional[ProgressFn] = None,
               is_cancelled: Callable[[], bool] = _never_cancelled) -> Outcome[SearchResult]:
        """
        Start a new run from a fresh population.

        Args:
            max_generations: Generations to run; defaults to ``settings.max_generations``
            on_progress: Called after every generation with (fraction done, snapshot)
            is_cancelled: Polled before every generation

        Returns:
            Ok(SearchResult), Cancelled(), or Failed when no feasible agent was found
        """
        self.initialize()
        return self.resume(max_generations, on_progress, is_cancelled)

    def resume(self, generations: Optional[int] = None, on_progress: Optional[ProgressFn] = None,
               is_cancelled: Callable[[], bool] = _never_cancelled) -> Outcome[SearchResult]:
        """Continue the current population for ``generations`` more generations."""
        if not self.initialized:
            self.initialize()
        generations = self.settings.max_generations if generations is None else int(generations)
        for k in range(generations):
            if is_cancelled():
                logger.info("trajectory search cancelled after %d generations", self.generation)
                return Cancelled()
            snapshot = self.evolve()
            if on_progress is not None:
                on_progress((k + 1) / generations, snapshot)

        if not math.isfinite(self.best_delta_v):
            return Failed("no feasible trajectory found")
        evaluation = self.evaluator.evaluate(self.best_agent)
        return Ok(SearchResult(
            steps=evaluation.steps,
            total_delta_v=evaluation.total_delta_v,
            agent=self.best_agent.copy(),
            generations=self.generation,
            history=tuple(self.history),
        ))
