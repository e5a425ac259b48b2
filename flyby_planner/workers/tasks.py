"""
Long-running computations hosted by a ComputeWorker.

A task is built inside the worker by a zero-argument factory (the task class
itself), so it must be importable at module level for the process backend.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from flyby_planner.bodies import Body, BodyCatalog, kerbol_system
from flyby_planner.config import PlannerConfig, SequenceParameters, TrajectorySearchInput
from flyby_planner.results import Failed, Outcome
from flyby_planner.sequences.generator import FlybySequenceGenerator
from flyby_planner.trajectory.evaluator import TrajectoryEvaluator
from flyby_planner.trajectory.optimizer import TrajectoryOptimizer

logger = logging.getLogger(__name__)


class TaskContext(Protocol):
    """What a task sees of the worker while it runs."""

    def is_cancelled(self) -> bool: ...

    def progress(self, fraction: float, data: Any = None) -> None: ...

    def debug(self, data: Any) -> None: ...


class Task:
    """
    Base task: holds the body catalog and the configuration.

    ``run`` and ``resume`` return an Outcome; ``Cancelled`` becomes a Stopped
    message and any raised exception a ``Complete(Failed)``.
    """

    def __init__(self) -> None:
        self.catalog: BodyCatalog = kerbol_system
        self.config: Optional[PlannerConfig] = None

    def initialize(self, config: PlannerConfig) -> None:
        self.config = config

    def receive(self, data: Any) -> None:
        """Accept a replacement body catalog (a BodyCatalog or an iterable of Body)."""
        if isinstance(data, BodyCatalog):
            self.catalog = data
        elif isinstance(data, (list, tuple)) and all(isinstance(b, Body) for b in data):
            self.catalog = BodyCatalog(data)
        else:
            logger.warning("%s ignored data of type %s", type(self).__name__, type(data).__name__)

    def run(self, payload: Any, ctx: TaskContext) -> Outcome:
        raise NotImplementedError

    def resume(self, payload: Any, ctx: TaskContext) -> Outcome:
        return Failed(f"{type(self).__name__} cannot continue a run")


class SequenceGenerationTask(Task):
    """Runs the flyby sequence generator; reports generator statistics as debug data."""

    def run(self, payload: SequenceParameters, ctx: TaskContext) -> Outcome:
        generator = FlybySequenceGenerator(self.catalog, self.config.flyby_sequence)
        outcome = generator.generate(payload, on_progress=ctx.progress, is_cancelled=ctx.is_cancelled)
        ctx.debug(generator.stats.as_dict())
        return outcome


class TrajectorySearchTask(Task):
    """
    Runs differential evolution for one sequence and departure window.

    The optimizer of the last run is kept, so a Continue message with a
    generation count (or None for ``maxGenerations``) extends it.
    """

    def __init__(self) -> None:
        super().__init__()
        self.optimizer: Optional[TrajectoryOptimizer] = None

    def run(self, payload: TrajectorySearchInput, ctx: TaskContext) -> Outcome:
        settings = self.config.trajectory_search
        evaluator = TrajectoryEvaluator(
            self.catalog,
            payload.sequence,
            payload.start_date,
            payload.end_date,
            payload.altitude,
            settings,
        )
        self.optimizer = TrajectoryOptimizer(evaluator, settings, seed=payload.seed)
        logger.info("searching %s with %d agents of dimension %d",
                    payload.sequence, self.optimizer.pop_size, evaluator.dim)
        return self.optimizer.search(on_progress=ctx.progress, is_cancelled=ctx.is_cancelled)

    def resume(self, payload: Optional[int], ctx: TaskContext) -> Outcome:
        if self.optimizer is None:
            return Failed("no trajectory search to continue")
        return self.optimizer.resume(payload, on_progress=ctx.progress, is_cancelled=ctx.is_cancelled)
