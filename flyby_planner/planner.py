"""
Host-side entry points.

SequencePlanner and TrajectoryPlanner validate their inputs synchronously,
then run the computation on a ComputeWorker they own. Invalid input raises
InputValidationError (or a pydantic ValidationError from the input models)
before anything is sent to the worker.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Callable, Iterable, Optional, Union

from flyby_planner.bodies import BodyCatalog, kerbol_system
from flyby_planner.config import PlannerConfig, SequenceParameters, TrajectorySearchInput
from flyby_planner.constants import MAX_ALTITUDE_SOI_FRACTION
from flyby_planner.results import Outcome
from flyby_planner.sequences.sequence import FlybySequence
from flyby_planner.workers.tasks import SequenceGenerationTask, Task, TrajectorySearchTask
from flyby_planner.workers.worker import ComputeWorker

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, Any], None]
DebugCallback = Callable[[Any], None]


class InputValidationError(ValueError):
    """Caller input rejected before any computation starts."""


def max_parking_altitude(catalog: BodyCatalog, body_id: int) -> int:
    """Highest parking orbit altitude (m) accepted around a body."""
    body = catalog.body(body_id)
    return math.floor(MAX_ALTITUDE_SOI_FRACTION * (body.soi - body.radius))


def validate_endpoints(catalog: BodyCatalog, origin_id: int, destination_id: int) -> None:
    if origin_id == destination_id:
        raise InputValidationError("Same origin and destination bodies.")
    for body_id in (origin_id, destination_id):
        if body_id not in catalog:
            raise InputValidationError(f"Unknown body id {body_id}.")
        if catalog.body(body_id).is_root():
            raise InputValidationError(f"{catalog.body(body_id).name} does not orbit any body.")
    if catalog.attractor_of(origin_id) != catalog.attractor_of(destination_id):
        raise InputValidationError("Origin and destination bodies must orbit the same body.")


def validate_altitude(catalog: BodyCatalog, body_id: int, altitude: float) -> None:
    highest = max_parking_altitude(catalog, body_id)
    if not 0.0 <= altitude <= highest:
        name = catalog.body(body_id).name
        raise InputValidationError(f"Altitude around {name} must be between 0 and {highest} m.")


class Planner:
    task_factory: Callable[[], Task]

    def __init__(self, config: Optional[PlannerConfig] = None, catalog: Optional[BodyCatalog] = None,
                 backend: str = "process") -> None:
        self.config = config if config is not None else PlannerConfig()
        self.catalog = catalog if catalog is not None else kerbol_system
        self.backend = backend
        self._worker: Optional[ComputeWorker] = None

    @property
    def worker(self) -> ComputeWorker:
        """The worker, started and initialized on first use."""
        if self._worker is None:
            worker = ComputeWorker(self.task_factory, backend=self.backend)
            try:
                worker.initialize(self.config)
                if self.catalog is not kerbol_system:
                    worker.send_data(self.catalog)
            except BaseException:
                worker.close()
                raise
            self._worker = worker
        return self._worker

    def stop(self) -> None:
        """Ask the active computation to stop; safe from any thread."""
        if self._worker is not None:
            self._worker.stop()

    def close(self) -> None:
        if self._worker is not None:
            self._worker.close()
            self._worker = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SequencePlanner(Planner):
    """Generates ranked flyby sequences on a worker."""

    task_factory = SequenceGenerationTask

    def generate(self, params: Union[SequenceParameters, dict], on_progress: Optional[ProgressCallback] = None,
                 on_debug: Optional[DebugCallback] = None) -> Outcome:
        """
        Args:
            params: Tree limits; a dict may use the camelCase option names
            on_progress: Called with (fraction of candidates screened, sequences kept so far)
            on_debug: Called with the generator statistics at the end of the run

        Returns:
            Ok(list[FlybySequence]) sorted by score, Cancelled() or Failed(reason)
        """
        if not isinstance(params, SequenceParameters):
            params = SequenceParameters.model_validate(params)
        validate_endpoints(self.catalog, params.departure_id, params.destination_id)
        return self.worker.run(params, on_progress, on_debug)


class TrajectoryPlanner(Planner):
    """Searches the cheapest trajectory along a fixed sequence on a worker."""

    task_factory = TrajectorySearchTask

    def search(self, sequence: Union[FlybySequence, Iterable[int]], start_date: float, end_date: float,
               altitude: float, on_progress: Optional[ProgressCallback] = None,
               seed: Optional[int] = None) -> Outcome:
        """
        Args:
            sequence: Body ids (or a FlybySequence) from origin to destination
            start_date: Departure window start (s)
            end_date: Departure window end (s)
            altitude: Parking orbit altitude (m) at departure, also used at arrival
            on_progress: Called with (fraction of generations done, GenerationResult)
            seed: Random seed of the optimizer

        Returns:
            Ok(SearchResult), Cancelled() or Failed(reason)
        """
        ids = sequence.ids if isinstance(sequence, FlybySequence) else tuple(int(b) for b in sequence)
        if len(ids) < 2:
            raise InputValidationError("A trajectory needs an origin and a destination.")
        validate_endpoints(self.catalog, ids[0], ids[-1])
        for body_id in ids[1:-1]:
            if body_id not in self.catalog:
                raise InputValidationError(f"Unknown body id {body_id}.")
            if self.catalog.body(body_id).attractor_id != self.catalog.attractor_of(ids[0]):
                raise InputValidationError("All bodies of a sequence must orbit the same body.")
        validate_altitude(self.catalog, ids[0], altitude)
        request = TrajectorySearchInput(
            sequence=ids, start_date=start_date, end_date=end_date, altitude=altitude, seed=seed
        )
        logger.info("trajectory search for %s", "-".join(self.catalog.body(b).name for b in ids))
        return self.worker.run(request, on_progress)

    def continue_search(self, generations: Optional[int] = None,
                        on_progress: Optional[ProgressCallback] = None) -> Outcome:
        """Run ``generations`` more generations (default ``maxGenerations``) of the last search."""
        if generations is not None and generations < 1:
            raise InputValidationError("At least one more generation is needed.")
        return self.worker.resume(generations, on_progress)
