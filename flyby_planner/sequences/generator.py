"""
Flyby sequence generation.

Sequences are enumerated breadth-first from the origin over the bodies
sharing its attractor, pruned by the swing-by, resonance and back-leg limits.
Every enumerated candidate is then screened (see ``screening``) and the
survivors are returned cheapest first.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional, Tuple

from flyby_planner.bodies import BodyCatalog
from flyby_planner.config import FlybySequenceSettings, SequenceParameters
from flyby_planner.results import Cancelled, Ok, Outcome
from flyby_planner.sequences.screening import ConicScreen, StatusBudget
from flyby_planner.sequences.sequence import FlybySequence, is_back_leg

logger = logging.getLogger(__name__)

ProgressFn = Callable[[float, int], None]


def _never_cancelled() -> bool:
    return False


@dataclass(frozen=True, slots=True)
class _Partial:
    ids: Tuple[int, ...]
    run: int  # consecutive resonant legs ending at the last body
    back_legs: int
    since_back: Optional[int]  # legs since the last back leg, None before the first


@dataclass(slots=True)
class GeneratorStats:
    propositions: int = 0
    candidates: int = 0
    screened: int = 0
    statuses: int = 0
    caps_hit: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


class FlybySequenceGenerator:
    """
    Enumerates and ranks flyby sequences between two sibling bodies.

    ``stats`` describes the last ``generate`` call.
    """

    def __init__(self, catalog: BodyCatalog, settings: FlybySequenceSettings) -> None:
        self.catalog = catalog
        self.settings = settings
        self.stats = GeneratorStats()

    def _extend(self, partial: _Partial, body_id: int, axes: dict[int, float], outward: bool,
                params: SequenceParameters) -> Optional[_Partial]:
        last = partial.ids[-1]
        ids = partial.ids + (body_id,)
        since = partial.since_back

        if body_id == last:
            run = partial.run + 1
            if run > params.max_resonant:
                return None
            if since is not None and self.settings.resonant_counts_toward_spacing:
                since += 1
            return _Partial(ids, run, partial.back_legs, since)

        if is_back_leg(axes[last], axes[body_id], outward):
            if partial.back_legs + 1 > params.max_back_legs:
                return None
            if since is not None and since > params.max_back_spacing:
                return None
            return _Partial(ids, 0, partial.back_legs + 1, 0)

        return _Partial(ids, 0, partial.back_legs, None if since is None else since + 1)

    def enumerate(self, params: SequenceParameters,
                  is_cancelled: Callable[[], bool] = _never_cancelled) -> Optional[list[Tuple[int, ...]]]:
        """
        All sequences admitted by the limits, shortest first.

        Returns None when cancelled. Stops early once ``max_propositions``
        bodies have been tried.
        """
        origin, destination = params.departure_id, params.destination_id
        attractor = self.catalog.attractor_of(origin)
        if self.catalog.attractor_of(destination) != attractor:
            raise ValueError("Origin and destination bodies must orbit the same body.")
        bodies = [b.id for b in self.catalog.orbiters(attractor)]
        axes = {b: self.catalog.body(b).elements.a for b in bodies}
        outward = axes[destination] >= axes[origin]

        frontier = [_Partial((origin,), 0, 0, None)]
        candidates: list[Tuple[int, ...]] = []
        for depth in range(params.max_swing_bys + 1):
            deeper: list[_Partial] = []
            for partial in frontier:
                if is_cancelled():
                    return None
                for body_id in bodies:
                    if self.stats.propositions >= self.settings.max_propositions:
                        self.stats.caps_hit.append("maxPropositions")
                        logger.debug("proposition cap hit with %d candidates", len(candidates))
                        return candidates
                    self.stats.propositions += 1
                    child = self._extend(partial, body_id, axes, outward, params)
                    if child is None:
                        continue
                    if body_id == destination:
                        candidates.append(child.ids)
                    elif depth < params.max_swing_bys:
                        deeper.append(child)
            frontier = deeper
            if not frontier:
                break
        return candidates

    def generate(self, params: SequenceParameters, on_progress: Optional[ProgressFn] = None,
                 is_cancelled: Callable[[], bool] = _never_cancelled) -> Outcome[list[FlybySequence]]:
        """
        Enumerate, screen and rank sequences.

        Args:
            params: Origin, destination and tree limits
            on_progress: Called with (fraction of candidates screened, sequences kept so far)
            is_cancelled: Polled between node expansions and between candidates

        Returns:
            Ok(sequences sorted by screening score) or Cancelled()
        """
        self.stats = GeneratorStats()
        candidates = self.enumerate(params, is_cancelled)
        if candidates is None:
            return Cancelled()
        total = len(candidates)
        self.stats.candidates = total
        logger.debug("%d candidate sequences from %d propositions", total, self.stats.propositions)

        s = self.settings
        budget = StatusBudget(s.max_eval_statuses)
        screen = ConicScreen(self.catalog, s, budget)
        found: list[FlybySequence] = []
        reported = 0.0
        if on_progress is not None:
            on_progress(0.0, 0)

        for k, ids in enumerate(candidates, start=1):
            if is_cancelled():
                return Cancelled()
            score = screen.score(ids, is_cancelled)
            if is_cancelled():
                return Cancelled()
            self.stats.screened = k
            if score is not None:
                found.append(FlybySequence.from_ids(ids, self.catalog, score=score))

            capped = None
            if len(found) >= s.max_eval_sequences:
                capped = "maxEvalSequences"
            elif budget.exhausted:
                capped = "maxEvalStatuses"
            if on_progress is not None and (k % s.split_limit == 0 or k == total or capped):
                reported = k / total
                on_progress(reported, len(found))
            if capped:
                self.stats.caps_hit.append(capped)
                logger.debug("%s cap hit after %d of %d candidates", capped, k, total)
                break

        self.stats.statuses = budget.used
        if on_progress is not None and reported < 1.0:
            on_progress(1.0, len(found))
        found.sort(key=lambda seq: seq.score)
        return Ok(found)
