"""
Coarse feasibility screen of a flyby sequence.

The screen works in the attractor's plane with statuses (radius, radial and
tangential velocity). Departure statuses sample the origin's radius range and
tangential excess speeds. Each leg keeps the part of the transfer conic that
crosses the next body's radius range, sampled at a few radii. Intermediate
bodies turn the excess velocity by their largest bending angle either way
(or not at all). A beam keeps the cheapest statuses at every depth. The
score of a sequence is departure excess plus arrival excess speed (m/s).
"""
from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from flyby_planner.astrodynamics import max_bending_angle
from flyby_planner.bodies import BodyCatalog
from flyby_planner.config import FlybySequenceSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Node:
    """Tree node stored by the beam. ``state`` is a ScreenStatus (None at the root)."""
    id: int
    parent_id: Optional[int]
    state: Any
    depth: int
    cum_score: float  # higher is better


@dataclass(frozen=True, slots=True)
class ScreenStatus:
    index: int  # position in the sequence of the body just reached
    radius: float
    vr: float
    vt: float


class StatusBudget:
    """Shared cap on the number of statuses scored across a whole search."""

    def __init__(self, limit: int) -> None:
        self.limit = int(limit)
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit


class StatusBeam:
    """
    Beam search with a status budget.

    expand_fn(parent_state) -> Iterable[proposal]
        Cheap enumeration of the next proposals.
    score_fn(parent_state, proposal) -> (increment, child_state)
        Heavy work; a non-finite increment prunes the proposal.
    """

    def __init__(
        self,
        expand_fn: Callable[[Any], Iterable[Any]],
        score_fn: Callable[[Any, Any], Tuple[float, Any]],
        *,
        beam_width: int,
        max_depth: int,
        budget: StatusBudget,
        is_cancelled: Callable[[], bool],
    ) -> None:
        self.expand_fn = expand_fn
        self.score_fn = score_fn
        self.beam_width = int(beam_width)
        self.max_depth = int(max_depth)
        self.budget = budget
        self.is_cancelled = is_cancelled

        self._next_id = 0

    def run(self, root_state: Any = None) -> List[Node]:
        """Return the final beam, best first; empty when the tree dies out."""
        frontier: List[Node] = [self._make_node(None, root_state, depth=0, cum_score=0.0)]
        for _ in range(self.max_depth):
            if self.is_cancelled() or self.budget.exhausted:
                return []
            children = self._build_children(frontier)
            if not children:
                return []
            frontier = self._top_k(children, self.beam_width)
        return frontier

    def _make_node(self, parent_id: Optional[int], state: Any, depth: int, cum_score: float) -> Node:
        nid = self._next_id
        self._next_id += 1
        return Node(id=nid, parent_id=parent_id, state=state, depth=depth, cum_score=float(cum_score))

    @staticmethod
    def _rank_key(n: Node) -> tuple[float, int]:
        """Key used to rank nodes: score desc, then id asc (deterministic)."""
        return (n.cum_score, -n.id)

    def _top_k(self, nodes: Sequence[Node], k: int) -> List[Node]:
        if len(nodes) <= k:
            return sorted(nodes, key=self._rank_key, reverse=True)
        top = heapq.nlargest(k, nodes, key=self._rank_key)
        top.sort(key=self._rank_key, reverse=True)
        return top

    def _build_children(self, frontier: Sequence[Node]) -> List[Node]:
        children: List[Node] = []
        for parent in frontier:
            for prop in self.expand_fn(parent.state):
                if self.budget.exhausted:
                    return children
                self.budget.used += 1
                inc, child_state = self.score_fn(parent.state, prop)
                if not math.isfinite(inc):
                    continue
                children.append(self._make_node(parent.id, child_state, parent.depth + 1, parent.cum_score + inc))
        return children


def _sample_radii(lo: float, hi: float, count: int) -> np.ndarray:
    if hi - lo <= 1e-9 * hi or count == 1:
        return np.array([0.5 * (lo + hi)])
    return np.linspace(lo, hi, count)


class ConicScreen:
    """Scores flyby sequences with the planar conic screen."""

    def __init__(self, catalog: BodyCatalog, settings: FlybySequenceSettings, budget: StatusBudget) -> None:
        self.catalog = catalog
        self.settings = settings
        self.budget = budget
        self.beam_width = settings.radius_samples * settings.init_vel_samples * 2
        self.mu = math.nan  # attractor of the sequence being scored

    def _orbit(self, body_id: int) -> tuple[float, float, float, float]:
        """(periapsis, apoapsis, semi-major axis, angular momentum) of a body's orbit."""
        elements = self.catalog.body(body_id).elements
        h = math.sqrt(self.mu * elements.a * (1.0 - elements.e ** 2))
        return elements.periapsis, elements.apoapsis, elements.a, h

    def _body_velocity(self, body_id: int, radius: float, sign: float) -> tuple[float, float]:
        _, _, a, h = self._orbit(body_id)
        speed2 = self.mu * (2.0 / radius - 1.0 / a)
        vt = h / radius
        return sign * math.sqrt(max(0.0, speed2 - vt * vt)), vt

    def score(self, ids: Sequence[int], is_cancelled: Callable[[], bool]) -> Optional[float]:
        """Screening cost (m/s) of a sequence, or None when no status reaches the destination."""
        ids = tuple(ids)
        self.mu = self.catalog.gravitational_parameter(self.catalog.attractor_of(ids[0]))
        last = len(ids) - 1
        s = self.settings

        def expand_fn(status: Optional[ScreenStatus]):
            if status is None:
                lo, hi, _, _ = self._orbit(ids[0])
                scales = np.linspace(s.init_vel_max_scale / s.init_vel_samples, s.init_vel_max_scale,
                                     s.init_vel_samples)
                return [("depart", float(r), float(k), sign)
                        for r in _sample_radii(lo, hi, s.radius_samples)
                        for k in scales
                        for sign in (1.0, -1.0)]
            h = status.radius * status.vt
            if h == 0.0:
                return []
            energy = 0.5 * (status.vr ** 2 + status.vt ** 2) - self.mu / status.radius
            p = h * h / self.mu
            e = math.sqrt(max(0.0, 1.0 + 2.0 * energy * h * h / self.mu ** 2))
            rp = p / (1.0 + e)
            ra = p / (1.0 - e) if e < 1.0 else math.inf
            q_lo, q_hi, _, _ = self._orbit(ids[status.index + 1])
            lo, hi = max(rp, q_lo), min(ra, q_hi)
            if lo > hi:
                return []
            turns = (0,) if status.index + 1 == last else (-1, 0, 1)
            return [("arrive", float(r), turn)
                    for r in _sample_radii(lo, hi, s.radius_samples)
                    for turn in turns]

        def score_fn(status: Optional[ScreenStatus], prop):
            if prop[0] == "depart":
                _, radius, scale, sign = prop
                vr_b, vt_b = self._body_velocity(ids[0], radius, 1.0)
                excess = scale * math.hypot(vr_b, vt_b)
                return -excess, ScreenStatus(0, radius, vr_b, vt_b + sign * excess)

            _, radius, turn = prop
            h = status.radius * status.vt
            energy = 0.5 * (status.vr ** 2 + status.vt ** 2) - self.mu / status.radius
            sign = 1.0 if radius >= status.radius else -1.0
            vt = h / radius
            vr = sign * math.sqrt(max(0.0, 2.0 * (energy + self.mu / radius) - vt * vt))
            body_id = ids[status.index + 1]
            vr_b, vt_b = self._body_velocity(body_id, radius, sign)
            dvr, dvt = vr - vr_b, vt - vt_b
            v_inf = math.hypot(dvr, dvt)
            if status.index + 1 == last:
                return -v_inf, ScreenStatus(last, radius, vr, vt)
            if turn != 0 and v_inf > 0.0:
                body = self.catalog.body(body_id)
                delta = turn * max_bending_angle(v_inf, body.mu, s.min_periapsis_radii * body.radius)
                dvr, dvt = (dvr * math.cos(delta) - dvt * math.sin(delta),
                            dvr * math.sin(delta) + dvt * math.cos(delta))
            return 0.0, ScreenStatus(status.index + 1, radius, vr_b + dvr, vt_b + dvt)

        beam = StatusBeam(expand_fn, score_fn, beam_width=self.beam_width, max_depth=len(ids),
                          budget=self.budget, is_cancelled=is_cancelled)
        final = beam.run(None)
        arrived = [n for n in final if n.state.index == last]
        if not arrived:
            return None
        return -arrived[0].cum_score
