"""Decoded trajectory records handed to plotting and reporting."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Tuple

import numpy as np

from flyby_planner.orbital_elements import OrbitalElements

Vec3 = Tuple[float, float, float]

ManeuvreKind = Literal["ejection", "dsm", "circularization"]


@dataclass(frozen=True, slots=True)
class LegInfo:
    """Per-leg slice of an agent."""
    duration: float
    dsm_offset: float
    theta: float
    phi: float


@dataclass(frozen=True, slots=True)
class ManeuvreContext:
    kind: ManeuvreKind
    origin_id: Optional[int] = None  # dsm only
    target_id: Optional[int] = None  # dsm only


@dataclass(frozen=True, slots=True)
class ManeuvreInfo:
    """An impulsive burn: vector, local prograde direction and where it happens."""
    delta_v: Vec3
    prograde_dir: Vec3
    position: Vec3
    context: ManeuvreContext

    @property
    def magnitude(self) -> float:
        return math.sqrt(sum(c * c for c in self.delta_v))


@dataclass(frozen=True, slots=True)
class TrajectoryStep:
    """
    One conic arc of a trajectory.

    ``begin_angle``/``end_angle`` are true anomalies on ``elements`` bounding
    the arc. ``maneuvre`` is the burn performed at the start of the arc;
    ``arrival_maneuvre`` is only set on the last arc, for the final capture.
    """
    elements: OrbitalElements
    attractor_id: int
    begin_angle: float
    end_angle: float
    date_of_start: float
    duration: float
    maneuvre: Optional[ManeuvreInfo] = None
    arrival_maneuvre: Optional[ManeuvreInfo] = None

    @property
    def date_of_end(self) -> float:
        return self.date_of_start + self.duration


@dataclass(frozen=True, slots=True)
class ManeuvreDetails:
    """A burn split into prograde/normal/radial components, dated from departure."""
    kind: ManeuvreKind
    date: float
    mission_elapsed: float
    prograde: float
    normal: float
    radial: float
    magnitude: float


def _details(maneuvre: ManeuvreInfo, date: float, departure: float) -> ManeuvreDetails:
    dv = np.asarray(maneuvre.delta_v)
    prograde = np.asarray(maneuvre.prograde_dir)
    normal = np.cross(np.asarray(maneuvre.position), prograde)
    norm = np.linalg.norm(normal)
    normal = normal / norm if norm > 0.0 else normal
    radial = np.cross(prograde, normal)
    return ManeuvreDetails(
        kind=maneuvre.context.kind,
        date=date,
        mission_elapsed=date - departure,
        prograde=float(np.dot(dv, prograde)),
        normal=float(np.dot(dv, normal)),
        radial=float(np.dot(dv, radial)),
        magnitude=maneuvre.magnitude,
    )


def maneuvre_details(steps: Sequence[TrajectoryStep]) -> list[ManeuvreDetails]:
    """Every burn of a trajectory, in time order."""
    if not steps:
        return []
    departure = steps[0].date_of_start
    out = []
    for step in steps:
        if step.maneuvre is not None:
            out.append(_details(step.maneuvre, step.date_of_start, departure))
        if step.arrival_maneuvre is not None:
            out.append(_details(step.arrival_maneuvre, step.date_of_end, departure))
    return out


def total_delta_v(steps: Sequence[TrajectoryStep]) -> float:
    return sum(d.magnitude for d in maneuvre_details(steps))
