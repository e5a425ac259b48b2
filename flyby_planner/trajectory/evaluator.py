"""
Patched-conic evaluation of one candidate trajectory (an *agent*).

Agent layout for a sequence of ``n`` bodies (``n - 1`` legs)::

    [departure offset (s), departure dv scale,
     leg 0: duration (s), dsm offset fraction, theta, phi,
     leg 1: ...]

Leg 0's angles orient the ejection excess velocity in the departure body's
(prograde, normal x prograde, normal) frame. Each later leg's angles orient
the outgoing flyby excess velocity relative to the incoming one, so the
flyby bending angle is ``acos(cos(phi) * cos(theta))``.

Each leg coasts ballistically up to its deep-space maneuver, then follows a
Lambert arc to the next body; the DSM burn closes the velocity gap.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from flyby_planner.astrodynamics import (
    escape_delta_v,
    ejection_excess_speed,
    flyby_periapsis,
    insertion_delta_v,
    propagate_kepler,
    spherical_direction,
    state_to_elements,
    unit_vector,
)
from flyby_planner.bodies import BodyCatalog
from flyby_planner.cartesian_state import CartesianState
from flyby_planner.config import TrajectorySearchSettings
from flyby_planner.constants import MAX_ALTITUDE_SOI_FRACTION
from flyby_planner.lambert import lambert
from flyby_planner.trajectory.steps import LegInfo, ManeuvreContext, ManeuvreInfo, TrajectoryStep, Vec3

logger = logging.getLogger(__name__)

LEG_PARAMS = 4


class InfeasibleLeg(Exception):
    """Raised when a leg or flyby violates a physical bound."""


@dataclass(frozen=True, slots=True)
class Evaluation:
    total_delta_v: float
    steps: Tuple[TrajectoryStep, ...] = ()


def _vec(a: np.ndarray) -> Vec3:
    return (float(a[0]), float(a[1]), float(a[2]))


def _finite(*vectors: np.ndarray) -> bool:
    return all(np.all(np.isfinite(v)) for v in vectors)


def agent_dimension(sequence_length: int) -> int:
    return 2 + LEG_PARAMS * (sequence_length - 1)


class TrajectoryEvaluator:
    """
    Total delta-V of agents for one flyby sequence and departure window.

    Args:
        catalog: Body catalog
        sequence: Body ids from origin to destination, all orbiting one attractor
        start_date: Departure window start (s)
        end_date: Departure window end (s)
        altitude: Parking orbit altitude at departure and arrival (m)
        settings: Agent bounds and flyby limits
    """

    def __init__(
        self,
        catalog: BodyCatalog,
        sequence: Sequence[int],
        start_date: float,
        end_date: float,
        altitude: float,
        settings: TrajectorySearchSettings,
    ) -> None:
        sequence = tuple(int(b) for b in sequence)
        if len(sequence) < 2:
            raise ValueError("A trajectory needs at least an origin and a destination")
        attractors = {catalog.attractor_of(b) for b in sequence}
        if len(attractors) != 1:
            raise ValueError(f"Bodies of sequence {sequence} do not orbit the same body")

        self.catalog = catalog
        self.sequence = sequence
        self.start_date = float(start_date)
        self.end_date = float(end_date)
        self.settings = settings
        self.attractor_id = attractors.pop()
        self.mu = catalog.gravitational_parameter(self.attractor_id)
        self.legs = len(sequence) - 1
        self.dim = agent_dimension(len(sequence))

        origin = catalog.body(sequence[0])
        destination = catalog.body(sequence[-1])
        self.departure_radius = origin.radius + altitude
        arrival_cap = MAX_ALTITUDE_SOI_FRACTION * (destination.soi - destination.radius)
        self.arrival_radius = destination.radius + min(altitude, arrival_cap)

        self.lower, self.upper = self._bounds()

    # ---------------------------- Agent layout -------------------------------

    def leg_duration_bounds(self, leg: int) -> tuple[float, float]:
        """Duration range (s) of ``leg``, scaled on the Hohmann transfer time."""
        a_from = self.catalog.body(self.sequence[leg]).elements.a
        a_to = self.catalog.body(self.sequence[leg + 1]).elements.a
        hohmann = math.pi * math.sqrt((0.5 * (a_from + a_to)) ** 3 / self.mu)
        lo = self.settings.min_leg_duration
        return lo, max(2.0 * lo, self.settings.max_leg_duration_scale * hohmann)

    def _bounds(self) -> tuple[np.ndarray, np.ndarray]:
        s = self.settings
        lower = [0.0, s.dep_dv_scale_min]
        upper = [self.end_date - self.start_date, s.dep_dv_scale_max]
        for leg in range(self.legs):
            lo, hi = self.leg_duration_bounds(leg)
            lower.extend([lo, s.dsm_offset_min, -math.pi, -0.5 * math.pi])
            upper.extend([hi, s.dsm_offset_max, math.pi, 0.5 * math.pi])
        return np.array(lower), np.array(upper)

    def decode(self, agent: np.ndarray) -> tuple[float, float, list[LegInfo]]:
        """Split an agent into (departure epoch, dv scale, legs)."""
        agent = np.asarray(agent, dtype=float)
        if agent.shape != (self.dim,):
            raise ValueError(f"Agent must have shape ({self.dim},), got {agent.shape}")
        legs = [
            LegInfo(*(float(p) for p in agent[2 + LEG_PARAMS * k: 2 + LEG_PARAMS * (k + 1)]))
            for k in range(self.legs)
        ]
        return self.start_date + float(agent[0]), float(agent[1]), legs

    # ------------------------------ Evaluation -------------------------------

    def delta_v(self, agent: np.ndarray) -> float:
        """Cost function: total delta-V (m/s), infinite for infeasible agents."""
        try:
            return self._run(agent, record=False).total_delta_v
        except InfeasibleLeg as exc:
            logger.debug("infeasible agent: %s", exc)
            return math.inf

    def evaluate(self, agent: np.ndarray) -> Evaluation:
        """
        Decode an agent into trajectory steps.

        Raises:
            InfeasibleLeg: if any leg or flyby violates a physical bound.
        """
        return self._run(agent, record=True)

    def _step(self, start: CartesianState, end: CartesianState, date: float, duration: float,
              maneuvre: ManeuvreInfo | None, arrival: ManeuvreInfo | None = None) -> TrajectoryStep:
        elements, begin_angle = state_to_elements(start.r, start.v, self.mu, epoch=date)
        _, end_angle = state_to_elements(end.r, end.v, self.mu)
        return TrajectoryStep(
            elements=elements,
            attractor_id=self.attractor_id,
            begin_angle=begin_angle,
            end_angle=end_angle,
            date_of_start=date,
            duration=duration,
            maneuvre=maneuvre,
            arrival_maneuvre=arrival,
        )

    def _run(self, agent: np.ndarray, record: bool) -> Evaluation:
        t, dv_scale, legs = self.decode(agent)
        catalog = self.catalog
        origin = catalog.body(self.sequence[0])

        # Ejection from the circular parking orbit
        home = catalog.state_at(origin.id, t)
        dv_ejection = dv_scale * escape_delta_v(origin.mu, self.departure_radius)
        v_inf = ejection_excess_speed(dv_ejection, origin.mu, self.departure_radius)
        direction = spherical_direction(legs[0].theta, legs[0].phi, home.v, np.cross(home.r, home.v))
        state = CartesianState(r=home.r, v=home.v + v_inf * direction)
        total = dv_ejection

        steps: list[TrajectoryStep] = []
        maneuvre = None
        if record:
            maneuvre = ManeuvreInfo(
                delta_v=_vec(dv_ejection * direction),
                prograde_dir=_vec(unit_vector(state.v)),
                position=_vec(state.r),
                context=ManeuvreContext("ejection"),
            )

        for index, leg in enumerate(legs):
            origin_id = self.sequence[index]
            target_id = self.sequence[index + 1]
            coast = leg.dsm_offset * leg.duration
            transfer = leg.duration - coast

            before_dsm = propagate_kepler(state.r, state.v, coast, self.mu)
            if not _finite(before_dsm.r, before_dsm.v):
                raise InfeasibleLeg(f"leg {index}: coast propagation diverged")

            arrival_date = t + leg.duration
            target = catalog.state_at(target_id, arrival_date)
            try:
                solution = lambert(before_dsm.r, target.r, transfer, self.mu)
            except ValueError as exc:
                raise InfeasibleLeg(f"leg {index}: {exc}") from exc
            if not solution.converged or not _finite(solution.v1, solution.v2):
                raise InfeasibleLeg(f"leg {index}: Lambert solve did not converge")

            dv_dsm = solution.v1 - before_dsm.v
            total += float(np.linalg.norm(dv_dsm))

            v_inf_in = solution.v2 - target.v
            speed_in = float(np.linalg.norm(v_inf_in))
            body = catalog.body(target_id)
            last = index + 1 == self.legs

            arrival = None
            if last:
                dv_arrival = insertion_delta_v(speed_in, body.mu, self.arrival_radius)
                total += dv_arrival
                if record:
                    arrival = ManeuvreInfo(
                        delta_v=_vec(-dv_arrival * unit_vector(v_inf_in)),
                        prograde_dir=_vec(unit_vector(solution.v2)),
                        position=_vec(target.r),
                        context=ManeuvreContext("circularization"),
                    )

            if record:
                steps.append(self._step(state, before_dsm, t, coast, maneuvre))
                dsm = ManeuvreInfo(
                    delta_v=_vec(dv_dsm),
                    prograde_dir=_vec(unit_vector(before_dsm.v)),
                    position=_vec(before_dsm.r),
                    context=ManeuvreContext("dsm", origin_id=origin_id, target_id=target_id),
                )
                steps.append(self._step(
                    CartesianState(r=before_dsm.r, v=solution.v1),
                    CartesianState(r=target.r, v=solution.v2),
                    t + coast, transfer, dsm, arrival,
                ))

            if not last:
                # Unpowered flyby: same excess speed, direction from the next leg's angles
                nxt = legs[index + 1]
                if speed_in == 0.0:
                    raise InfeasibleLeg(f"flyby of {body.name} with zero excess velocity")
                bending = math.acos(min(1.0, max(-1.0, math.cos(nxt.phi) * math.cos(nxt.theta))))
                rp = flyby_periapsis(speed_in, body.mu, bending)
                rp_min = self.settings.min_periapsis_radii * body.radius
                if rp < rp_min:
                    raise InfeasibleLeg(
                        f"flyby of {body.name} needs periapsis {rp:.0f} m, minimum is {rp_min:.0f} m"
                    )
                direction = spherical_direction(nxt.theta, nxt.phi, v_inf_in, np.cross(target.r, target.v))
                state = CartesianState(r=target.r, v=target.v + speed_in * direction)
                maneuvre = None

            t = arrival_date

        return Evaluation(total_delta_v=total, steps=tuple(steps))
