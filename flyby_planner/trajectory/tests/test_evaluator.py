"""Tests for agent decoding and patched-conic evaluation."""
import math
import unittest

import numpy as np
from numpy.testing import assert_allclose

from flyby_planner.bodies import kerbol_system
from flyby_planner.config import TrajectorySearchSettings
from flyby_planner.constants import DAY
from flyby_planner.trajectory import (
    InfeasibleLeg,
    TrajectoryEvaluator,
    agent_dimension,
    maneuvre_details,
    total_delta_v,
)

KERBIN, EVE, DUNA, JOOL = 4, 2, 7, 10


def _evaluator(sequence=(KERBIN, DUNA), settings=None, altitude=100_000.0):
    return TrajectoryEvaluator(kerbol_system, sequence, 1.0e6, 1.0e6 + 30 * DAY, altitude,
                               settings or TrajectorySearchSettings())


def _midpoint(evaluator):
    return 0.5 * (evaluator.lower + evaluator.upper)


class TestAgentLayout(unittest.TestCase):

    def test_dimension(self):
        self.assertEqual(agent_dimension(2), 6)
        self.assertEqual(agent_dimension(4), 14)
        self.assertEqual(_evaluator((KERBIN, EVE, JOOL)).dim, 10)

    def test_bounds(self):
        evaluator = _evaluator()
        settings = evaluator.settings
        self.assertEqual(evaluator.lower.shape, (6,))
        assert_allclose(evaluator.lower[:2], [0.0, settings.dep_dv_scale_min])
        assert_allclose(evaluator.upper[:2], [30 * DAY, settings.dep_dv_scale_max])
        self.assertTrue(np.all(evaluator.lower < evaluator.upper))

        lo, hi = evaluator.leg_duration_bounds(0)
        self.assertEqual(lo, settings.min_leg_duration)
        self.assertGreaterEqual(hi, 2.0 * lo)
        assert_allclose(evaluator.lower[2:], [lo, settings.dsm_offset_min, -math.pi, -0.5 * math.pi])
        assert_allclose(evaluator.upper[2:], [hi, settings.dsm_offset_max, math.pi, 0.5 * math.pi])

    def test_decode(self):
        evaluator = _evaluator((KERBIN, EVE, JOOL))
        agent = np.arange(10, dtype=float)
        t, scale, legs = evaluator.decode(agent)
        self.assertEqual(t, 1.0e6)
        self.assertEqual(scale, 1.0)
        self.assertEqual(len(legs), 2)
        self.assertEqual((legs[1].duration, legs[1].dsm_offset, legs[1].theta, legs[1].phi), (6.0, 7.0, 8.0, 9.0))

    def test_decode_rejects_wrong_shape(self):
        with self.assertRaises(ValueError):
            _evaluator().decode(np.zeros(5))

    def test_bodies_must_share_attractor(self):
        with self.assertRaises(ValueError):
            _evaluator((KERBIN, 5))
        with self.assertRaises(ValueError):
            _evaluator((KERBIN,))

    def test_arrival_altitude_capped_inside_soi(self):
        """A parking altitude beyond the destination's SOI is reduced at arrival"""
        evaluator = _evaluator(altitude=1.0e9)
        duna = kerbol_system.body(DUNA)
        self.assertEqual(evaluator.departure_radius, kerbol_system.body(KERBIN).radius + 1.0e9)
        self.assertLess(evaluator.arrival_radius, duna.soi)


class TestEvaluation(unittest.TestCase):

    def test_direct_transfer(self):
        evaluator = _evaluator()
        agent = _midpoint(evaluator)
        evaluation = evaluator.evaluate(agent)

        self.assertTrue(math.isfinite(evaluation.total_delta_v))
        self.assertGreater(evaluation.total_delta_v, 0.0)
        self.assertEqual(evaluator.delta_v(agent), evaluation.total_delta_v)

        steps = evaluation.steps
        self.assertEqual(len(steps), 2)
        self.assertLess(steps[0].date_of_start, steps[1].date_of_start)
        assert_allclose(steps[0].date_of_end, steps[1].date_of_start)
        self.assertEqual(steps[0].maneuvre.context.kind, "ejection")
        self.assertEqual(steps[1].maneuvre.context.kind, "dsm")
        self.assertEqual(steps[1].maneuvre.context.target_id, DUNA)
        self.assertEqual(steps[1].arrival_maneuvre.context.kind, "circularization")
        self.assertTrue(all(step.attractor_id == 0 for step in steps))

    def test_arrival_step_ends_at_destination(self):
        evaluator = _evaluator()
        steps = evaluator.evaluate(_midpoint(evaluator)).steps
        target = kerbol_system.state_at(DUNA, steps[-1].date_of_end)
        assert_allclose(steps[-1].arrival_maneuvre.position, target.r, rtol=1.0E-12)

    def test_details_match_total(self):
        evaluator = _evaluator()
        evaluation = evaluator.evaluate(_midpoint(evaluator))
        details = maneuvre_details(evaluation.steps)

        self.assertEqual([d.kind for d in details], ["ejection", "dsm", "circularization"])
        self.assertEqual(details[0].mission_elapsed, 0.0)
        self.assertEqual([d.date for d in details], sorted(d.date for d in details))
        assert_allclose(total_delta_v(evaluation.steps), evaluation.total_delta_v, rtol=1.0E-12)
        for d in details:
            assert_allclose(math.sqrt(d.prograde ** 2 + d.normal ** 2 + d.radial ** 2), d.magnitude,
                            rtol=1.0E-9, atol=1.0E-9)

    def test_prograde_ejection(self):
        """Zero angles eject along the origin body's velocity"""
        evaluator = _evaluator()
        agent = _midpoint(evaluator)
        agent[4:6] = 0.0
        ejection = evaluator.evaluate(agent).steps[0].maneuvre
        t, _, _ = evaluator.decode(agent)
        velocity = kerbol_system.state_at(KERBIN, t).v
        cosine = np.dot(ejection.delta_v, velocity) / (np.linalg.norm(ejection.delta_v) * np.linalg.norm(velocity))
        assert_allclose(cosine, 1.0, rtol=1.0E-12)

    def test_departure_burn_scales(self):
        evaluator = _evaluator()
        low, high = _midpoint(evaluator), _midpoint(evaluator)
        low[1], high[1] = evaluator.lower[1], evaluator.upper[1]
        low_burn = evaluator.evaluate(low).steps[0].maneuvre.magnitude
        high_burn = evaluator.evaluate(high).steps[0].maneuvre.magnitude
        assert_allclose(high_burn / low_burn, evaluator.upper[1] / evaluator.lower[1], rtol=1.0E-12)

    def test_low_flyby_is_infeasible(self):
        """A full reversal at a swing-by body would need a zero periapsis"""
        evaluator = _evaluator((KERBIN, EVE, JOOL))
        agent = _midpoint(evaluator)
        agent[8] = math.pi  # theta of the second leg
        agent[9] = 0.0
        with self.assertRaises(InfeasibleLeg):
            evaluator.evaluate(agent)
        self.assertEqual(evaluator.delta_v(agent), math.inf)

    def test_periapsis_limit_setting(self):
        settings = TrajectorySearchSettings(min_periapsis_radii=1.0E12)
        evaluator = _evaluator((KERBIN, EVE, JOOL), settings=settings)
        agent = _midpoint(evaluator)
        agent[8] = 0.5  # theta of the second leg
        self.assertEqual(evaluator.delta_v(agent), math.inf)

    def test_straight_flyby_ignores_periapsis_limit(self):
        """Zero bending at the swing-by needs no periapsis at all"""
        settings = TrajectorySearchSettings(min_periapsis_radii=1.0E12)
        evaluator = _evaluator((KERBIN, EVE, JOOL), settings=settings)
        agent = _midpoint(evaluator)
        self.assertEqual(agent[8:10].tolist(), [0.0, 0.0])
        self.assertTrue(math.isfinite(evaluator.delta_v(agent)))


if __name__ == "__main__":
    unittest.main()
