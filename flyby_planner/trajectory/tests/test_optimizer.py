"""Tests for the differential evolution trajectory search."""
import math
import unittest

import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

from flyby_planner.bodies import Body, BodyCatalog
from flyby_planner.config import TrajectorySearchSettings
from flyby_planner.constants import DAY
from flyby_planner.orbital_elements import OrbitalElements
from flyby_planner.results import Cancelled, Failed, Ok
from flyby_planner.trajectory import TrajectoryEvaluator, TrajectoryOptimizer

SMALL = TrajectorySearchSettings(pop_size_dim_scale=3, max_generations=4)


def _sun_earth_mars():
    sun = Body(id=0, name="Sun", mu=1.32712e20, radius=6.957e8, soi=math.inf)
    earth = Body(id=1, name="Earth", mu=3.986e14, radius=6.371e6, soi=9.25e8, attractor_id=0,
                 elements=OrbitalElements(a=1.496e11, e=0.0167, i=0.0, Omega=0.0, omega=1.796, M0=0.0))
    mars = Body(id=2, name="Mars", mu=4.2828e13, radius=3.3895e6, soi=5.77e8, attractor_id=0,
                elements=OrbitalElements(a=2.279e11, e=0.0934, i=0.0323, Omega=0.865, omega=5.0, M0=0.3))
    return BodyCatalog([sun, earth, mars])


def _optimizer(settings=SMALL, seed=7):
    evaluator = TrajectoryEvaluator(_sun_earth_mars(), (1, 2), 0.0, 30 * DAY, 300_000.0, settings)
    return TrajectoryOptimizer(evaluator, settings, seed=seed)


class TestTrajectoryOptimizer(unittest.TestCase):

    def test_direct_transfer(self):
        """Earth to Mars: finite delta-V and one ejection arc plus one arrival arc"""
        outcome = _optimizer().search()

        self.assertIsInstance(outcome, Ok)
        result = outcome.value
        self.assertTrue(math.isfinite(result.total_delta_v))
        self.assertGreaterEqual(result.total_delta_v, 0.0)
        self.assertEqual(len(result.steps), 2)
        epochs = [step.date_of_start for step in result.steps]
        self.assertTrue(all(b > a for a, b in zip(epochs, epochs[1:])))
        self.assertTrue(0.0 <= epochs[0] <= 30 * DAY)
        self.assertEqual(result.generations, 4)

    def test_population_size(self):
        optimizer = _optimizer()
        self.assertEqual(optimizer.pop_size, 18)
        optimizer.initialize()
        self.assertEqual(optimizer.population.shape, (18, 6))
        self.assertTrue(np.all(optimizer.population >= optimizer.evaluator.lower))
        self.assertTrue(np.all(optimizer.population <= optimizer.evaluator.upper))

    def test_best_never_worsens(self):
        optimizer = _optimizer()
        outcome = optimizer.search(max_generations=6)
        history = outcome.value.history
        self.assertEqual(len(history), 6)
        self.assertTrue(all(b <= a for a, b in zip(history, history[1:])))
        self.assertEqual(history[-1], outcome.value.total_delta_v)

    def test_trials_stay_in_bounds(self):
        optimizer = _optimizer()
        optimizer.search(max_generations=2)
        self.assertTrue(np.all(optimizer.population >= optimizer.evaluator.lower))
        self.assertTrue(np.all(optimizer.population <= optimizer.evaluator.upper))

    def test_progress_reports(self):
        reports = []
        _optimizer().search(on_progress=lambda fraction, snapshot: reports.append((fraction, snapshot)))
        assert_allclose([fraction for fraction, _ in reports], [0.25, 0.5, 0.75, 1.0])
        self.assertEqual([snapshot.generation for _, snapshot in reports], [1, 2, 3, 4])
        self.assertIsNone(reports[-1][1].best_steps)

    def test_snapshot_best(self):
        settings = TrajectorySearchSettings(pop_size_dim_scale=3, max_generations=1, snapshot_best=True)
        reports = []
        _optimizer(settings).search(on_progress=lambda fraction, snapshot: reports.append(snapshot))
        self.assertEqual(len(reports[0].best_steps), 2)

    def test_resume_extends_run(self):
        optimizer = _optimizer()
        first = optimizer.search(max_generations=3).value
        second = optimizer.resume(2).value
        self.assertEqual(second.generations, 5)
        self.assertEqual(second.history[:3], first.history)
        self.assertLessEqual(second.total_delta_v, first.total_delta_v)

    def test_seed_reproducible(self):
        a = _optimizer(seed=11).search().value
        b = _optimizer(seed=11).search().value
        assert_array_equal(a.agent, b.agent)
        self.assertEqual(a.total_delta_v, b.total_delta_v)

    def test_cancelled(self):
        optimizer = _optimizer()
        self.assertEqual(optimizer.search(is_cancelled=lambda: True), Cancelled())
        self.assertEqual(optimizer.generation, 0)

    def test_cancel_between_generations(self):
        optimizer = _optimizer()
        polls = []

        def is_cancelled():
            polls.append(None)
            return len(polls) > 2

        self.assertEqual(optimizer.search(is_cancelled=is_cancelled), Cancelled())
        self.assertEqual(optimizer.generation, 2)

    def test_no_feasible_agent(self):
        """Every swing-by is rejected when the periapsis limit is unreachable"""
        settings = TrajectorySearchSettings(pop_size_dim_scale=1, max_generations=1, min_periapsis_radii=1.0E12)
        evaluator = TrajectoryEvaluator(_sun_earth_mars(), (1, 2, 1), 0.0, 30 * DAY, 300_000.0, settings)
        outcome = TrajectoryOptimizer(evaluator, settings, seed=1).search()
        self.assertIsInstance(outcome, Failed)


if __name__ == "__main__":
    unittest.main()
