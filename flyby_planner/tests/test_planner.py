"""Tests for input validation and the host-side planners."""
import math
import unittest

from flyby_planner.bodies import kerbol_system
from flyby_planner.config import FlybySequenceSettings, PlannerConfig, TrajectorySearchSettings
from flyby_planner.constants import DAY
from flyby_planner.planner import (
    InputValidationError,
    SequencePlanner,
    TrajectoryPlanner,
    max_parking_altitude,
    validate_altitude,
    validate_endpoints,
)
from flyby_planner.results import Ok
from flyby_planner.sequences import FlybySequence

KERBIN, MUN, DUNA = 4, 5, 7

FAST = PlannerConfig(
    flyby_sequence=FlybySequenceSettings(radius_samples=2, init_vel_samples=2),
    trajectory_search=TrajectorySearchSettings(pop_size_dim_scale=2, max_generations=2),
)


class TestValidation(unittest.TestCase):

    def _message(self, fn, *args):
        with self.assertRaises(InputValidationError) as ctx:
            fn(*args)
        return str(ctx.exception)

    def test_endpoints(self):
        validate_endpoints(kerbol_system, KERBIN, DUNA)
        self.assertEqual(self._message(validate_endpoints, kerbol_system, KERBIN, KERBIN),
                         "Same origin and destination bodies.")
        self.assertEqual(self._message(validate_endpoints, kerbol_system, KERBIN, MUN),
                         "Origin and destination bodies must orbit the same body.")
        self.assertIn("does not orbit", self._message(validate_endpoints, kerbol_system, 0, KERBIN))
        self.assertIn("Unknown body", self._message(validate_endpoints, kerbol_system, KERBIN, 42))

    def test_altitude(self):
        kerbin = kerbol_system.body(KERBIN)
        highest = max_parking_altitude(kerbol_system, KERBIN)
        self.assertEqual(highest, math.floor(0.75 * (kerbin.soi - kerbin.radius)))
        validate_altitude(kerbol_system, KERBIN, 0.0)
        validate_altitude(kerbol_system, KERBIN, highest)
        with self.assertRaises(InputValidationError):
            validate_altitude(kerbol_system, KERBIN, highest + 1)
        with self.assertRaises(InputValidationError):
            validate_altitude(kerbol_system, KERBIN, -1.0)

    def test_invalid_input_never_reaches_worker(self):
        planner = TrajectoryPlanner(FAST, backend="thread")
        with self.assertRaises(InputValidationError):
            planner.search((KERBIN, MUN, DUNA), 0.0, 10 * DAY, 100_000.0)
        with self.assertRaises(InputValidationError):
            planner.search((KERBIN,), 0.0, 10 * DAY, 100_000.0)
        with self.assertRaises(InputValidationError):
            planner.continue_search(0)
        self.assertIsNone(planner._worker)

    def test_sequence_planner_validation(self):
        planner = SequencePlanner(FAST, backend="thread")
        with self.assertRaises(ValueError):
            planner.generate({"departureId": KERBIN, "destinationId": KERBIN})
        with self.assertRaises(InputValidationError):
            planner.generate({"departureId": KERBIN, "destinationId": MUN})
        self.assertIsNone(planner._worker)


class TestPlanners(unittest.TestCase):

    def test_generate(self):
        progress = []
        with SequencePlanner(FAST, backend="thread") as planner:
            outcome = planner.generate({"departureId": KERBIN, "destinationId": DUNA, "maxSwingBys": 0},
                                       on_progress=lambda fraction, found: progress.append(fraction))
        self.assertIsInstance(outcome, Ok)
        self.assertEqual([s.ids for s in outcome.value], [(KERBIN, DUNA)])
        self.assertEqual(progress[-1], 1.0)

    def test_search_and_continue(self):
        sequence = FlybySequence.from_ids((KERBIN, DUNA), kerbol_system)
        with TrajectoryPlanner(FAST, backend="thread") as planner:
            first = planner.search(sequence, 0.0, 20 * DAY, 100_000.0, seed=5)
            self.assertIsInstance(first, Ok)
            self.assertEqual(len(first.value.steps), 2)
            second = planner.continue_search(1)
        self.assertIsInstance(second, Ok)
        self.assertEqual(second.value.generations, 3)
        self.assertLessEqual(second.value.total_delta_v, first.value.total_delta_v)


if __name__ == "__main__":
    unittest.main()
