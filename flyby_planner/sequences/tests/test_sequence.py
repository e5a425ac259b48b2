"""Tests for the FlybySequence value type and the status beam."""
import math
import unittest

from flyby_planner.bodies import kerbol_system
from flyby_planner.sequences import FlybySequence, StatusBeam, StatusBudget, is_back_leg


class TestFlybySequence(unittest.TestCase):

    def test_counts(self):
        seq = FlybySequence.from_ids((4, 2, 2, 10), kerbol_system)
        self.assertEqual(seq.swing_bys, 2)
        self.assertEqual(seq.resonant, 1)
        self.assertEqual(seq.back_legs, 1)  # Kerbin to Eve moves inward on an outward transfer
        self.assertEqual(seq.origin_id, 4)
        self.assertEqual(seq.destination_id, 10)
        self.assertEqual(len(seq), 4)
        self.assertEqual(str(seq), "Kerbin-Eve-Eve-Jool")
        self.assertIsNone(seq.score)

    def test_inward_transfer_back_legs(self):
        """Going inward, outward legs are the back legs"""
        seq = FlybySequence.from_ids((10, 7, 9, 4), kerbol_system)
        self.assertEqual(seq.back_legs, 1)  # Duna to Dres
        self.assertEqual(seq.resonant, 0)

    def test_is_back_leg(self):
        self.assertTrue(is_back_leg(2.0, 1.0, outward=True))
        self.assertFalse(is_back_leg(1.0, 2.0, outward=True))
        self.assertTrue(is_back_leg(1.0, 2.0, outward=False))
        self.assertFalse(is_back_leg(1.0, 1.0, outward=True))

    def test_parse(self):
        expected = (4, 2, 10)
        self.assertEqual(FlybySequence.parse("Kerbin-Eve-Jool", kerbol_system).ids, expected)
        self.assertEqual(FlybySequence.parse("4 2 10", kerbol_system).ids, expected)
        self.assertEqual(FlybySequence.parse(" 4,eve, 10 ", kerbol_system).ids, expected)

    def test_with_score(self):
        seq = FlybySequence.from_ids((4, 10), kerbol_system).with_score(1234.5)
        self.assertEqual(seq.score, 1234.5)

    def test_invalid(self):
        with self.assertRaises(ValueError):
            FlybySequence.from_ids((4,), kerbol_system)
        with self.assertRaises(ValueError):
            FlybySequence.from_ids((4, 5), kerbol_system)  # Mun orbits Kerbin
        with self.assertRaises(KeyError):
            FlybySequence.parse("Kerbin-Vulcan", kerbol_system)


class TestStatusBeam(unittest.TestCase):

    @staticmethod
    def _beam(budget, is_cancelled=lambda: False, **kwargs):
        def expand_fn(state):
            return (1, 2, 3)

        def score_fn(state, step):
            return float(step), (state or 0) + step

        return StatusBeam(expand_fn, score_fn, beam_width=kwargs.get("beam_width", 2),
                          max_depth=kwargs.get("max_depth", 3), budget=budget, is_cancelled=is_cancelled)

    def test_basic(self):
        budget = StatusBudget(100)
        final = self._beam(budget).run(None)
        self.assertEqual(len(final), 2)
        self.assertEqual(final[0].cum_score, 9.0)
        self.assertEqual(final[0].state, 9)
        self.assertEqual(final[0].depth, 3)
        self.assertEqual(budget.used, 3 + 6 + 6)

    def test_budget_exhaustion(self):
        budget = StatusBudget(2)
        self.assertEqual(self._beam(budget).run(None), [])
        self.assertEqual(budget.used, 2)
        self.assertTrue(budget.exhausted)

    def test_cancelled(self):
        self.assertEqual(self._beam(StatusBudget(100), is_cancelled=lambda: True).run(None), [])

    def test_non_finite_scores_pruned(self):
        def expand_fn(state):
            return (1, 2)

        def score_fn(state, step):
            return (-math.inf if step == 2 else 1.0), step

        beam = StatusBeam(expand_fn, score_fn, beam_width=4, max_depth=2, budget=StatusBudget(100),
                          is_cancelled=lambda: False)
        final = beam.run(None)
        self.assertEqual(len(final), 1)
        self.assertEqual(final[0].cum_score, 2.0)
