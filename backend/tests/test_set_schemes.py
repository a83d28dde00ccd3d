from __future__ import annotations

from liftcycle.core.errors import InvalidConfiguration
from liftcycle.engine.rounding import Rounding
from liftcycle.engine.set_schemes import (
    Amrap,
    FatigueDrop,
    FixedSets,
    MaxRepSets,
    Ramp,
    RepRange,
    TotalReps,
    estimate_duration_seconds,
    parse_set_scheme,
    planned_set_count,
)
from tests.base import BackendTestBase

ROUND_5 = Rounding(increment=5.0)


class SetSchemeTests(BackendTestBase):
    def test_fixed_sets(self):
        scheme = parse_set_scheme({"type": "FIXED", "sets": 5, "reps": 5})
        self.assertIsInstance(scheme, FixedSets)
        sets = scheme.generate(225.0, ROUND_5)
        self.assertEqual([s.set_number for s in sets], [1, 2, 3, 4, 5])
        self.assertTrue(all(s.weight == 225.0 and s.target_reps == 5 and s.is_work_set for s in sets))
        self.assertFalse(any(s.is_amrap for s in sets))
        self._pass("5 x 5 @ 225", len(sets))

    def test_ramp_floors_warmups_and_rounds_top_set_normally(self):
        self._info("Checks ramp warm-up steps floor while the last step uses the program rounding.")
        scheme = parse_set_scheme(
            {
                "type": "RAMP",
                "steps": [
                    {"percent": 0.55, "reps": 5},
                    {"percent": 0.7, "reps": 3},
                    {"percent": 0.85, "reps": 1, "amrap": True},
                ],
            }
        )
        self.assertIsInstance(scheme, Ramp)
        sets = scheme.generate(315.0, ROUND_5)
        weights = [s.weight for s in sets]
        self.assertEqual(weights, [170.0, 220.0, 270.0])
        self.assertEqual([s.is_work_set for s in sets], [False, False, True])
        self.assertEqual([s.is_amrap for s in sets], [False, False, True])
        self._pass("[170, 220, 270] with only the top set AMRAP", weights)

    def test_ramp_rejects_amrap_before_last_step(self):
        with self.assertRaises(InvalidConfiguration):
            parse_set_scheme(
                {
                    "type": "RAMP",
                    "steps": [{"percent": 0.6, "reps": 5, "amrap": True}, {"percent": 0.8, "reps": 3}],
                }
            )
        with self.assertRaises(InvalidConfiguration):
            parse_set_scheme({"type": "RAMP", "steps": []})
        self._pass("InvalidConfiguration", "ok")

    def test_fatigue_drop_never_goes_below_one_rep(self):
        scheme = parse_set_scheme({"type": "FATIGUE_DROP", "initial_reps": 8, "drop_reps": 2, "num_sets": 4})
        self.assertIsInstance(scheme, FatigueDrop)
        self.assertEqual([s.target_reps for s in scheme.generate(200.0, ROUND_5)], [8, 6, 4, 2])

        steep = parse_set_scheme({"type": "FATIGUE_DROP", "initial_reps": 3, "drop_reps": 2, "num_sets": 3})
        self.assertEqual([s.target_reps for s in steep.generate(200.0, ROUND_5)], [3, 1, 1])
        self._pass("8/6/4/2 and 3/1/1", "ok")

    def test_max_rep_sets_stop_at_target_total(self):
        self._info("Checks MRS sets are AMRAP and stop once the rep total is reached.")
        scheme = parse_set_scheme({"type": "MRS", "sets": 3, "min_reps": 5, "target_total": 25})
        self.assertIsInstance(scheme, MaxRepSets)
        planned = scheme.generate(185.0, ROUND_5)
        self.assertEqual(len(planned), 3)
        self.assertTrue(all(s.is_amrap and s.target_reps == 5 for s in planned))

        upcoming = scheme.next_set(185.0, ROUND_5, [12, 10])
        self.assertIsNotNone(upcoming)
        self.assertEqual(upcoming.set_number, 3)
        self.assertIsNone(scheme.next_set(185.0, ROUND_5, [12, 13]))
        # min_reps is advisory: a short set does not end the scheme early.
        self.assertEqual(scheme.next_set(185.0, ROUND_5, [3]).set_number, 2)
        self._pass("set 3 after 22 reps, done after 25", upcoming)

    def test_total_reps_is_variable_count(self):
        self._info("Checks TOTAL_REPS emits provisional sets and completes on the rep total.")
        scheme = parse_set_scheme({"type": "TOTAL_REPS", "target_total": 50})
        self.assertIsInstance(scheme, TotalReps)
        planned = scheme.generate(135.0, ROUND_5)
        self.assertEqual(len(planned), 20)
        self.assertTrue(all(s.is_provisional and s.target_reps == 10 for s in planned))
        self.assertEqual(scheme.expected_set_count(), 5)

        self.assertEqual(scheme.next_set(135.0, ROUND_5, [15, 15, 15]).set_number, 4)
        self.assertIsNone(scheme.next_set(135.0, ROUND_5, [20, 20, 10]))
        self._pass("provisional sets, complete at 50", scheme.expected_set_count())

    def test_amrap_scheme_marks_last_set(self):
        scheme = parse_set_scheme({"type": "AMRAP", "sets_before": 2, "working_reps": 5})
        self.assertIsInstance(scheme, Amrap)
        sets = scheme.generate(250.0, ROUND_5)
        self.assertEqual([s.is_amrap for s in sets], [False, False, True])
        self.assertEqual(sets[-1].set_number, 3)
        self.assertEqual(sets[-1].target_reps, 5)
        self.assertIsNone(scheme.next_set(250.0, ROUND_5, [5, 5, 9]))
        self._pass("two straight sets then AMRAP", [s.is_amrap for s in sets])

    def test_duration_estimate_follows_set_rules(self):
        self._info("Checks duration is planned sets x (set time + rest) using each scheme's own count.")
        schemes = [
            (parse_set_scheme({"type": "FIXED", "sets": 5, "reps": 5}), 180),
            (parse_set_scheme({"type": "TOTAL_REPS", "target_total": 50}), None),
        ]
        self.assertEqual([planned_set_count(s) for s, _ in schemes], [5, 5])
        seconds = estimate_duration_seconds(schemes, seconds_per_set=45, default_rest_seconds=120)
        self.assertEqual(seconds, 5 * (45 + 180) + 5 * (45 + 120))
        self._pass("1950 seconds", seconds)

    def test_unknown_scheme_type(self):
        with self.assertRaises(InvalidConfiguration):
            parse_set_scheme({"type": "PYRAMID", "sets": 3})
        with self.assertRaises(InvalidConfiguration):
            parse_set_scheme({"type": "FIXED", "sets": 0, "reps": 5})
        self._pass("InvalidConfiguration", "ok")

    def test_rep_range_targets_the_bottom_of_the_range(self):
        scheme = parse_set_scheme({"type": "REP_RANGE", "sets": 3, "min_reps": 8, "max_reps": 12})
        self.assertIsInstance(scheme, RepRange)
        sets = scheme.generate(135.0, ROUND_5)
        self.assertEqual([(s.set_number, s.weight, s.target_reps) for s in sets], [(1, 135.0, 8), (2, 135.0, 8), (3, 135.0, 8)])
        self.assertTrue(all(s.is_work_set and not s.is_amrap for s in sets))
        self.assertEqual(planned_set_count(scheme), 3)

        fixed_range = parse_set_scheme({"type": "REP_RANGE", "sets": 1, "min_reps": 5, "max_reps": 5})
        self.assertEqual(fixed_range.generate(100.0, ROUND_5)[0].target_reps, 5)
        for blob in (
            {"type": "REP_RANGE", "sets": 3, "min_reps": 12, "max_reps": 8},
            {"type": "REP_RANGE", "sets": 0, "min_reps": 8, "max_reps": 12},
            {"type": "REP_RANGE", "sets": 3, "min_reps": 0, "max_reps": 12},
        ):
            with self.assertRaises(InvalidConfiguration, msg=blob):
                parse_set_scheme(blob)
        self._pass("3 x 8 @ 135, inverted range rejected", len(sets))
