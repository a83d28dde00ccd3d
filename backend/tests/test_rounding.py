from __future__ import annotations

from liftcycle.engine.rounding import Rounding, RoundingMode, apply_percentage, round_weight
from tests.base import BackendTestBase


class RoundingTests(BackendTestBase):
    def test_modes_on_plate_increments(self):
        self._info("Checks NEAREST/FLOOR/CEIL against common plate increments.")
        cases = [
            ((197.5, 5.0, RoundingMode.NEAREST), 200.0),
            ((197.4, 5.0, RoundingMode.NEAREST), 195.0),
            ((199.0, 5.0, RoundingMode.FLOOR), 195.0),
            ((191.0, 5.0, RoundingMode.CEIL), 195.0),
            ((101.2, 2.5, RoundingMode.NEAREST), 100.0),
            ((101.2, 2.5, RoundingMode.CEIL), 102.5),
            ((200.0, 5.0, RoundingMode.CEIL), 200.0),
        ]
        received = {}
        for (weight, increment, mode), expected in cases:
            result = round_weight(weight, increment, mode)
            received[f"{weight}/{increment}/{mode.value}"] = result
            self.assertEqual(result, expected, (weight, increment, mode))
        self._pass("all rounding cases match", "ok", received_payload=received)

    def test_floor_does_not_lose_a_step_to_float_noise(self):
        self._info("Checks 300 x 0.85 floored at 2.5 gives 255, not 252.5.")
        self.assertEqual(apply_percentage(300.0, 0.85, 2.5, RoundingMode.FLOOR), 255.0)
        self.assertEqual(round_weight(0.1 + 0.2, 0.1, RoundingMode.FLOOR), 0.3)
        self._pass("255.0", apply_percentage(300.0, 0.85, 2.5, RoundingMode.FLOOR))

    def test_zero_and_invalid_inputs(self):
        self._info("Checks zero weight short-circuits and invalid inputs raise ValueError.")
        self.assertEqual(round_weight(0, 5.0, RoundingMode.CEIL), 0.0)
        with self.assertRaises(ValueError):
            round_weight(-5.0, 5.0)
        with self.assertRaises(ValueError):
            round_weight(100.0, 0)
        with self.assertRaises(ValueError):
            round_weight(100.0, -2.5)
        self._pass("0.0 for zero weight, ValueError for negative weight or increment", "ok")

    def test_rounding_value_object(self):
        rounding = Rounding(increment=2.5)
        self.assertEqual(rounding.mode, RoundingMode.NEAREST)
        self.assertEqual(rounding.apply(226.0), 225.0)
        floor = rounding.with_mode(RoundingMode.FLOOR)
        self.assertEqual(floor.apply(227.4), 225.0)
        self.assertEqual(floor.increment, 2.5)
        self._pass("with_mode keeps increment and switches mode", floor)

    def test_modes_bracket_the_weight_across_a_sweep(self):
        self._info("Sweeps weights 0-500 in 0.1 steps and checks FLOOR <= w <= CEIL with NEAREST within half an increment.")
        tolerance = 1e-6
        checked = 0
        for increment in (1.0, 1.25, 2.5, 5.0):
            for tenths in range(0, 5001):
                weight = tenths / 10
                floor = round_weight(weight, increment, RoundingMode.FLOOR)
                ceil = round_weight(weight, increment, RoundingMode.CEIL)
                nearest = round_weight(weight, increment, RoundingMode.NEAREST)
                case = (weight, increment, floor, nearest, ceil)
                self.assertLessEqual(floor, weight + tolerance, case)
                self.assertGreaterEqual(ceil, weight - tolerance, case)
                self.assertLessEqual(floor, nearest, case)
                self.assertLessEqual(nearest, ceil, case)
                self.assertLessEqual(abs(nearest - weight), increment / 2 + tolerance, case)
                self.assertLessEqual(ceil - floor, increment + tolerance, case)
                for result in (floor, nearest, ceil):
                    steps = result / increment
                    self.assertAlmostEqual(steps, round(steps), places=6, msg=case)
                checked += 1
        self._pass("all modes bracket the weight", checked)
