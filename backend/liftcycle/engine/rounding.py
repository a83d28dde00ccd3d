from __future__ import annotations

from dataclasses import dataclass
import enum
import math

# Quotients within this distance of an integer are treated as that integer so
# 300 * 0.85 / 2.5 floors to 102, not 101.
_QUOTIENT_EPSILON = 1e-9


class RoundingMode(str, enum.Enum):
    NEAREST = "NEAREST"
    FLOOR = "FLOOR"
    CEIL = "CEIL"


@dataclass(frozen=True)
class Rounding:
    increment: float
    mode: RoundingMode = RoundingMode.NEAREST

    def apply(self, weight: float) -> float:
        return round_weight(weight, self.increment, self.mode)

    def with_mode(self, mode: RoundingMode) -> "Rounding":
        return Rounding(increment=self.increment, mode=mode)


def round_weight(weight: float, increment: float, mode: RoundingMode = RoundingMode.NEAREST) -> float:
    """Round ``weight`` to a multiple of ``increment``.

    NEAREST rounds halves away from zero (197.5 at increment 5 gives 200).
    Raises ``ValueError`` on a negative weight or non-positive increment.
    """
    if weight < 0:
        raise ValueError(f"weight must be >= 0, got {weight}")
    if increment <= 0:
        raise ValueError(f"increment must be > 0, got {increment}")
    if weight == 0:
        return 0.0

    quotient = weight / increment
    nearest_int = round(quotient)
    if abs(quotient - nearest_int) < _QUOTIENT_EPSILON:
        quotient = float(nearest_int)

    mode = RoundingMode(mode)
    if mode is RoundingMode.FLOOR:
        steps = math.floor(quotient)
    elif mode is RoundingMode.CEIL:
        steps = math.ceil(quotient)
    else:
        steps = math.floor(quotient + 0.5)
    return _clean(steps * increment)


def apply_percentage(value: float, fraction: float, increment: float, mode: RoundingMode) -> float:
    return round_weight(value * fraction, increment, mode)


def _clean(value: float) -> float:
    # 102 * 2.5 style products can carry float noise; plates are never finer than 0.01.
    return round(value, 4)
