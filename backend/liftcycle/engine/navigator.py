"""Program position arithmetic.

A position is ``(week, cycle_iteration, day_index)``. ``day_index`` points into
the week's day bindings sorted by canonical day of week (Mon=1..Sun=7), never
into storage order.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar
from uuid import UUID

from liftcycle.core.errors import DayNotFound, WeekNotFound


class WeekLike(Protocol):
    id: UUID
    week_number: int
    variant: str | None


class WeekDayLike(Protocol):
    day_id: UUID
    day_of_week: int


WeekT = TypeVar("WeekT", bound=WeekLike)
WeekDayT = TypeVar("WeekDayT", bound=WeekDayLike)


@dataclass(frozen=True)
class Position:
    week: int
    cycle_iteration: int
    day_index: int


@dataclass(frozen=True)
class Advance:
    previous: Position
    position: Position
    crossed_week: bool
    crossed_cycle: bool


def advance_position(position: Position, *, days_in_week: int, length_weeks: int) -> Advance:
    if days_in_week < 1:
        raise ValueError("days_in_week must be >= 1")
    if length_weeks < 1:
        raise ValueError("length_weeks must be >= 1")

    week = position.week
    iteration = position.cycle_iteration
    day_index = position.day_index + 1
    crossed_week = False
    crossed_cycle = False

    if day_index >= days_in_week:
        day_index = 0
        week += 1
        crossed_week = True
    if week > length_weeks:
        week = 1
        iteration += 1
        crossed_cycle = True

    return Advance(
        previous=position,
        position=Position(week=week, cycle_iteration=iteration, day_index=day_index),
        crossed_week=crossed_week,
        crossed_cycle=crossed_cycle,
    )


def variant_for_iteration(cycle_iteration: int) -> str:
    return "A" if cycle_iteration % 2 == 1 else "B"


def select_week(weeks: Sequence[WeekT], *, cycle_id: UUID, week_number: int, cycle_iteration: int) -> WeekT:
    """Pick the week row for a position, honouring A/B variants.

    A week tagged with the iteration's variant wins over an untagged one.
    """
    candidates = [week for week in weeks if week.week_number == week_number]
    wanted = variant_for_iteration(cycle_iteration)
    for week in candidates:
        if week.variant == wanted:
            return week
    for week in candidates:
        if week.variant is None:
            return week
    raise WeekNotFound(cycle_id, week_number)


def ordered_week_days(week_days: Sequence[WeekDayT]) -> list[WeekDayT]:
    return sorted(week_days, key=lambda week_day: week_day.day_of_week)


def select_day(week_id: UUID, week_days: Sequence[WeekDayT], day_index: int) -> WeekDayT:
    ordered = ordered_week_days(week_days)
    if day_index < 0 or day_index >= len(ordered):
        raise DayNotFound(week_id, day_index)
    return ordered[day_index]
