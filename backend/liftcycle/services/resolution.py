from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from liftcycle.core.config import get_default_rounding_increment
from liftcycle.core.errors import DayNotFound, ProgramNotFound
from liftcycle.db.models.cycle import Cycle, Week, WeekDay
from liftcycle.db.models.day import Day, DayPrescription
from liftcycle.db.models.enrollment import UserProgramState
from liftcycle.db.models.prescription import Prescription
from liftcycle.db.models.program import DailyLookup, Program, WeeklyLookup
from liftcycle.engine.load_strategies import LookupContext
from liftcycle.engine.navigator import ordered_week_days, select_day, select_week
from liftcycle.engine.prescriptions import ResolvedDay, resolve_day
from liftcycle.engine.rounding import Rounding, RoundingMode
from liftcycle.services.lift_maxes import max_lookup_for


@dataclass(frozen=True)
class ProgramGraph:
    program: Program
    cycle: Cycle


@dataclass(frozen=True)
class TodayTarget:
    week: Week
    week_day: WeekDay
    day: Day
    days_in_week: int


def load_program(db: Session, program_id: UUID) -> ProgramGraph:
    program = db.get(Program, program_id)
    if program is None:
        raise ProgramNotFound(f"Program {program_id} not found")
    cycle = db.get(Cycle, program.cycle_id)
    if cycle is None:
        raise ProgramNotFound(f"Program {program_id} has no cycle")
    return ProgramGraph(program=program, cycle=cycle)


def program_rounding(program: Program) -> Rounding:
    increment = program.rounding_increment or get_default_rounding_increment()
    return Rounding(increment=float(increment), mode=RoundingMode.NEAREST)


def week_days_for(db: Session, week_id: UUID) -> list[WeekDay]:
    rows = db.execute(
        select(WeekDay).where(WeekDay.week_id == week_id).order_by(WeekDay.day_of_week)
    ).scalars()
    return ordered_week_days(list(rows))


def current_week(db: Session, cycle: Cycle, week_number: int, cycle_iteration: int) -> Week:
    weeks = db.execute(
        select(Week)
        .where(Week.cycle_id == cycle.id, Week.week_number == week_number)
        .order_by(Week.week_number)
    ).scalars()
    return select_week(
        list(weeks),
        cycle_id=cycle.id,
        week_number=week_number,
        cycle_iteration=cycle_iteration,
    )


def resolve_today(db: Session, enrollment: UserProgramState) -> TodayTarget:
    graph = load_program(db, enrollment.program_id)
    week = current_week(db, graph.cycle, enrollment.current_week, enrollment.current_cycle_iteration)
    week_days = week_days_for(db, week.id)
    week_day = select_day(week.id, week_days, enrollment.current_day_index)
    day = db.get(Day, week_day.day_id)
    if day is None:
        raise DayNotFound(week.id, enrollment.current_day_index)
    return TodayTarget(week=week, week_day=week_day, day=day, days_in_week=len(week_days))


def day_prescriptions(db: Session, day_id: UUID) -> list[Prescription]:
    rows = db.execute(
        select(Prescription)
        .join(DayPrescription, DayPrescription.prescription_id == Prescription.id)
        .where(DayPrescription.day_id == day_id)
        .order_by(DayPrescription.position)
    ).scalars()
    return list(rows)


def lookup_context(db: Session, program: Program, week_number: int, day_slug: str) -> LookupContext:
    weekly = db.get(WeeklyLookup, program.weekly_lookup_id) if program.weekly_lookup_id else None
    daily = db.get(DailyLookup, program.daily_lookup_id) if program.daily_lookup_id else None
    return LookupContext(
        week_number=week_number,
        day_slug=day_slug,
        weekly_entries=weekly.entries if weekly else {},
        daily_entries=daily.entries if daily else {},
    )


def resolve_day_for_enrollment(db: Session, enrollment: UserProgramState) -> tuple[TodayTarget, ResolvedDay]:
    """Resolve today's day for an enrollment into weights and sets.

    Missing Week/Day rows raise; a missing max only leaves a gap.
    """
    target = resolve_today(db, enrollment)
    program = db.get(Program, enrollment.program_id)
    resolved = resolve_day(
        target.day.id,
        day_prescriptions(db, target.day.id),
        get_current_max=max_lookup_for(db, enrollment.user_id),
        rounding=program_rounding(program),
        lookups=lookup_context(db, program, enrollment.current_week, target.day.slug),
    )
    return target, resolved


def program_lift_ids(db: Session, program_id: UUID) -> list[UUID]:
    """Every lift prescribed anywhere in the program's cycle, in first-seen order."""
    program = db.get(Program, program_id)
    if program is None:
        raise ProgramNotFound(f"Program {program_id} not found")
    rows = db.execute(
        select(Prescription.lift_id)
        .join(DayPrescription, DayPrescription.prescription_id == Prescription.id)
        .join(WeekDay, WeekDay.day_id == DayPrescription.day_id)
        .join(Week, Week.id == WeekDay.week_id)
        .where(Week.cycle_id == program.cycle_id)
        .order_by(Week.week_number, WeekDay.day_of_week, DayPrescription.position)
    ).scalars()
    seen: dict[UUID, None] = {}
    for lift_id in rows:
        seen.setdefault(lift_id, None)
    return list(seen)
