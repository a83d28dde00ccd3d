"""Workout session lifecycle.

IN_PROGRESS -> COMPLETED and IN_PROGRESS -> ABANDONED are the only moves.
The one-open-session-per-enrollment rule lives in a partial unique index, so
two racing starts cannot both insert.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from liftcycle.core.errors import (
    InvalidFinishTime,
    InvalidSessionTransition,
    LiftMismatch,
    LiftNotFound,
    PrescriptionNotFound,
    SessionAlreadyActive,
    SessionNotFound,
)
from liftcycle.db.integrity import is_unique_violation
from liftcycle.db.models.day import Day, DayPrescription
from liftcycle.db.models.enums import EnrollmentStatus, SessionStatus
from liftcycle.db.models.enrollment import UserProgramState
from liftcycle.db.models.lift import Lift
from liftcycle.db.models.logged_set import LoggedSet
from liftcycle.db.models.prescription import Prescription
from liftcycle.db.models.program import Program
from liftcycle.db.models.workout_session import ONE_ACTIVE_SESSION_CONSTRAINT, WorkoutSession
from liftcycle.engine.navigator import Advance
from liftcycle.engine.load_strategies import LookupContext, StrategyContext, parse_load_strategy
from liftcycle.engine.set_schemes import SetSpec, parse_set_scheme
from liftcycle.services import progression_engine
from liftcycle.services.enrollment import advance_enrollment, get_active_enrollment
from liftcycle.services.lift_maxes import max_lookup_for
from liftcycle.services.resolution import lookup_context, program_rounding, resolve_today

logger = logging.getLogger("liftcycle.domain")


@dataclass
class CompletionResult:
    session: WorkoutSession
    progressions: list[progression_engine.BindingResult] = field(default_factory=list)
    advance: Advance | None = None


@dataclass(frozen=True)
class NextSet:
    prescription_id: UUID
    performed: int
    next_set: SetSpec | None

    @property
    def complete(self) -> bool:
        return self.next_set is None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_session(db: Session, user_id: int, session_id: UUID, *, for_update: bool = False) -> WorkoutSession:
    stmt = select(WorkoutSession).where(
        WorkoutSession.id == session_id,
        WorkoutSession.user_id == user_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    session = db.execute(stmt).scalar_one_or_none()
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found")
    return session


def _open_session_id(db: Session, enrollment_id: UUID) -> UUID | None:
    return db.execute(
        select(WorkoutSession.id).where(
            WorkoutSession.enrollment_id == enrollment_id,
            WorkoutSession.status == SessionStatus.IN_PROGRESS,
        )
    ).scalar_one_or_none()


def start_session(db: Session, user_id: int) -> WorkoutSession:
    enrollment = get_active_enrollment(db, user_id)
    target = resolve_today(db, enrollment)

    try:
        with db.begin_nested():
            session = WorkoutSession(
                user_id=user_id,
                enrollment_id=enrollment.id,
                day_id=target.day.id,
                week_number=enrollment.current_week,
                cycle_iteration=enrollment.current_cycle_iteration,
                day_index=enrollment.current_day_index,
                status=SessionStatus.IN_PROGRESS,
                started_at=_utcnow(),
            )
            db.add(session)
            db.flush()
    except IntegrityError as exc:
        if not is_unique_violation(exc, ONE_ACTIVE_SESSION_CONSTRAINT, "workout_sessions", ("enrollment_id",)):
            raise
        db.rollback()
        existing = _open_session_id(db, enrollment.id)
        logger.info(
            "domain_event event=session_start_conflict user_id=%s enrollment_id=%s session_id=%s",
            user_id,
            enrollment.id,
            existing,
        )
        raise SessionAlreadyActive(enrollment.id, existing) from None

    db.commit()
    logger.info(
        "domain_event event=session_started user_id=%s session_id=%s enrollment_id=%s week=%s day_index=%s",
        user_id,
        session.id,
        enrollment.id,
        session.week_number,
        session.day_index,
    )
    return session


def _require_in_progress(session: WorkoutSession, target: SessionStatus) -> None:
    if session.status != SessionStatus.IN_PROGRESS:
        raise InvalidSessionTransition(session.status.value, target.value)


def _day_prescription(db: Session, session: WorkoutSession, prescription_id: UUID) -> Prescription:
    prescription = db.execute(
        select(Prescription)
        .join(DayPrescription, DayPrescription.prescription_id == Prescription.id)
        .where(Prescription.id == prescription_id, DayPrescription.day_id == session.day_id)
    ).scalar_one_or_none()
    if prescription is None:
        raise PrescriptionNotFound(f"Prescription {prescription_id} is not part of this session")
    return prescription


def log_set(
    db: Session,
    user_id: int,
    session_id: UUID,
    *,
    lift_id: UUID,
    reps_performed: int,
    weight: float,
    prescription_id: UUID | None = None,
    set_number: int | None = None,
    target_reps: int | None = None,
    is_amrap: bool = False,
    rpe: float | None = None,
) -> LoggedSet:
    session = get_session(db, user_id, session_id, for_update=True)
    if session.status != SessionStatus.IN_PROGRESS:
        raise InvalidSessionTransition(session.status.value, "LOG_SET")
    if db.get(Lift, lift_id) is None:
        raise LiftNotFound(f"Lift {lift_id} not found")
    if prescription_id is not None:
        prescription = _day_prescription(db, session, prescription_id)
        if prescription.lift_id != lift_id:
            raise LiftMismatch(prescription_id, prescription.lift_id, lift_id)

    if set_number is None:
        count = db.execute(
            select(func.count(LoggedSet.id)).where(
                LoggedSet.session_id == session.id,
                LoggedSet.lift_id == lift_id,
            )
        ).scalar_one()
        set_number = int(count) + 1

    logged = LoggedSet(
        user_id=user_id,
        session_id=session.id,
        prescription_id=prescription_id,
        lift_id=lift_id,
        set_number=set_number,
        weight=weight,
        target_reps=target_reps,
        reps_performed=reps_performed,
        is_amrap=is_amrap,
        rpe=rpe,
    )
    db.add(logged)
    db.commit()
    return logged


def session_sets(db: Session, session_id: UUID) -> list[LoggedSet]:
    return list(
        db.execute(
            select(LoggedSet)
            .where(LoggedSet.session_id == session_id)
            .order_by(LoggedSet.created_at, LoggedSet.set_number)
        ).scalars()
    )


def complete_session(
    db: Session,
    user_id: int,
    session_id: UUID,
    *,
    finished_at: datetime | None = None,
) -> CompletionResult:
    """Complete a session, apply progressions and advance the enrollment.

    Status change, progressions and the advance commit together.
    """
    try:
        session = get_session(db, user_id, session_id, for_update=True)
        _require_in_progress(session, SessionStatus.COMPLETED)
        # Normalized to UTC: the ledger key compares on this timestamp.
        finished = _as_utc(finished_at).astimezone(timezone.utc) if finished_at else _utcnow()
        if finished < _as_utc(session.started_at):
            raise InvalidFinishTime(f"Session {session.id} cannot finish before it started")
        session.status = SessionStatus.COMPLETED
        session.finished_at = finished
        db.flush()

        result = CompletionResult(session=session)
        enrollment = db.execute(
            select(UserProgramState).where(UserProgramState.id == session.enrollment_id).with_for_update()
        ).scalar_one()

        result.progressions.extend(
            progression_engine.apply_session_progressions(
                db,
                user_id=user_id,
                program_id=enrollment.program_id,
                session_id=session.id,
                applied_at=_as_utc(session.finished_at),
                logged_sets=session_sets(db, session.id),
            )
        )

        if enrollment.status == EnrollmentStatus.ACTIVE:
            result.advance = advance_enrollment(db, enrollment)
            result.progressions.extend(
                progression_engine.apply_boundary_progressions(
                    db,
                    user_id=user_id,
                    program_id=enrollment.program_id,
                    advance=result.advance,
                    applied_at=_as_utc(session.finished_at),
                )
            )

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "domain_event event=session_completed user_id=%s session_id=%s applied=%s skipped=%s failed=%s",
        user_id,
        session.id,
        sum(1 for r in result.progressions if r.status == "applied"),
        sum(1 for r in result.progressions if r.status == "skipped"),
        sum(1 for r in result.progressions if r.status == "failed"),
    )
    return result


def abandon_session(db: Session, user_id: int, session_id: UUID) -> WorkoutSession:
    session = get_session(db, user_id, session_id, for_update=True)
    _require_in_progress(session, SessionStatus.ABANDONED)
    session.status = SessionStatus.ABANDONED
    session.finished_at = _utcnow()
    db.commit()
    logger.info(
        "domain_event event=session_abandoned user_id=%s session_id=%s",
        user_id,
        session.id,
    )
    return session


def retrigger_progressions(db: Session, user_id: int, session_id: UUID) -> list[progression_engine.BindingResult]:
    """Re-run AFTER_SESSION progressions for a completed session.

    The ledger turns already-applied bindings into skips.
    """
    try:
        session = get_session(db, user_id, session_id)
        if session.status != SessionStatus.COMPLETED:
            raise InvalidSessionTransition(session.status.value, "RETRIGGER")
        enrollment = db.get(UserProgramState, session.enrollment_id)
        results = progression_engine.apply_session_progressions(
            db,
            user_id=user_id,
            program_id=enrollment.program_id,
            session_id=session.id,
            applied_at=_as_utc(session.finished_at),
            logged_sets=session_sets(db, session.id),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return results


def next_set(db: Session, user_id: int, session_id: UUID, prescription_id: UUID) -> NextSet:
    """What to perform next for one prescription of an open session."""
    session = get_session(db, user_id, session_id)
    if session.status != SessionStatus.IN_PROGRESS:
        raise InvalidSessionTransition(session.status.value, "NEXT_SET")

    prescription = _day_prescription(db, session, prescription_id)

    enrollment = db.get(UserProgramState, session.enrollment_id)
    program = db.get(Program, enrollment.program_id)
    rounding = program_rounding(program)
    day = db.get(Day, session.day_id)
    lookups = lookup_context(db, program, session.week_number, day.slug) if day is not None else LookupContext()

    strategy = parse_load_strategy(prescription.load_strategy)
    working_weight = strategy.resolve(
        StrategyContext(
            lift_id=prescription.lift_id,
            get_current_max=max_lookup_for(db, user_id),
            lookups=lookups,
        ),
        rounding,
    )
    performed = [
        row.reps_performed
        for row in session_sets(db, session.id)
        if row.prescription_id == prescription.id
    ]
    scheme = parse_set_scheme(prescription.set_scheme)
    return NextSet(
        prescription_id=prescription.id,
        performed=len(performed),
        next_set=scheme.next_set(working_weight, strategy.effective_rounding(rounding), performed),
    )
