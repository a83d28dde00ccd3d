from __future__ import annotations

from datetime import datetime, timezone
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from liftcycle.core.errors import AlreadyEnrolled, EnrollmentNotFound
from liftcycle.db.integrity import is_unique_violation
from liftcycle.db.models.enrollment import ACTIVE_ENROLLMENT_CONSTRAINT, UserProgramState
from liftcycle.db.models.enums import EnrollmentStatus, SessionStatus
from liftcycle.db.models.workout_session import WorkoutSession
from liftcycle.engine.navigator import Advance, Position, advance_position
from liftcycle.services.resolution import current_week, load_program, week_days_for

logger = logging.getLogger("liftcycle.domain")


def get_active_enrollment(db: Session, user_id: int, *, for_update: bool = False) -> UserProgramState:
    stmt = select(UserProgramState).where(
        UserProgramState.user_id == user_id,
        UserProgramState.status == EnrollmentStatus.ACTIVE,
    )
    if for_update:
        stmt = stmt.with_for_update()
    enrollment = db.execute(stmt).scalar_one_or_none()
    if enrollment is None:
        raise EnrollmentNotFound(f"User {user_id} has no active enrollment")
    return enrollment


def enroll(db: Session, user_id: int, program_id: UUID) -> UserProgramState:
    load_program(db, program_id)
    try:
        with db.begin_nested():
            enrollment = UserProgramState(
                user_id=user_id,
                program_id=program_id,
                status=EnrollmentStatus.ACTIVE,
                current_week=1,
                current_cycle_iteration=1,
                current_day_index=0,
            )
            db.add(enrollment)
            db.flush()
    except IntegrityError as exc:
        if is_unique_violation(exc, ACTIVE_ENROLLMENT_CONSTRAINT, "user_program_states", ("user_id",)):
            raise AlreadyEnrolled(f"User {user_id} already has an active enrollment") from None
        raise

    db.commit()
    logger.info(
        "domain_event event=enrollment_created user_id=%s enrollment_id=%s program_id=%s",
        user_id,
        enrollment.id,
        program_id,
    )
    return enrollment


def unenroll(db: Session, user_id: int) -> UserProgramState:
    enrollment = get_active_enrollment(db, user_id, for_update=True)
    now = datetime.now(timezone.utc)
    abandoned = db.execute(
        select(WorkoutSession).where(
            WorkoutSession.enrollment_id == enrollment.id,
            WorkoutSession.status == SessionStatus.IN_PROGRESS,
        )
    ).scalars().all()
    for session in abandoned:
        session.status = SessionStatus.ABANDONED
        session.finished_at = now
    enrollment.status = EnrollmentStatus.QUIT
    db.commit()
    logger.info(
        "domain_event event=enrollment_quit user_id=%s enrollment_id=%s abandoned_sessions=%s",
        user_id,
        enrollment.id,
        len(abandoned),
    )
    return enrollment


def advance_enrollment(db: Session, enrollment: UserProgramState) -> Advance:
    """Move the enrollment one day forward. Runs inside the caller's transaction."""
    graph = load_program(db, enrollment.program_id)
    week = current_week(db, graph.cycle, enrollment.current_week, enrollment.current_cycle_iteration)
    days_in_week = len(week_days_for(db, week.id))

    advance = advance_position(
        Position(
            week=enrollment.current_week,
            cycle_iteration=enrollment.current_cycle_iteration,
            day_index=enrollment.current_day_index,
        ),
        days_in_week=days_in_week,
        length_weeks=graph.cycle.length_weeks,
    )
    enrollment.current_week = advance.position.week
    enrollment.current_cycle_iteration = advance.position.cycle_iteration
    enrollment.current_day_index = advance.position.day_index
    db.flush()

    logger.info(
        "domain_event event=enrollment_advanced enrollment_id=%s week=%s cycle_iteration=%s day_index=%s crossed_week=%s crossed_cycle=%s",
        enrollment.id,
        advance.position.week,
        advance.position.cycle_iteration,
        advance.position.day_index,
        advance.crossed_week,
        advance.crossed_cycle,
    )
    return advance
