from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from liftcycle.api.deps import get_current_user_id
from liftcycle.api.errors import to_http_exception
from liftcycle.core.errors import LiftcycleError
from liftcycle.db.models.workout_session import WorkoutSession
from liftcycle.db.session import get_db
from liftcycle.schemas.resolution import SetSpecResponse
from liftcycle.schemas.sessions import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    LoggedSetResponse,
    LogSetRequest,
    NextSetResponse,
    PositionResponse,
    ProgressionResultResponse,
    SessionDetailResponse,
    SessionResponse,
)
from liftcycle.services import sessions as session_service
from liftcycle.services.progression_engine import BindingResult

router = APIRouter(prefix="/v1/sessions", tags=["sessions"])
logger = logging.getLogger("liftcycle.domain")


def _session_response(session: WorkoutSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        enrollment_id=session.enrollment_id,
        day_id=session.day_id,
        week_number=session.week_number,
        cycle_iteration=session.cycle_iteration,
        day_index=session.day_index,
        status=session.status,
        started_at=session.started_at,
        finished_at=session.finished_at,
    )


def _progression_response(result: BindingResult) -> ProgressionResultResponse:
    return ProgressionResultResponse(
        progression_id=result.progression_id,
        progression_name=result.progression_name,
        lift_id=result.lift_id,
        trigger_type=result.trigger_type,
        status=result.status,
        previous_value=result.previous_value,
        new_value=result.new_value,
        delta=result.delta,
        reason=result.reason,
        retest_required=result.retest_required,
        current_stage=result.current_stage,
        consecutive_failures=result.consecutive_failures,
    )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def start_session(
    request: Request,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        session = session_service.start_session(db, current_user_id)
    except LiftcycleError as exc:
        db.rollback()
        logger.info(
            "domain_event event=session_start_failed user_id=%s reason=%s request_id=%s",
            current_user_id,
            type(exc).__name__,
            getattr(request.state, "request_id", None),
        )
        raise to_http_exception(exc) from None
    return _session_response(session)


@router.get("/{session_id}", response_model=SessionDetailResponse)
def get_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        session = session_service.get_session(db, current_user_id, session_id)
    except LiftcycleError as exc:
        raise to_http_exception(exc) from None

    return SessionDetailResponse(
        **_session_response(session).model_dump(),
        sets=[
            LoggedSetResponse(
                id=row.id,
                session_id=row.session_id,
                prescription_id=row.prescription_id,
                lift_id=row.lift_id,
                set_number=row.set_number,
                weight=row.weight,
                target_reps=row.target_reps,
                reps_performed=row.reps_performed,
                is_amrap=row.is_amrap,
                rpe=row.rpe,
            )
            for row in session_service.session_sets(db, session.id)
        ],
    )


@router.post("/{session_id}/sets", response_model=LoggedSetResponse, status_code=status.HTTP_201_CREATED)
def log_set(
    session_id: UUID,
    payload: LogSetRequest,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        row = session_service.log_set(
            db,
            current_user_id,
            session_id,
            lift_id=payload.lift_id,
            prescription_id=payload.prescription_id,
            set_number=payload.set_number,
            weight=payload.weight,
            target_reps=payload.target_reps,
            reps_performed=payload.reps_performed,
            is_amrap=payload.is_amrap,
            rpe=payload.rpe,
        )
    except LiftcycleError as exc:
        db.rollback()
        raise to_http_exception(exc) from None

    return LoggedSetResponse(
        id=row.id,
        session_id=row.session_id,
        prescription_id=row.prescription_id,
        lift_id=row.lift_id,
        set_number=row.set_number,
        weight=row.weight,
        target_reps=row.target_reps,
        reps_performed=row.reps_performed,
        is_amrap=row.is_amrap,
        rpe=row.rpe,
    )


@router.get("/{session_id}/next-set", response_model=NextSetResponse)
def next_set(
    session_id: UUID,
    prescription_id: UUID = Query(...),
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        result = session_service.next_set(db, current_user_id, session_id, prescription_id)
    except LiftcycleError as exc:
        raise to_http_exception(exc) from None

    return NextSetResponse(
        prescription_id=result.prescription_id,
        performed_sets=result.performed,
        complete=result.complete,
        next_set=SetSpecResponse(**vars(result.next_set)) if result.next_set else None,
    )


@router.post("/{session_id}/complete", response_model=CompleteSessionResponse)
def complete_session(
    session_id: UUID,
    payload: CompleteSessionRequest | None = None,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        result = session_service.complete_session(
            db,
            current_user_id,
            session_id,
            finished_at=payload.finished_at if payload else None,
        )
    except LiftcycleError as exc:
        raise to_http_exception(exc) from None

    next_position = None
    if result.advance is not None:
        next_position = PositionResponse(
            week=result.advance.position.week,
            cycle_iteration=result.advance.position.cycle_iteration,
            day_index=result.advance.position.day_index,
        )
    return CompleteSessionResponse(
        session=_session_response(result.session),
        progressions=[_progression_response(r) for r in result.progressions],
        next_position=next_position,
    )


@router.post("/{session_id}/abandon", response_model=SessionResponse)
def abandon_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        session = session_service.abandon_session(db, current_user_id, session_id)
    except LiftcycleError as exc:
        db.rollback()
        raise to_http_exception(exc) from None
    return _session_response(session)


@router.post("/{session_id}/progressions", response_model=list[ProgressionResultResponse])
def retrigger_progressions(
    session_id: UUID,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        results = session_service.retrigger_progressions(db, current_user_id, session_id)
    except LiftcycleError as exc:
        raise to_http_exception(exc) from None
    return [_progression_response(r) for r in results]
