from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from liftcycle.api.deps import get_current_user_id
from liftcycle.api.errors import to_http_exception
from liftcycle.core.errors import LiftcycleError
from liftcycle.db.models.enrollment import UserProgramState
from liftcycle.db.session import get_db
from liftcycle.schemas.enrollment import EnrollmentResponse, EnrollRequest
from liftcycle.schemas.resolution import ResolvedDayResponse, resolved_day_response
from liftcycle.services import enrollment as enrollment_service
from liftcycle.services.resolution import resolve_day_for_enrollment

router = APIRouter(prefix="/v1/enrollment", tags=["enrollment"])


def enrollment_response(enrollment: UserProgramState) -> EnrollmentResponse:
    return EnrollmentResponse(
        id=enrollment.id,
        program_id=enrollment.program_id,
        status=enrollment.status,
        current_week=enrollment.current_week,
        current_cycle_iteration=enrollment.current_cycle_iteration,
        current_day_index=enrollment.current_day_index,
        enrolled_at=enrollment.enrolled_at,
    )


@router.post("", response_model=EnrollmentResponse, status_code=status.HTTP_201_CREATED)
def enroll(
    payload: EnrollRequest,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        enrollment = enrollment_service.enroll(db, current_user_id, payload.program_id)
    except LiftcycleError as exc:
        db.rollback()
        raise to_http_exception(exc) from None
    return enrollment_response(enrollment)


@router.get("", response_model=EnrollmentResponse)
def get_enrollment(
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        enrollment = enrollment_service.get_active_enrollment(db, current_user_id)
    except LiftcycleError as exc:
        raise to_http_exception(exc) from None
    return enrollment_response(enrollment)


@router.delete("", response_model=EnrollmentResponse)
def unenroll(
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        enrollment = enrollment_service.unenroll(db, current_user_id)
    except LiftcycleError as exc:
        db.rollback()
        raise to_http_exception(exc) from None
    return enrollment_response(enrollment)


@router.get("/today", response_model=ResolvedDayResponse)
def today(
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    try:
        enrollment = enrollment_service.get_active_enrollment(db, current_user_id)
        target, resolved = resolve_day_for_enrollment(db, enrollment)
    except LiftcycleError as exc:
        raise to_http_exception(exc) from None

    return resolved_day_response(
        resolved,
        day_name=target.day.name,
        week_number=enrollment.current_week,
        cycle_iteration=enrollment.current_cycle_iteration,
        day_index=enrollment.current_day_index,
    )
