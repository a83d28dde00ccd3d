from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from liftcycle.api.deps import get_current_user_id
from liftcycle.api.v1.enrollment import enrollment_response
from liftcycle.api.v1.lift_maxes import lift_max_response
from liftcycle.core.config import get_default_rest_seconds, get_default_set_seconds
from liftcycle.core.errors import EnrollmentNotFound, InvalidConfiguration, ProgramIntegrityError
from liftcycle.db.models.enums import SessionStatus
from liftcycle.db.models.logged_set import LoggedSet
from liftcycle.db.models.workout_session import WorkoutSession
from liftcycle.db.session import get_db
from liftcycle.engine.set_schemes import estimate_duration_seconds, parse_set_scheme
from liftcycle.schemas.dashboard import DashboardResponse, SessionCountsResponse
from liftcycle.schemas.resolution import resolved_day_response
from liftcycle.services.enrollment import get_active_enrollment
from liftcycle.services.lift_maxes import current_max_snapshot
from liftcycle.services.resolution import day_prescriptions, resolve_day_for_enrollment

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
def dashboard(
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    status_rows = db.execute(
        select(WorkoutSession.status, func.count(WorkoutSession.id))
        .where(WorkoutSession.user_id == current_user_id)
        .group_by(WorkoutSession.status)
    ).all()
    counts = {session_status: int(count) for session_status, count in status_rows}
    logged_set_count = db.execute(
        select(func.count(LoggedSet.id)).where(LoggedSet.user_id == current_user_id)
    ).scalar_one()

    response = DashboardResponse(
        session_counts=SessionCountsResponse(
            in_progress=counts.get(SessionStatus.IN_PROGRESS, 0),
            completed=counts.get(SessionStatus.COMPLETED, 0),
            abandoned=counts.get(SessionStatus.ABANDONED, 0),
        ),
        logged_set_count=int(logged_set_count),
        current_maxes=[lift_max_response(row) for row in current_max_snapshot(db, current_user_id)],
    )

    try:
        enrollment = get_active_enrollment(db, current_user_id)
    except EnrollmentNotFound:
        return response
    response.enrollment = enrollment_response(enrollment)

    try:
        target, resolved = resolve_day_for_enrollment(db, enrollment)
    except ProgramIntegrityError as exc:
        response.today_error = str(exc)
        return response

    response.today = resolved_day_response(
        resolved,
        day_name=target.day.name,
        week_number=enrollment.current_week,
        cycle_iteration=enrollment.current_cycle_iteration,
        day_index=enrollment.current_day_index,
    )
    # Estimated from the set-scheme rules, so gaps still count toward time.
    schemes = []
    for prescription in day_prescriptions(db, target.day.id):
        try:
            schemes.append((parse_set_scheme(prescription.set_scheme), prescription.rest_seconds))
        except InvalidConfiguration:
            continue
    response.estimated_duration_seconds = estimate_duration_seconds(
        schemes,
        seconds_per_set=get_default_set_seconds(),
        default_rest_seconds=get_default_rest_seconds(),
    )
    return response
