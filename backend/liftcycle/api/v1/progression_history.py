from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from liftcycle.api.deps import get_current_user_id
from liftcycle.db.models.progression import ProgressionLog
from liftcycle.db.session import get_db
from liftcycle.schemas.progressions import ProgressionLogResponse

router = APIRouter(prefix="/v1/progression-history", tags=["progressions"])


@router.get("", response_model=list[ProgressionLogResponse])
def progression_history(
    lift_id: UUID | None = Query(default=None),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    stmt = select(ProgressionLog).where(ProgressionLog.user_id == current_user_id)
    if lift_id is not None:
        stmt = stmt.where(ProgressionLog.lift_id == lift_id)
    rows = db.execute(
        stmt.order_by(ProgressionLog.applied_at.desc(), ProgressionLog.created_at.desc()).limit(limit)
    ).scalars()

    return [
        ProgressionLogResponse(
            id=row.id,
            progression_id=row.progression_id,
            lift_id=row.lift_id,
            previous_value=row.previous_value,
            new_value=row.new_value,
            delta=row.delta,
            trigger_type=row.trigger_type,
            trigger_context=row.trigger_context or {},
            details=row.details or {},
            applied_at=row.applied_at,
        )
        for row in rows
    ]
