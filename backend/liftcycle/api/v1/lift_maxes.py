from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from liftcycle.api.deps import get_current_user_id
from liftcycle.api.errors import to_http_exception
from liftcycle.core.errors import LiftcycleError
from liftcycle.db.models.enums import MaxType
from liftcycle.db.models.lift_max import LiftMax
from liftcycle.db.session import get_db
from liftcycle.schemas.lift_maxes import LiftMaxCreateRequest, LiftMaxCreateResponse, LiftMaxResponse
from liftcycle.services import lift_maxes as lift_max_service

router = APIRouter(prefix="/v1/lift-maxes", tags=["lift-maxes"])


def lift_max_response(row: LiftMax) -> LiftMaxResponse:
    return LiftMaxResponse(
        id=row.id,
        lift_id=row.lift_id,
        max_type=row.max_type,
        value=row.value,
        effective_date=row.effective_date,
    )


@router.post("", response_model=LiftMaxCreateResponse, status_code=status.HTTP_201_CREATED)
def record_max(
    payload: LiftMaxCreateRequest,
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    effective_date: date = payload.effective_date or datetime.now(timezone.utc).date()
    try:
        recorded = lift_max_service.record_max(
            db,
            user_id=current_user_id,
            lift_id=payload.lift_id,
            max_type=payload.max_type,
            value=payload.value,
            effective_date=effective_date,
        )
        db.commit()
    except LiftcycleError as exc:
        db.rollback()
        raise to_http_exception(exc) from None
    except Exception:
        db.rollback()
        raise

    return LiftMaxCreateResponse(
        lift_max=lift_max_response(recorded.lift_max),
        mirrored_training_max=lift_max_response(recorded.mirrored) if recorded.mirrored else None,
    )


@router.get("", response_model=list[LiftMaxResponse])
def list_maxes(
    lift_id: UUID | None = Query(default=None),
    max_type: MaxType | None = Query(default=None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    rows = lift_max_service.list_maxes(
        db,
        current_user_id,
        lift_max_service.LiftMaxFilter(lift_id=lift_id, max_type=max_type, limit=limit),
    )
    return [lift_max_response(row) for row in rows]


@router.get("/current", response_model=list[LiftMaxResponse])
def current_maxes(
    db: Session = Depends(get_db),
    current_user_id: int = Depends(get_current_user_id),
):
    return [lift_max_response(row) for row in lift_max_service.current_max_snapshot(db, current_user_id)]
