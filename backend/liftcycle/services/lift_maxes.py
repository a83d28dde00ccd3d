"""Lift max storage and the two "current max" policies.

``get_current_max`` serves load strategies: newest row of exactly the
requested type. ``current_max_snapshot`` serves display: newest row per lift
regardless of type, preferring TRAINING_MAX when dates tie. The two are kept
apart on purpose; routing strategy lookups through the display rule would
change prescribed weights.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from liftcycle.core.errors import LiftNotFound
from liftcycle.db.integrity import is_unique_violation
from liftcycle.db.models.enums import MaxType
from liftcycle.db.models.lift import Lift
from liftcycle.db.models.lift_max import LiftMax
from liftcycle.engine.load_strategies import MaxLookup

logger = logging.getLogger("liftcycle.domain")

LIFT_MAX_UNIQUE_CONSTRAINT = "uq_lift_maxes_user_lift_type_date"
_LIFT_MAX_UNIQUE_COLUMNS = ("user_id", "lift_id", "max_type", "effective_date")


@dataclass(frozen=True)
class LiftMaxFilter:
    lift_id: UUID | None = None
    max_type: MaxType | None = None
    limit: int = 100


@dataclass(frozen=True)
class RecordedMax:
    lift_max: LiftMax
    mirrored: LiftMax | None


def _find_max(db: Session, user_id: int, lift_id: UUID, max_type: MaxType, effective_date: date) -> LiftMax | None:
    return db.execute(
        select(LiftMax).where(
            LiftMax.user_id == user_id,
            LiftMax.lift_id == lift_id,
            LiftMax.max_type == max_type,
            LiftMax.effective_date == effective_date,
        )
    ).scalar_one_or_none()


def _insert_max(
    db: Session,
    user_id: int,
    lift_id: UUID,
    max_type: MaxType,
    value: float,
    effective_date: date,
) -> LiftMax | None:
    """Insert under a savepoint; None when a concurrent writer won the key."""
    try:
        with db.begin_nested():
            row = LiftMax(
                user_id=user_id,
                lift_id=lift_id,
                max_type=max_type,
                value=value,
                effective_date=effective_date,
            )
            db.add(row)
            db.flush()
            return row
    except IntegrityError as exc:
        if not is_unique_violation(exc, LIFT_MAX_UNIQUE_CONSTRAINT, "lift_maxes", _LIFT_MAX_UNIQUE_COLUMNS):
            raise
    return None


def upsert_max(
    db: Session,
    *,
    user_id: int,
    lift_id: UUID,
    max_type: MaxType,
    value: float,
    effective_date: date,
) -> LiftMax:
    existing = _find_max(db, user_id, lift_id, max_type, effective_date)
    if existing is None:
        created = _insert_max(db, user_id, lift_id, max_type, value, effective_date)
        if created is not None:
            return created
        existing = _find_max(db, user_id, lift_id, max_type, effective_date)
        if existing is None:
            raise RuntimeError("lift max vanished after unique conflict")
    existing.value = value
    db.flush()
    return existing


def record_max(
    db: Session,
    *,
    user_id: int,
    lift_id: UUID,
    max_type: MaxType,
    value: float,
    effective_date: date,
) -> RecordedMax:
    """Record a max. A ONE_RM also seeds a TRAINING_MAX on the same date
    unless one is already there. Caller commits."""
    if db.get(Lift, lift_id) is None:
        raise LiftNotFound(f"Lift {lift_id} not found")

    row = upsert_max(
        db,
        user_id=user_id,
        lift_id=lift_id,
        max_type=max_type,
        value=value,
        effective_date=effective_date,
    )

    mirrored = None
    if max_type == MaxType.ONE_RM and _find_max(db, user_id, lift_id, MaxType.TRAINING_MAX, effective_date) is None:
        mirrored = _insert_max(db, user_id, lift_id, MaxType.TRAINING_MAX, value, effective_date)

    logger.info(
        "domain_event event=lift_max_recorded user_id=%s lift_id=%s max_type=%s value=%s effective_date=%s mirrored=%s",
        user_id,
        lift_id,
        max_type.value,
        value,
        effective_date.isoformat(),
        mirrored is not None,
    )
    return RecordedMax(lift_max=row, mirrored=mirrored)


def get_current_max_row(db: Session, user_id: int, lift_id: UUID, max_type: MaxType) -> LiftMax | None:
    return db.execute(
        select(LiftMax)
        .where(
            LiftMax.user_id == user_id,
            LiftMax.lift_id == lift_id,
            LiftMax.max_type == max_type,
        )
        .order_by(LiftMax.effective_date.desc())
        .limit(1)
    ).scalar_one_or_none()


def get_current_max(db: Session, user_id: int, lift_id: UUID, max_type: MaxType) -> float | None:
    row = get_current_max_row(db, user_id, lift_id, max_type)
    return None if row is None else float(row.value)


def max_lookup_for(db: Session, user_id: int) -> MaxLookup:
    def lookup(lift_id: UUID, max_type: MaxType) -> float | None:
        return get_current_max(db, user_id, lift_id, max_type)

    return lookup


def current_max_snapshot(db: Session, user_id: int) -> list[LiftMax]:
    rows = db.execute(
        select(LiftMax)
        .where(LiftMax.user_id == user_id)
        .order_by(LiftMax.lift_id, LiftMax.effective_date.desc())
    ).scalars()

    best: dict[UUID, LiftMax] = {}
    for row in rows:
        current = best.get(row.lift_id)
        if current is None:
            best[row.lift_id] = row
        elif row.effective_date == current.effective_date and row.max_type == MaxType.TRAINING_MAX:
            best[row.lift_id] = row
    return list(best.values())


def list_maxes(db: Session, user_id: int, filters: LiftMaxFilter | None = None) -> list[LiftMax]:
    filters = filters or LiftMaxFilter()
    stmt = select(LiftMax).where(LiftMax.user_id == user_id)
    if filters.lift_id is not None:
        stmt = stmt.where(LiftMax.lift_id == filters.lift_id)
    if filters.max_type is not None:
        stmt = stmt.where(LiftMax.max_type == filters.max_type)
    stmt = stmt.order_by(LiftMax.effective_date.desc(), LiftMax.created_at.desc()).limit(filters.limit)
    return list(db.execute(stmt).scalars())
