from __future__ import annotations

from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field

from liftcycle.db.models.enums import MaxType


class LiftMaxCreateRequest(BaseModel):
    lift_id: UUID
    max_type: MaxType
    value: float = Field(gt=0)
    effective_date: date | None = None


class LiftMaxResponse(BaseModel):
    id: UUID
    lift_id: UUID
    max_type: MaxType
    value: float
    effective_date: date


class LiftMaxCreateResponse(BaseModel):
    lift_max: LiftMaxResponse
    mirrored_training_max: LiftMaxResponse | None = None
