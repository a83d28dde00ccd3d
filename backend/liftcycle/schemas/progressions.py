from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from liftcycle.db.models.enums import TriggerType


class ProgressionLogResponse(BaseModel):
    id: UUID
    progression_id: UUID
    lift_id: UUID
    previous_value: float | None
    new_value: float | None
    delta: float | None
    trigger_type: TriggerType
    trigger_context: dict[str, Any] = Field(default_factory=dict)
    details: dict[str, Any] = Field(default_factory=dict)
    applied_at: datetime
