from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from liftcycle.db.models.enums import EnrollmentStatus


class EnrollRequest(BaseModel):
    program_id: UUID


class EnrollmentResponse(BaseModel):
    id: UUID
    program_id: UUID
    status: EnrollmentStatus
    current_week: int
    current_cycle_iteration: int
    current_day_index: int
    enrolled_at: datetime | None = None
