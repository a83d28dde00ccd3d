from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from liftcycle.db.models.enums import SessionStatus, TriggerType
from liftcycle.schemas.resolution import SetSpecResponse


class SessionResponse(BaseModel):
    id: UUID
    enrollment_id: UUID
    day_id: UUID | None
    week_number: int
    cycle_iteration: int
    day_index: int
    status: SessionStatus
    started_at: datetime
    finished_at: datetime | None


class LogSetRequest(BaseModel):
    lift_id: UUID
    prescription_id: UUID | None = None
    set_number: int | None = Field(default=None, ge=1)
    weight: float = Field(ge=0)
    target_reps: int | None = Field(default=None, ge=0)
    reps_performed: int = Field(ge=0)
    is_amrap: bool = False
    rpe: float | None = Field(default=None, ge=1, le=10)


class LoggedSetResponse(BaseModel):
    id: UUID
    session_id: UUID
    prescription_id: UUID | None
    lift_id: UUID
    set_number: int
    weight: float
    target_reps: int | None
    reps_performed: int
    is_amrap: bool
    rpe: float | None


class SessionDetailResponse(SessionResponse):
    sets: list[LoggedSetResponse] = Field(default_factory=list)


class CompleteSessionRequest(BaseModel):
    finished_at: datetime | None = None


class ProgressionResultResponse(BaseModel):
    progression_id: UUID
    progression_name: str
    lift_id: UUID
    trigger_type: TriggerType
    status: str
    previous_value: float | None
    new_value: float | None
    delta: float | None
    reason: str | None
    retest_required: bool
    current_stage: int | None
    consecutive_failures: int | None


class PositionResponse(BaseModel):
    week: int
    cycle_iteration: int
    day_index: int


class CompleteSessionResponse(BaseModel):
    session: SessionResponse
    progressions: list[ProgressionResultResponse] = Field(default_factory=list)
    next_position: PositionResponse | None = None


class NextSetResponse(BaseModel):
    prescription_id: UUID
    performed_sets: int
    complete: bool
    next_set: SetSpecResponse | None
