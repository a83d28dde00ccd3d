from __future__ import annotations

from pydantic import BaseModel, Field

from liftcycle.schemas.enrollment import EnrollmentResponse
from liftcycle.schemas.lift_maxes import LiftMaxResponse
from liftcycle.schemas.resolution import ResolvedDayResponse


class SessionCountsResponse(BaseModel):
    in_progress: int = 0
    completed: int = 0
    abandoned: int = 0


class DashboardResponse(BaseModel):
    enrollment: EnrollmentResponse | None = None
    today: ResolvedDayResponse | None = None
    today_error: str | None = None
    estimated_duration_seconds: int | None = None
    current_maxes: list[LiftMaxResponse] = Field(default_factory=list)
    session_counts: SessionCountsResponse
    logged_set_count: int = 0
