from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from liftcycle.engine.prescriptions import ResolvedDay


class SetSpecResponse(BaseModel):
    set_number: int
    weight: float
    target_reps: int | None
    is_amrap: bool
    is_work_set: bool
    is_provisional: bool


class ResolvedPrescriptionResponse(BaseModel):
    prescription_id: UUID
    lift_id: UUID
    position: int
    working_weight: float
    set_scheme_type: str
    notes: str | None
    rest_seconds: int | None
    sets: list[SetSpecResponse] = Field(default_factory=list)


class PrescriptionGapResponse(BaseModel):
    prescription_id: UUID
    lift_id: UUID
    position: int
    reason: str
    message: str
    missing_max_lift_id: UUID | None = None
    missing_max_type: str | None = None


class ResolvedDayResponse(BaseModel):
    day_id: UUID | None
    day_name: str | None = None
    week_number: int
    cycle_iteration: int
    day_index: int
    items: list[ResolvedPrescriptionResponse] = Field(default_factory=list)
    gaps: list[PrescriptionGapResponse] = Field(default_factory=list)


def resolved_day_response(
    resolved: ResolvedDay,
    *,
    day_name: str | None,
    week_number: int,
    cycle_iteration: int,
    day_index: int,
) -> ResolvedDayResponse:
    return ResolvedDayResponse(
        day_id=resolved.day_id,
        day_name=day_name,
        week_number=week_number,
        cycle_iteration=cycle_iteration,
        day_index=day_index,
        items=[
            ResolvedPrescriptionResponse(
                prescription_id=item.prescription_id,
                lift_id=item.lift_id,
                position=item.position,
                working_weight=item.working_weight,
                set_scheme_type=item.set_scheme_type,
                notes=item.notes,
                rest_seconds=item.rest_seconds,
                sets=[SetSpecResponse(**vars(spec)) for spec in item.sets],
            )
            for item in resolved.items
        ],
        gaps=[PrescriptionGapResponse(**vars(gap)) for gap in resolved.gaps],
    )
