"""Progression rules.

A progression reads one lift's logged sets plus the lifter's stored state and
returns a ``ProgressionOutcome`` describing the new max, stage and failure
counter. Nothing here touches the database; the engine in
``liftcycle.services.progression_engine`` persists outcomes and keeps the
ledger.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from liftcycle.core.errors import InvalidStageTransition
from liftcycle.db.models.enums import MaxType, TriggerType
from liftcycle.engine.registry import ConfigRegistry, VersionedConfig


@dataclass(frozen=True)
class PerformedSet:
    set_number: int
    weight: float
    target_reps: int | None
    reps_performed: int
    is_amrap: bool = False
    rpe: float | None = None

    @property
    def missed_target(self) -> bool:
        return self.target_reps is not None and self.reps_performed < self.target_reps


@dataclass(frozen=True)
class TriggerContext:
    lift_id: UUID
    trigger_type: TriggerType
    increment: float | None
    session_id: UUID | None = None
    logged_sets: tuple[PerformedSet, ...] = ()

    @property
    def total_reps(self) -> int:
        return sum(s.reps_performed for s in self.logged_sets)

    def to_json(self) -> dict[str, Any]:
        return {
            "lift_id": str(self.lift_id),
            "session_id": str(self.session_id) if self.session_id else None,
            "trigger_type": self.trigger_type.value,
            "increment": self.increment,
            "logged_sets": [
                {
                    "set_number": s.set_number,
                    "weight": s.weight,
                    "target_reps": s.target_reps,
                    "reps_performed": s.reps_performed,
                    "is_amrap": s.is_amrap,
                    "rpe": s.rpe,
                }
                for s in self.logged_sets
            ],
        }


@dataclass(frozen=True)
class LifterState:
    current_max: float | None
    current_stage: int = 0
    consecutive_failures: int = 0
    extra_state: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProgressionOutcome:
    applied: bool
    previous_value: float | None
    new_value: float | None
    # None means the rule does not track that piece of state.
    current_stage: int | None = None
    consecutive_failures: int | None = None
    counter_event: Literal["failure", "success"] | None = None
    retest_required: bool = False
    reason: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def delta(self) -> float | None:
        if self.previous_value is None or self.new_value is None:
            return None
        return round(self.new_value - self.previous_value, 4)

    @property
    def max_changed(self) -> bool:
        return bool(self.delta)

    @classmethod
    def skip(cls, reason: str, previous_value: float | None = None) -> "ProgressionOutcome":
        return cls(applied=False, previous_value=previous_value, new_value=previous_value, reason=reason)


def deload(value: float, percent: float) -> float:
    return round(value * (1 - percent), 2)


class Progression(VersionedConfig):
    trigger: TriggerType = TriggerType.AFTER_SESSION
    max_type: MaxType = MaxType.TRAINING_MAX

    # AMRAP steps carry their own increments, so a binding override is ignored.
    uses_increment_override: ClassVar[bool] = True

    def default_increment(self) -> float | None:
        return getattr(self, "increment", None)

    def effective_increment(self, override: float | None) -> float | None:
        if self.uses_increment_override and override is not None:
            return override
        return self.default_increment()

    def evaluate(self, context: TriggerContext, state: LifterState) -> ProgressionOutcome:
        raise NotImplementedError


progression_registry: ConfigRegistry[Progression] = ConfigRegistry("progression")


@progression_registry.register
class LinearProgression(Progression):
    type: Literal["LINEAR_PROGRESSION"] = "LINEAR_PROGRESSION"
    increment: float = Field(gt=0)
    require_success: bool = False

    def evaluate(self, context: TriggerContext, state: LifterState) -> ProgressionOutcome:
        previous = state.current_max
        if self.require_success and any(s.missed_target for s in context.logged_sets):
            return ProgressionOutcome.skip("target_reps_missed", previous)
        increment = context.increment if context.increment is not None else self.increment
        return ProgressionOutcome(
            applied=True,
            previous_value=previous,
            new_value=round(previous + increment, 4),
            details={"increment": increment},
        )


class RepsThreshold(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    min_reps: int = Field(ge=0)
    increment: float = Field(gt=0)


@progression_registry.register
class AmrapProgression(Progression):
    type: Literal["AMRAP_PROGRESSION"] = "AMRAP_PROGRESSION"
    thresholds: list[RepsThreshold] = Field(min_length=1)
    below_target_increment: float = Field(default=0.0, le=0)
    # Falls back to the AMRAP set's own target when unset.
    target_reps: int | None = Field(default=None, ge=1)

    uses_increment_override: ClassVar[bool] = False

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "AmrapProgression":
        reps = [t.min_reps for t in self.thresholds]
        if any(later <= earlier for earlier, later in zip(reps, reps[1:])):
            raise ValueError("thresholds must be sorted by min_reps ascending")
        return self

    def default_increment(self) -> float | None:
        return None

    def increment_for(self, reps: int, target: int | None) -> float:
        if target is not None and reps < target:
            return self.below_target_increment
        for threshold in reversed(self.thresholds):
            if reps >= threshold.min_reps:
                return threshold.increment
        return self.below_target_increment

    def evaluate(self, context: TriggerContext, state: LifterState) -> ProgressionOutcome:
        previous = state.current_max
        amrap_sets = [s for s in context.logged_sets if s.is_amrap]
        if not amrap_sets:
            return ProgressionOutcome.skip("no_amrap_set", previous)

        last = amrap_sets[-1]
        target = self.target_reps if self.target_reps is not None else last.target_reps
        increment = self.increment_for(last.reps_performed, target)
        new_value = round(previous + increment, 4)
        if new_value <= 0:
            return ProgressionOutcome.skip("non_positive_result", previous)
        return ProgressionOutcome(
            applied=True,
            previous_value=previous,
            new_value=new_value,
            details={"amrap_reps": last.reps_performed, "target_reps": target, "increment": increment},
        )


class Stage(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, max_length=50)
    sets: int = Field(ge=1)
    reps: int = Field(ge=1)
    min_volume: int | None = Field(default=None, ge=1)

    @property
    def target_volume(self) -> int:
        return self.min_volume if self.min_volume is not None else self.sets * self.reps


@progression_registry.register
class StageProgression(Progression):
    """Ordered stages with volume targets (e.g. 5x3 -> 6x2 -> 10x1).

    Hitting the stage's volume raises the max at the same stage. Missing it
    moves to the next stage at the same weight. Missing the final stage resets
    to stage 0 and flags a retest, optionally deloading the max.
    """

    type: Literal["STAGE_PROGRESSION"] = "STAGE_PROGRESSION"
    stages: list[Stage] = Field(min_length=1)
    increment: float = Field(gt=0)
    reset_on_exhaustion: bool = True
    deload_percent: float | None = Field(default=None, gt=0, lt=1)

    def evaluate(self, context: TriggerContext, state: LifterState) -> ProgressionOutcome:
        previous = state.current_max
        if not context.logged_sets:
            return ProgressionOutcome.skip("no_logged_sets", previous)

        last_index = len(self.stages) - 1
        stage_index = min(max(state.current_stage, 0), last_index)
        stage = self.stages[stage_index]
        total = context.total_reps
        details = {
            "stage": stage_index,
            "stage_name": stage.name,
            "total_reps": total,
            "target_volume": stage.target_volume,
        }

        if total >= stage.target_volume:
            increment = context.increment if context.increment is not None else self.increment
            return ProgressionOutcome(
                applied=True,
                previous_value=previous,
                new_value=round(previous + increment, 4),
                current_stage=stage_index,
                details={**details, "success": True, "increment": increment},
            )

        if stage_index < last_index:
            return ProgressionOutcome(
                applied=True,
                previous_value=previous,
                new_value=previous,
                current_stage=stage_index + 1,
                details={**details, "success": False},
            )

        if not self.reset_on_exhaustion:
            raise InvalidStageTransition(f"Stage list exhausted at {stage.name!r} and reset is disabled")

        new_value = deload(previous, self.deload_percent) if self.deload_percent else previous
        return ProgressionOutcome(
            applied=True,
            previous_value=previous,
            new_value=new_value,
            current_stage=0,
            retest_required=True,
            details={**details, "success": False, "exhausted": True},
        )


@progression_registry.register
class DeloadOnFailure(Progression):
    """Counts consecutive failed sessions; at ``threshold`` deloads the max.

    PERCENT deloads cut by ``deload_percent``, FIXED deloads subtract
    ``deload_amount`` (never below zero). With ``reset_on_deload`` off the
    counter keeps climbing, so every further miss deloads again.
    """

    type: Literal["DELOAD_ON_FAILURE"] = "DELOAD_ON_FAILURE"
    threshold: int = Field(ge=1)
    deload_type: Literal["PERCENT", "FIXED"] = "PERCENT"
    deload_percent: float | None = Field(default=None, gt=0, lt=1)
    deload_amount: float | None = Field(default=None, gt=0)
    reset_on_deload: bool = True

    @model_validator(mode="after")
    def validate_deload(self) -> "DeloadOnFailure":
        if self.deload_type == "PERCENT" and self.deload_percent is None:
            raise ValueError("deload_percent is required for PERCENT deloads")
        if self.deload_type == "FIXED" and self.deload_amount is None:
            raise ValueError("deload_amount is required for FIXED deloads")
        return self

    def default_increment(self) -> float | None:
        return None

    def deloaded(self, value: float) -> float:
        if self.deload_type == "FIXED":
            return max(round(value - self.deload_amount, 4), 0.0)
        return deload(value, self.deload_percent)

    def evaluate(self, context: TriggerContext, state: LifterState) -> ProgressionOutcome:
        previous = state.current_max
        if not context.logged_sets:
            return ProgressionOutcome.skip("no_logged_sets", previous)

        if not any(s.missed_target for s in context.logged_sets):
            return ProgressionOutcome(
                applied=True,
                previous_value=previous,
                new_value=previous,
                consecutive_failures=0,
                counter_event="success",
                details={"success": True},
            )

        failures = state.consecutive_failures + 1
        if failures >= self.threshold:
            return ProgressionOutcome(
                applied=True,
                previous_value=previous,
                new_value=self.deloaded(previous),
                consecutive_failures=0 if self.reset_on_deload else failures,
                counter_event="failure",
                details={"success": False, "failures": failures, "deloaded": True},
            )
        return ProgressionOutcome(
            applied=True,
            previous_value=previous,
            new_value=previous,
            consecutive_failures=failures,
            counter_event="failure",
            details={"success": False, "failures": failures, "deloaded": False},
        )


@progression_registry.register
class DoubleProgression(Progression):
    """Reps first, then weight: adds ``increment`` once every logged set
    reaches the ``max_reps`` ceiling of the rep range."""

    type: Literal["DOUBLE_PROGRESSION"] = "DOUBLE_PROGRESSION"
    increment: float = Field(gt=0)
    max_reps: int = Field(ge=1)

    def evaluate(self, context: TriggerContext, state: LifterState) -> ProgressionOutcome:
        previous = state.current_max
        if not context.logged_sets:
            return ProgressionOutcome.skip("no_logged_sets", previous)

        lowest = min(s.reps_performed for s in context.logged_sets)
        if lowest < self.max_reps:
            return ProgressionOutcome.skip("rep_ceiling_not_reached", previous)
        increment = context.increment if context.increment is not None else self.increment
        return ProgressionOutcome(
            applied=True,
            previous_value=previous,
            new_value=round(previous + increment, 4),
            details={"increment": increment, "max_reps": self.max_reps},
        )


def parse_progression(progression_type: str, parameters: dict[str, Any] | None) -> Progression:
    blob = dict(parameters or {})
    blob["type"] = progression_type
    return progression_registry.parse(blob)


def performed_sets(rows: Sequence[Any]) -> tuple[PerformedSet, ...]:
    return tuple(
        PerformedSet(
            set_number=row.set_number,
            weight=row.weight,
            target_reps=row.target_reps,
            reps_performed=row.reps_performed,
            is_amrap=row.is_amrap,
            rpe=row.rpe,
        )
        for row in rows
    )
