"""Set schemes: turn a working weight into concrete sets.

Each scheme is a pydantic config registered under its ``type`` discriminator.
``generate`` is the single rule table for a scheme; duration estimates and
``next_set`` both go through it so planned and displayed sets never disagree.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from liftcycle.engine.registry import ConfigRegistry, VersionedConfig
from liftcycle.engine.rounding import Rounding, RoundingMode

DEFAULT_RAMP_WORK_SET_THRESHOLD = 0.8
DEFAULT_TOTAL_REPS_SET_CAP = 20
DEFAULT_TOTAL_REPS_SUGGESTION = 10


@dataclass(frozen=True)
class SetSpec:
    set_number: int
    weight: float
    target_reps: int | None
    is_amrap: bool = False
    is_work_set: bool = True
    # Placeholder sets of variable-count schemes; the lifter stops early.
    is_provisional: bool = False


class SetScheme(VersionedConfig):
    is_variable_count: ClassVar[bool] = False

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        raise NotImplementedError

    def is_complete(self, performed_reps: Sequence[int]) -> bool:
        return False

    def next_set(
        self,
        working_weight: float,
        rounding: Rounding,
        performed_reps: Sequence[int],
    ) -> SetSpec | None:
        """Return the set to perform after ``performed_reps`` or None when done."""
        if self.is_complete(performed_reps):
            return None
        planned = self.generate(working_weight, rounding)
        index = len(performed_reps)
        if index >= len(planned):
            return None
        return planned[index]


set_scheme_registry: ConfigRegistry[SetScheme] = ConfigRegistry("set scheme")


@set_scheme_registry.register
class FixedSets(SetScheme):
    type: Literal["FIXED"] = "FIXED"
    sets: int = Field(ge=1)
    reps: int = Field(ge=1)

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        return [SetSpec(set_number=n, weight=working_weight, target_reps=self.reps) for n in range(1, self.sets + 1)]


@set_scheme_registry.register
class RepRange(SetScheme):
    """Straight sets prescribed as a rep range, e.g. 3x8-12.

    Sets target ``min_reps``; ``max_reps`` is the ceiling a double
    progression checks before adding weight.
    """

    type: Literal["REP_RANGE"] = "REP_RANGE"
    sets: int = Field(ge=1)
    min_reps: int = Field(ge=1)
    max_reps: int = Field(ge=1)

    @model_validator(mode="after")
    def validate_range(self) -> "RepRange":
        if self.max_reps < self.min_reps:
            raise ValueError("max_reps must be >= min_reps")
        return self

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        return [SetSpec(set_number=n, weight=working_weight, target_reps=self.min_reps) for n in range(1, self.sets + 1)]


class RampStep(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    percent: float = Field(gt=0, le=2)
    reps: int = Field(ge=1)
    amrap: bool = False


@set_scheme_registry.register
class Ramp(SetScheme):
    type: Literal["RAMP"] = "RAMP"
    steps: list[RampStep] = Field(min_length=1)
    work_set_threshold: float = Field(default=DEFAULT_RAMP_WORK_SET_THRESHOLD, gt=0, le=2)

    @model_validator(mode="after")
    def validate_amrap_position(self) -> "Ramp":
        if any(step.amrap for step in self.steps[:-1]):
            raise ValueError("Only the last ramp step may be AMRAP")
        return self

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        specs: list[SetSpec] = []
        last = len(self.steps) - 1
        for index, step in enumerate(self.steps):
            # Warm-up steps never round up past the intended load.
            step_rounding = rounding if index == last else rounding.with_mode(RoundingMode.FLOOR)
            specs.append(
                SetSpec(
                    set_number=index + 1,
                    weight=step_rounding.apply(working_weight * step.percent),
                    target_reps=step.reps,
                    is_amrap=step.amrap,
                    is_work_set=step.percent >= self.work_set_threshold,
                )
            )
        return specs


@set_scheme_registry.register
class FatigueDrop(SetScheme):
    type: Literal["FATIGUE_DROP"] = "FATIGUE_DROP"
    initial_reps: int = Field(ge=1)
    drop_reps: int = Field(ge=0)
    num_sets: int = Field(ge=1)

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        return [
            SetSpec(
                set_number=n + 1,
                weight=working_weight,
                target_reps=max(1, self.initial_reps - n * self.drop_reps),
            )
            for n in range(self.num_sets)
        ]


@set_scheme_registry.register
class MaxRepSets(SetScheme):
    """Max-rep sets at one weight. ``min_reps`` is advisory, never enforced."""

    type: Literal["MRS"] = "MRS"
    sets: int = Field(ge=1)
    min_reps: int | None = Field(default=None, ge=1)
    target_total: int | None = Field(default=None, ge=1)

    is_variable_count: ClassVar[bool] = True

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        return [
            SetSpec(set_number=n, weight=working_weight, target_reps=self.min_reps, is_amrap=True)
            for n in range(1, self.sets + 1)
        ]

    def is_complete(self, performed_reps: Sequence[int]) -> bool:
        if self.target_total is not None and sum(performed_reps) >= self.target_total:
            return True
        return len(performed_reps) >= self.sets


@set_scheme_registry.register
class TotalReps(SetScheme):
    type: Literal["TOTAL_REPS"] = "TOTAL_REPS"
    target_total: int = Field(ge=1)
    set_cap: int = Field(default=DEFAULT_TOTAL_REPS_SET_CAP, ge=1)
    suggested_reps: int = Field(default=DEFAULT_TOTAL_REPS_SUGGESTION, ge=1)

    is_variable_count: ClassVar[bool] = True

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        return [
            SetSpec(
                set_number=n,
                weight=working_weight,
                target_reps=self.suggested_reps,
                is_provisional=True,
            )
            for n in range(1, self.set_cap + 1)
        ]

    def is_complete(self, performed_reps: Sequence[int]) -> bool:
        return sum(performed_reps) >= self.target_total or len(performed_reps) >= self.set_cap

    def expected_set_count(self) -> int:
        per_set = min(self.suggested_reps, self.target_total)
        return min(self.set_cap, -(-self.target_total // per_set))


@set_scheme_registry.register
class Amrap(SetScheme):
    type: Literal["AMRAP"] = "AMRAP"
    sets_before: int = Field(default=0, ge=0)
    working_reps: int = Field(ge=1)

    def generate(self, working_weight: float, rounding: Rounding) -> list[SetSpec]:
        specs = [
            SetSpec(set_number=n, weight=working_weight, target_reps=self.working_reps)
            for n in range(1, self.sets_before + 1)
        ]
        specs.append(
            SetSpec(
                set_number=self.sets_before + 1,
                weight=working_weight,
                target_reps=self.working_reps,
                is_amrap=True,
            )
        )
        return specs


def parse_set_scheme(blob: Any) -> SetScheme:
    return set_scheme_registry.parse(blob)


def planned_set_count(scheme: SetScheme) -> int:
    """Number of sets a scheme is expected to produce, from its own rule table."""
    if isinstance(scheme, TotalReps):
        return scheme.expected_set_count()
    return len(scheme.generate(0.0, Rounding(increment=1.0)))


def estimate_duration_seconds(
    schemes: Sequence[tuple[SetScheme, int | None]],
    *,
    seconds_per_set: int,
    default_rest_seconds: int,
) -> int:
    total = 0
    for scheme, rest_seconds in schemes:
        rest = default_rest_seconds if rest_seconds is None else rest_seconds
        total += planned_set_count(scheme) * (seconds_per_set + rest)
    return total
