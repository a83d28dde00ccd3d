"""Load strategies: turn a max (or a fixed value) into a working weight.

Strategies are stored as type-discriminated JSON blobs on a prescription and
decoded through ``load_strategy_registry``. Resolution is pure: the only
outside input is the ``get_current_max`` callable on the context, which is
consulted on every call.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from liftcycle.core.errors import InvalidConfiguration, MaxNotFound
from liftcycle.db.models.enums import MaxType
from liftcycle.engine.registry import ConfigRegistry, VersionedConfig
from liftcycle.engine.rounding import Rounding, RoundingMode
from liftcycle.engine.rpe_chart import (
    DEFAULT_RPE_CHART,
    MAX_CHART_REPS,
    MIN_CHART_REPS,
    RpeChart,
    RpeChartEntry,
    validate_rpe,
)

MaxLookup = Callable[[UUID, MaxType], "float | None"]


class LookupEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    multiplier: float = 1.0
    offset: float = 0.0

    def apply(self, fraction: float) -> float:
        return fraction * self.multiplier + self.offset


@dataclass(frozen=True)
class LookupContext:
    """Weekly and daily lookup tables for the position being resolved."""

    week_number: int | None = None
    day_slug: str | None = None
    weekly_entries: Mapping[str, Any] = field(default_factory=dict)
    daily_entries: Mapping[str, Any] = field(default_factory=dict)

    def adjust(self, fraction: float) -> float:
        if self.week_number is not None:
            raw = self.weekly_entries.get(str(self.week_number))
            if raw is not None:
                fraction = LookupEntry.model_validate(raw).apply(fraction)
        if self.day_slug is not None:
            raw = self.daily_entries.get(self.day_slug)
            if raw is not None:
                fraction = LookupEntry.model_validate(raw).apply(fraction)
        return fraction


@dataclass(frozen=True)
class StrategyContext:
    lift_id: UUID
    get_current_max: MaxLookup
    lookups: LookupContext = field(default_factory=LookupContext)


class LoadStrategy(VersionedConfig):
    def resolve(self, context: StrategyContext, rounding: Rounding) -> float:
        raise NotImplementedError

    def effective_rounding(self, rounding: Rounding) -> Rounding:
        """Rounding the working weight was resolved with; set schemes reuse it."""
        return rounding


load_strategy_registry: ConfigRegistry[LoadStrategy] = ConfigRegistry("load strategy")


@load_strategy_registry.register
class FixedWeight(LoadStrategy):
    type: Literal["FIXED_WEIGHT"] = "FIXED_WEIGHT"
    weight: float = Field(ge=0)

    def resolve(self, context: StrategyContext, rounding: Rounding) -> float:
        return self.weight


class _PercentStrategy(LoadStrategy):
    max_type: MaxType = MaxType.TRAINING_MAX
    # Fraction of the max: 0.85 means 85%.
    percent: float = Field(gt=0, le=2)
    increment: float | None = Field(default=None, gt=0)
    rounding: RoundingMode | None = None
    use_lookups: bool = True

    def _max_key(self, context: StrategyContext) -> tuple[UUID, MaxType]:
        raise NotImplementedError

    def resolve(self, context: StrategyContext, rounding: Rounding) -> float:
        lift_id, max_type = self._max_key(context)
        current = context.get_current_max(lift_id, max_type)
        if current is None:
            raise MaxNotFound(lift_id, max_type.value)

        fraction = self.percent
        if self.use_lookups:
            fraction = context.lookups.adjust(fraction)
        return self.effective_rounding(rounding).apply(max(current * fraction, 0.0))

    def effective_rounding(self, rounding: Rounding) -> Rounding:
        return Rounding(increment=self.increment or rounding.increment, mode=self.rounding or rounding.mode)


@load_strategy_registry.register
class PercentOfMax(_PercentStrategy):
    type: Literal["PERCENT_OF_MAX"] = "PERCENT_OF_MAX"

    def _max_key(self, context: StrategyContext) -> tuple[UUID, MaxType]:
        return context.lift_id, self.max_type


@load_strategy_registry.register
class RelativeTo(_PercentStrategy):
    """Percent of another lift's max, e.g. front squat off the back squat TM."""

    type: Literal["RELATIVE_TO"] = "RELATIVE_TO"
    reference_lift_id: UUID

    def _max_key(self, context: StrategyContext) -> tuple[UUID, MaxType]:
        return self.reference_lift_id, self.max_type


@load_strategy_registry.register
class RpeTarget(LoadStrategy):
    """Weight for ``target_reps`` at ``target_rpe``, read off an RPE chart.

    The standard chart is used unless the blob carries its own ``chart``.
    Weekly and daily lookups do not apply.
    """

    type: Literal["RPE_TARGET"] = "RPE_TARGET"
    target_reps: int = Field(ge=MIN_CHART_REPS, le=MAX_CHART_REPS)
    target_rpe: float
    max_type: MaxType = MaxType.ONE_RM
    increment: float | None = Field(default=None, gt=0)
    rounding: RoundingMode | None = None
    chart: list[RpeChartEntry] | None = None

    @field_validator("target_rpe")
    @classmethod
    def check_rpe(cls, value: float) -> float:
        return validate_rpe(value)

    @model_validator(mode="after")
    def check_chart(self) -> "RpeTarget":
        if self.chart is not None:
            RpeChart.from_entries(self.chart)
        return self

    def _chart(self) -> RpeChart:
        return RpeChart.from_entries(self.chart) if self.chart is not None else DEFAULT_RPE_CHART

    def effective_rounding(self, rounding: Rounding) -> Rounding:
        return Rounding(increment=self.increment or rounding.increment, mode=self.rounding or rounding.mode)

    def resolve(self, context: StrategyContext, rounding: Rounding) -> float:
        current = context.get_current_max(context.lift_id, self.max_type)
        if current is None:
            raise MaxNotFound(context.lift_id, self.max_type.value)
        fraction = self._chart().percentage(self.target_reps, self.target_rpe)
        if fraction is None:
            raise InvalidConfiguration(f"RPE chart has no entry for {self.target_reps} reps at RPE {self.target_rpe}")
        return self.effective_rounding(rounding).apply(current * fraction)


def parse_load_strategy(blob: Any) -> LoadStrategy:
    return load_strategy_registry.parse(blob)


def resolve_load(blob: Any, context: StrategyContext, rounding: Rounding) -> float:
    return parse_load_strategy(blob).resolve(context, rounding)
