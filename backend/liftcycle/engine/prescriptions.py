from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from liftcycle.core.errors import InvalidConfiguration, MaxNotFound
from liftcycle.engine.load_strategies import LookupContext, MaxLookup, StrategyContext, parse_load_strategy
from liftcycle.engine.rounding import Rounding
from liftcycle.engine.set_schemes import SetSpec, parse_set_scheme


class PrescriptionLike(Protocol):
    id: UUID
    lift_id: UUID
    load_strategy: dict[str, Any]
    set_scheme: dict[str, Any]
    notes: str | None
    rest_seconds: int | None


@dataclass(frozen=True)
class ResolvedPrescription:
    prescription_id: UUID
    lift_id: UUID
    position: int
    working_weight: float
    sets: list[SetSpec]
    set_scheme_type: str
    notes: str | None = None
    rest_seconds: int | None = None


@dataclass(frozen=True)
class PrescriptionGap:
    """A prescription that could not be resolved; siblings still are."""

    prescription_id: UUID
    lift_id: UUID
    position: int
    reason: str
    message: str
    missing_max_lift_id: UUID | None = None
    missing_max_type: str | None = None


@dataclass
class ResolvedDay:
    day_id: UUID | None
    items: list[ResolvedPrescription] = field(default_factory=list)
    gaps: list[PrescriptionGap] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.gaps)


def resolve_prescription(
    prescription: PrescriptionLike,
    *,
    position: int,
    get_current_max: MaxLookup,
    rounding: Rounding,
    lookups: LookupContext | None = None,
) -> ResolvedPrescription:
    strategy = parse_load_strategy(prescription.load_strategy)
    scheme = parse_set_scheme(prescription.set_scheme)
    context = StrategyContext(
        lift_id=prescription.lift_id,
        get_current_max=get_current_max,
        lookups=lookups or LookupContext(),
    )
    working_weight = strategy.resolve(context, rounding)
    return ResolvedPrescription(
        prescription_id=prescription.id,
        lift_id=prescription.lift_id,
        position=position,
        working_weight=working_weight,
        sets=scheme.generate(working_weight, strategy.effective_rounding(rounding)),
        set_scheme_type=scheme.type,
        notes=prescription.notes,
        rest_seconds=prescription.rest_seconds,
    )


def resolve_day(
    day_id: UUID | None,
    prescriptions: Sequence[PrescriptionLike],
    *,
    get_current_max: MaxLookup,
    rounding: Rounding,
    lookups: LookupContext | None = None,
) -> ResolvedDay:
    """Resolve ``prescriptions`` in the order given.

    A missing max or an undecodable config becomes a gap for that one
    prescription; the rest of the day still resolves.
    """
    resolved = ResolvedDay(day_id=day_id)
    for position, prescription in enumerate(prescriptions):
        try:
            resolved.items.append(
                resolve_prescription(
                    prescription,
                    position=position,
                    get_current_max=get_current_max,
                    rounding=rounding,
                    lookups=lookups,
                )
            )
        except MaxNotFound as exc:
            resolved.gaps.append(
                PrescriptionGap(
                    prescription_id=prescription.id,
                    lift_id=prescription.lift_id,
                    position=position,
                    reason="max_not_found",
                    message=str(exc),
                    missing_max_lift_id=exc.lift_id,
                    missing_max_type=exc.max_type,
                )
            )
        except InvalidConfiguration as exc:
            resolved.gaps.append(
                PrescriptionGap(
                    prescription_id=prescription.id,
                    lift_id=prescription.lift_id,
                    position=position,
                    reason="invalid_configuration",
                    message=str(exc),
                )
            )
    return resolved
