"""Apply program progression bindings and keep the progression ledger.

Every binding runs in its own savepoint: the max, stage and counter updates
and the ledger row commit or roll back together, and one failing binding
never undoes its siblings. The ledger's unique key
``(user, progression, lift, trigger_type, applied_at)`` makes a repeat
trigger a no-op.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from liftcycle.core.errors import InvalidConfiguration, InvalidStageTransition, ProgressionAlreadyApplied
from liftcycle.db.integrity import is_unique_violation
from liftcycle.db.models.enums import TriggerType
from liftcycle.db.models.logged_set import LoggedSet
from liftcycle.db.models.progression import (
    PROGRESSION_LOG_IDEMPOTENCY_CONSTRAINT,
    FailureCounter,
    ProgramProgression,
    Progression,
    ProgressionLog,
    UserProgressionState,
)
from liftcycle.engine.navigator import Advance
from liftcycle.engine.progressions import (
    LifterState,
    ProgressionOutcome,
    TriggerContext,
    parse_progression,
    performed_sets,
)
from liftcycle.engine.progressions import Progression as ProgressionRule
from liftcycle.services.lift_maxes import get_current_max_row, upsert_max
from liftcycle.services.resolution import program_lift_ids

logger = logging.getLogger("liftcycle.domain")

_LEDGER_KEY_COLUMNS = ("user_id", "progression_id", "lift_id", "trigger_type", "applied_at")


@dataclass(frozen=True)
class BindingResult:
    progression_id: UUID
    progression_name: str
    lift_id: UUID
    trigger_type: TriggerType
    status: str
    previous_value: float | None = None
    new_value: float | None = None
    delta: float | None = None
    reason: str | None = None
    retest_required: bool = False
    current_stage: int | None = None
    consecutive_failures: int | None = None


@dataclass(frozen=True)
class _Binding:
    binding: ProgramProgression
    progression: Progression


def _bindings_for(db: Session, program_id: UUID, lift_id: UUID) -> list[_Binding]:
    rows = db.execute(
        select(ProgramProgression, Progression)
        .join(Progression, Progression.id == ProgramProgression.progression_id)
        .where(
            ProgramProgression.program_id == program_id,
            ProgramProgression.enabled.is_(True),
            or_(ProgramProgression.lift_id == lift_id, ProgramProgression.lift_id.is_(None)),
        )
        .order_by(ProgramProgression.priority, ProgramProgression.created_at, ProgramProgression.id)
    ).all()
    return [_Binding(binding=binding, progression=progression) for binding, progression in rows]


def _ledger_has(db: Session, user_id: int, progression_id: UUID, lift_id: UUID, trigger_type: TriggerType, applied_at: datetime) -> bool:
    return (
        db.execute(
            select(ProgressionLog.id).where(
                ProgressionLog.user_id == user_id,
                ProgressionLog.progression_id == progression_id,
                ProgressionLog.lift_id == lift_id,
                ProgressionLog.trigger_type == trigger_type,
                ProgressionLog.applied_at == applied_at,
            )
        ).first()
        is not None
    )


def _state_row(db: Session, model, user_id: int, lift_id: UUID, progression_id: UUID):
    return db.execute(
        select(model).where(
            model.user_id == user_id,
            model.lift_id == lift_id,
            model.progression_id == progression_id,
        )
    ).scalar_one_or_none()


def _persist_outcome(
    db: Session,
    *,
    user_id: int,
    lift_id: UUID,
    progression: Progression,
    rule: ProgressionRule,
    outcome: ProgressionOutcome,
    applied_at: datetime,
    effective_date: date,
    state: UserProgressionState | None,
    counter: FailureCounter | None,
) -> None:
    if outcome.max_changed:
        upsert_max(
            db,
            user_id=user_id,
            lift_id=lift_id,
            max_type=rule.max_type,
            value=outcome.new_value,
            effective_date=effective_date,
        )

    if outcome.current_stage is not None:
        if state is None:
            state = UserProgressionState(
                user_id=user_id,
                lift_id=lift_id,
                progression_id=progression.id,
                extra_state={},
            )
            db.add(state)
        state.current_stage = outcome.current_stage
        state.extra_state = {**(state.extra_state or {}), "retest_required": outcome.retest_required}

    if outcome.counter_event is not None:
        if counter is None:
            counter = FailureCounter(user_id=user_id, lift_id=lift_id, progression_id=progression.id)
            db.add(counter)
        counter.consecutive_failures = outcome.consecutive_failures or 0
        if outcome.counter_event == "failure":
            counter.last_failure_at = applied_at
        else:
            counter.last_success_at = applied_at


def _apply_binding(
    db: Session,
    *,
    user_id: int,
    lift_id: UUID,
    item: _Binding,
    rule: ProgressionRule,
    trigger_type: TriggerType,
    applied_at: datetime,
    session_id: UUID | None,
    sets: Sequence[LoggedSet],
) -> ProgressionOutcome:
    progression = item.progression
    with db.begin_nested():
        if _ledger_has(db, user_id, progression.id, lift_id, trigger_type, applied_at):
            raise ProgressionAlreadyApplied(f"{progression.name} already applied for lift {lift_id} at {applied_at.isoformat()}")

        current_row = get_current_max_row(db, user_id, lift_id, rule.max_type)
        if current_row is None:
            return ProgressionOutcome.skip(f"no current {rule.max_type.value}")
        current_max = float(current_row.value)

        state = _state_row(db, UserProgressionState, user_id, lift_id, progression.id)
        counter = _state_row(db, FailureCounter, user_id, lift_id, progression.id)
        context = TriggerContext(
            lift_id=lift_id,
            trigger_type=trigger_type,
            increment=rule.effective_increment(item.binding.override_increment),
            session_id=session_id,
            logged_sets=performed_sets(sets),
        )
        outcome = rule.evaluate(
            context,
            LifterState(
                current_max=current_max,
                current_stage=state.current_stage if state else 0,
                consecutive_failures=counter.consecutive_failures if counter else 0,
                extra_state=dict(state.extra_state or {}) if state else {},
            ),
        )
        if not outcome.applied:
            return outcome

        _persist_outcome(
            db,
            user_id=user_id,
            lift_id=lift_id,
            progression=progression,
            rule=rule,
            outcome=outcome,
            applied_at=applied_at,
            # Never behind the row just read, or a later-dated max would stay current.
            effective_date=max(applied_at.date(), current_row.effective_date),
            state=state,
            counter=counter,
        )
        db.add(
            ProgressionLog(
                user_id=user_id,
                progression_id=progression.id,
                lift_id=lift_id,
                previous_value=outcome.previous_value,
                new_value=outcome.new_value,
                delta=outcome.delta,
                trigger_type=trigger_type,
                trigger_context=context.to_json(),
                details={
                    **outcome.details,
                    "current_stage": outcome.current_stage,
                    "consecutive_failures": outcome.consecutive_failures,
                    "retest_required": outcome.retest_required,
                    "binding_id": str(item.binding.id),
                },
                applied_at=applied_at,
            )
        )
        try:
            db.flush()
        except IntegrityError as exc:
            if is_unique_violation(exc, PROGRESSION_LOG_IDEMPOTENCY_CONSTRAINT, "progression_logs", _LEDGER_KEY_COLUMNS):
                raise ProgressionAlreadyApplied(f"{progression.name} applied concurrently for lift {lift_id}") from None
            raise
        return outcome


def _evaluate_lift(
    db: Session,
    *,
    user_id: int,
    program_id: UUID,
    lift_id: UUID,
    trigger_type: TriggerType,
    applied_at: datetime,
    session_id: UUID | None,
    sets: Sequence[LoggedSet],
) -> list[BindingResult]:
    results: list[BindingResult] = []
    for item in _bindings_for(db, program_id, lift_id):
        progression = item.progression
        base = {
            "progression_id": progression.id,
            "progression_name": progression.name,
            "lift_id": lift_id,
            "trigger_type": trigger_type,
        }
        try:
            rule = parse_progression(progression.progression_type, progression.parameters)
        except InvalidConfiguration as exc:
            results.append(BindingResult(**base, status="failed", reason=str(exc)))
            _log_result(user_id, results[-1])
            continue
        if rule.trigger != trigger_type:
            continue

        try:
            outcome = _apply_binding(
                db,
                user_id=user_id,
                lift_id=lift_id,
                item=item,
                rule=rule,
                trigger_type=trigger_type,
                applied_at=applied_at,
                session_id=session_id,
                sets=sets,
            )
        except ProgressionAlreadyApplied:
            result = BindingResult(**base, status="skipped", reason="already applied")
        except (InvalidStageTransition, IntegrityError) as exc:
            result = BindingResult(**base, status="failed", reason=str(exc))
        else:
            result = BindingResult(
                **base,
                status="applied" if outcome.applied else "skipped",
                previous_value=outcome.previous_value,
                new_value=outcome.new_value,
                delta=outcome.delta,
                reason=outcome.reason,
                retest_required=outcome.retest_required,
                current_stage=outcome.current_stage,
                consecutive_failures=outcome.consecutive_failures,
            )
        results.append(result)
        _log_result(user_id, result)
    return results


def _log_result(user_id: int, result: BindingResult) -> None:
    logger.info(
        "domain_event event=progression_%s user_id=%s progression_id=%s lift_id=%s trigger_type=%s previous_value=%s new_value=%s reason=%s",
        result.status,
        user_id,
        result.progression_id,
        result.lift_id,
        result.trigger_type.value,
        result.previous_value,
        result.new_value,
        result.reason,
    )


def apply_session_progressions(
    db: Session,
    *,
    user_id: int,
    program_id: UUID,
    session_id: UUID,
    applied_at: datetime,
    logged_sets: Sequence[LoggedSet],
) -> list[BindingResult]:
    """AFTER_SESSION bindings for every lift logged, lifts in first-logged order."""
    by_lift: dict[UUID, list[LoggedSet]] = {}
    for row in logged_sets:
        by_lift.setdefault(row.lift_id, []).append(row)

    results: list[BindingResult] = []
    for lift_id, sets in by_lift.items():
        results.extend(
            _evaluate_lift(
                db,
                user_id=user_id,
                program_id=program_id,
                lift_id=lift_id,
                trigger_type=TriggerType.AFTER_SESSION,
                applied_at=applied_at,
                session_id=session_id,
                sets=sorted(sets, key=lambda s: s.set_number),
            )
        )
    return results


def apply_boundary_progressions(
    db: Session,
    *,
    user_id: int,
    program_id: UUID,
    advance: Advance,
    applied_at: datetime,
) -> list[BindingResult]:
    """AFTER_WEEK / AFTER_CYCLE bindings when an advance crossed a boundary."""
    triggers: list[TriggerType] = []
    if advance.crossed_week:
        triggers.append(TriggerType.AFTER_WEEK)
    if advance.crossed_cycle:
        triggers.append(TriggerType.AFTER_CYCLE)
    if not triggers:
        return []

    results: list[BindingResult] = []
    lift_ids = program_lift_ids(db, program_id)
    for trigger_type in triggers:
        for lift_id in lift_ids:
            results.extend(
                _evaluate_lift(
                    db,
                    user_id=user_id,
                    program_id=program_id,
                    lift_id=lift_id,
                    trigger_type=trigger_type,
                    applied_at=applied_at,
                    session_id=None,
                    sets=(),
                )
            )
    return results
