from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from liftcycle.db.models.enums import JSONType, TriggerType
from liftcycle.db.session import Base

PROGRESSION_LOG_IDEMPOTENCY_CONSTRAINT = "uq_progression_logs_idempotency"


class Progression(Base):
    """Reusable progression rule; ``parameters`` is a type-discriminated blob."""

    __tablename__ = "progressions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    progression_type: Mapped[str] = mapped_column(String(50), nullable=False)
    parameters: Mapped[dict] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ProgramProgression(Base):
    __tablename__ = "program_progressions"
    __table_args__ = (
        UniqueConstraint(
            "program_id",
            "progression_id",
            "lift_id",
            name="uq_program_progressions_program_progression_lift",
        ),
        Index("program_progressions_priority", "program_id", "priority"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    program_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
    )
    progression_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("progressions.id", ondelete="CASCADE"),
        nullable=False,
    )
    # NULL applies the binding to every lift the program touches.
    lift_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lifts.id", ondelete="CASCADE"),
        nullable=True,
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    override_increment: Mapped[float | None] = mapped_column(Numeric(6, 2, asdecimal=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class UserProgressionState(Base):
    __tablename__ = "user_progression_states"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "lift_id",
            "progression_id",
            name="uq_user_progression_states_user_lift_progression",
        ),
        CheckConstraint("current_stage >= 0", name="ck_user_progression_states_stage_min"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    lift_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lifts.id", ondelete="CASCADE"),
        nullable=False,
    )
    progression_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("progressions.id", ondelete="CASCADE"),
        nullable=False,
    )
    current_stage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    extra_state: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class FailureCounter(Base):
    __tablename__ = "failure_counters"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "lift_id",
            "progression_id",
            name="uq_failure_counters_user_lift_progression",
        ),
        CheckConstraint("consecutive_failures >= 0", name="ck_failure_counters_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    lift_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lifts.id", ondelete="CASCADE"),
        nullable=False,
    )
    progression_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("progressions.id", ondelete="CASCADE"),
        nullable=False,
    )
    consecutive_failures: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_failure_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_success_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ProgressionLog(Base):
    """Append-only ledger; one row per applied trigger key."""

    __tablename__ = "progression_logs"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "progression_id",
            "lift_id",
            "trigger_type",
            "applied_at",
            name=PROGRESSION_LOG_IDEMPOTENCY_CONSTRAINT,
        ),
        Index("progression_logs_user_time", "user_id", "applied_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False)
    progression_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("progressions.id", ondelete="CASCADE"),
        nullable=False,
    )
    lift_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lifts.id", ondelete="CASCADE"),
        nullable=False,
    )
    previous_value: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    new_value: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    delta: Mapped[float | None] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    trigger_type: Mapped[TriggerType] = mapped_column(Enum(TriggerType, name="trigger_type"), nullable=False)
    trigger_context: Mapped[dict] = mapped_column(JSONType, nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
