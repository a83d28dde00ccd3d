from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from liftcycle.db.session import Base


class Cycle(Base):
    __tablename__ = "cycles"
    __table_args__ = (
        CheckConstraint("length_weeks >= 1", name="ck_cycles_length_weeks_min"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    length_weeks: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class Week(Base):
    __tablename__ = "weeks"
    __table_args__ = (
        UniqueConstraint("cycle_id", "week_number", "variant", name="uq_weeks_cycle_number_variant"),
        CheckConstraint("week_number >= 1", name="ck_weeks_week_number_min"),
        CheckConstraint("variant IN ('A', 'B')", name="ck_weeks_variant"),
        Index("weeks_cycle_order", "cycle_id", "week_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cycle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cycles.id", ondelete="CASCADE"),
        nullable=False,
    )
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    variant: Mapped[str | None] = mapped_column(String(1), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class WeekDay(Base):
    __tablename__ = "week_days"
    __table_args__ = (
        UniqueConstraint("week_id", "day_of_week", name="uq_week_days_week_day_of_week"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7", name="ck_week_days_day_of_week_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    week_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("weeks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("days.id", ondelete="RESTRICT"),
        nullable=False,
    )
    # Canonical Mon=1..Sun=7; this ordering, not insertion order, drives the navigator.
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
