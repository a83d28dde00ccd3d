from __future__ import annotations

from datetime import date, datetime
import uuid

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from liftcycle.db.models.enums import MaxType
from liftcycle.db.session import Base


class LiftMax(Base):
    __tablename__ = "lift_maxes"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "lift_id",
            "max_type",
            "effective_date",
            name="uq_lift_maxes_user_lift_type_date",
        ),
        CheckConstraint("value > 0", name="ck_lift_maxes_value_positive"),
        Index("lift_maxes_lookup", "user_id", "lift_id", "max_type", "effective_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    lift_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lifts.id", ondelete="CASCADE"),
        nullable=False,
    )
    max_type: Mapped[MaxType] = mapped_column(Enum(MaxType, name="max_type"), nullable=False)
    value: Mapped[float] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
