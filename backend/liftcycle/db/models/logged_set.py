from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from liftcycle.db.session import Base


class LoggedSet(Base):
    """Immutable record of one performed set."""

    __tablename__ = "logged_sets"
    __table_args__ = (
        Index("logged_sets_session_order", "session_id", "lift_id", "set_number"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("workout_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    prescription_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("prescriptions.id", ondelete="SET NULL"),
        nullable=True,
    )
    lift_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lifts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    set_number: Mapped[int] = mapped_column(Integer, nullable=False)
    weight: Mapped[float] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=False)
    target_reps: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reps_performed: Mapped[int] = mapped_column(Integer, nullable=False)
    is_amrap: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rpe: Mapped[float | None] = mapped_column(Numeric(4, 2, asdecimal=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
