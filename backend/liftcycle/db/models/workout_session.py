from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from liftcycle.db.models.enums import SessionStatus
from liftcycle.db.session import Base

ONE_ACTIVE_SESSION_CONSTRAINT = "uq_workout_sessions_one_in_progress"


class WorkoutSession(Base):
    __tablename__ = "workout_sessions"
    __table_args__ = (
        # At most one IN_PROGRESS row per enrollment, enforced by the store.
        Index(
            ONE_ACTIVE_SESSION_CONSTRAINT,
            "enrollment_id",
            unique=True,
            postgresql_where=text("status = 'IN_PROGRESS'"),
            sqlite_where=text("status = 'IN_PROGRESS'"),
        ),
        Index("workout_sessions_user_time", "user_id", text("started_at DESC")),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("user_program_states.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("days.id", ondelete="SET NULL"),
        nullable=True,
    )
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    cycle_iteration: Mapped[int] = mapped_column(Integer, nullable=False)
    day_index: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus, name="session_status"),
        nullable=False,
        default=SessionStatus.IN_PROGRESS,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
