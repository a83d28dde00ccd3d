from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from liftcycle.db.models.enums import EnrollmentStatus
from liftcycle.db.session import Base

ACTIVE_ENROLLMENT_CONSTRAINT = "uq_user_program_states_one_active"


class UserProgramState(Base):
    """A user's enrollment and position in a program.

    ``current_day_index`` indexes the canonically ordered week days of the
    current week; it is not a calendar weekday.
    """

    __tablename__ = "user_program_states"
    __table_args__ = (
        Index(
            ACTIVE_ENROLLMENT_CONSTRAINT,
            "user_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        CheckConstraint("current_week >= 1", name="ck_user_program_states_week_min"),
        CheckConstraint("current_cycle_iteration >= 1", name="ck_user_program_states_iteration_min"),
        CheckConstraint("current_day_index >= 0", name="ck_user_program_states_day_index_min"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.user_id"), nullable=False, index=True)
    program_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("programs.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        Enum(EnrollmentStatus, name="enrollment_status"),
        nullable=False,
        default=EnrollmentStatus.ACTIVE,
    )
    current_week: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_cycle_iteration: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    current_day_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
