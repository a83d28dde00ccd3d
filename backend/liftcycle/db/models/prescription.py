from __future__ import annotations

from datetime import datetime
import uuid

from sqlalchemy import DateTime, ForeignKey, Integer, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from liftcycle.db.models.enums import JSONType
from liftcycle.db.session import Base


class Prescription(Base):
    """One prescribed lift: which lift, how heavy, how many sets/reps.

    ``load_strategy`` and ``set_scheme`` hold type-discriminated config blobs
    decoded by ``liftcycle.engine``.
    """

    __tablename__ = "prescriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lift_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("lifts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    load_strategy: Mapped[dict] = mapped_column(JSONType, nullable=False)
    set_scheme: Mapped[dict] = mapped_column(JSONType, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rest_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
