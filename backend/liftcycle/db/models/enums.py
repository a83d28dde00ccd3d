from __future__ import annotations

import enum

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# Config blobs and ledger context: JSONB on PostgreSQL, plain JSON elsewhere.
JSONType = JSON().with_variant(JSONB(), "postgresql")


class MaxType(str, enum.Enum):
    ONE_RM = "ONE_RM"
    TRAINING_MAX = "TRAINING_MAX"
    E1RM = "E1RM"


class WeightUnit(str, enum.Enum):
    LB = "LB"
    KG = "KG"


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    QUIT = "QUIT"


class SessionStatus(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class TriggerType(str, enum.Enum):
    AFTER_SESSION = "AFTER_SESSION"
    AFTER_WEEK = "AFTER_WEEK"
    AFTER_CYCLE = "AFTER_CYCLE"


class DayOfWeek(enum.IntEnum):
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7
