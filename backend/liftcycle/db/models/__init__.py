"""SQLAlchemy model package.

Import model modules here as they are added so Alembic autogenerate
can discover them via metadata.
"""

from liftcycle.db.models.user import User  # noqa: F401
from liftcycle.db.models.lift import Lift  # noqa: F401
from liftcycle.db.models.lift_max import LiftMax  # noqa: F401
from liftcycle.db.models.prescription import Prescription  # noqa: F401
from liftcycle.db.models.day import Day, DayPrescription  # noqa: F401
from liftcycle.db.models.cycle import Cycle, Week, WeekDay  # noqa: F401
from liftcycle.db.models.program import DailyLookup, Program, WeeklyLookup  # noqa: F401
from liftcycle.db.models.enrollment import UserProgramState  # noqa: F401
from liftcycle.db.models.workout_session import WorkoutSession  # noqa: F401
from liftcycle.db.models.logged_set import LoggedSet  # noqa: F401
from liftcycle.db.models.progression import (  # noqa: F401
    FailureCounter,
    ProgramProgression,
    Progression,
    ProgressionLog,
    UserProgressionState,
)
