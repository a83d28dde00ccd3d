"""Error taxonomy for resolution, sessions and progression.

Services raise these; routers translate them to HTTP responses. Per-item
failures (a missing max for one prescription, one broken progression binding)
are collected next to partial results instead of propagating.
"""

from __future__ import annotations

from uuid import UUID


class LiftcycleError(Exception):
    """Base class for domain errors."""


class InvalidConfiguration(LiftcycleError):
    """A load strategy, set scheme or progression blob failed to decode."""


class MaxNotFound(LiftcycleError):
    def __init__(self, lift_id: UUID, max_type: str):
        self.lift_id = lift_id
        self.max_type = max_type
        super().__init__(f"No {max_type} recorded for lift {lift_id}")


class SessionAlreadyActive(LiftcycleError):
    def __init__(self, enrollment_id: UUID, session_id: UUID | None = None):
        self.enrollment_id = enrollment_id
        self.session_id = session_id
        super().__init__(f"Enrollment {enrollment_id} already has a session in progress")


class InvalidSessionTransition(LiftcycleError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move session from {current} to {target}")


class SessionNotFound(LiftcycleError):
    pass


class EnrollmentNotFound(LiftcycleError):
    pass


class AlreadyEnrolled(LiftcycleError):
    pass


class ProgramNotFound(LiftcycleError):
    pass


class LiftNotFound(LiftcycleError):
    pass


class PrescriptionNotFound(LiftcycleError):
    pass


class ProgramIntegrityError(LiftcycleError):
    """Program data is structurally inconsistent; resolution cannot continue."""


class WeekNotFound(ProgramIntegrityError):
    def __init__(self, cycle_id: UUID, week_number: int):
        self.cycle_id = cycle_id
        self.week_number = week_number
        super().__init__(f"Cycle {cycle_id} has no week {week_number}")


class DayNotFound(ProgramIntegrityError):
    def __init__(self, week_id: UUID, day_index: int):
        self.week_id = week_id
        self.day_index = day_index
        super().__init__(f"Week {week_id} has no day at index {day_index}")


class ProgressionAlreadyApplied(LiftcycleError):
    """The ledger already holds this trigger key. Treated as a no-op."""


class InvalidStageTransition(LiftcycleError):
    """Stage list exhausted and the progression has no reset path."""


class EmailInUse(LiftcycleError):
    pass


class InvalidCredentials(LiftcycleError):
    pass


class LiftMismatch(LiftcycleError):
    def __init__(self, prescription_id: UUID, expected: UUID, received: UUID):
        self.prescription_id = prescription_id
        self.expected = expected
        self.received = received
        super().__init__(f"Prescription {prescription_id} is for lift {expected}, not {received}")


class InvalidFinishTime(LiftcycleError):
    pass
