from __future__ import annotations

from fastapi import HTTPException, status

from liftcycle.core.errors import (
    AlreadyEnrolled,
    EmailInUse,
    EnrollmentNotFound,
    InvalidCredentials,
    InvalidConfiguration,
    InvalidFinishTime,
    InvalidSessionTransition,
    LiftcycleError,
    LiftMismatch,
    LiftNotFound,
    MaxNotFound,
    PrescriptionNotFound,
    ProgramIntegrityError,
    ProgramNotFound,
    SessionAlreadyActive,
    SessionNotFound,
)

_STATUS_BY_ERROR: list[tuple[type[LiftcycleError], int, str | None]] = [
    (SessionAlreadyActive, status.HTTP_409_CONFLICT, "A session is already in progress"),
    (InvalidSessionTransition, status.HTTP_409_CONFLICT, None),
    (AlreadyEnrolled, status.HTTP_409_CONFLICT, "Already enrolled in a program"),
    (ProgramIntegrityError, status.HTTP_409_CONFLICT, "Program data is inconsistent"),
    (EmailInUse, status.HTTP_409_CONFLICT, "Email already in use"),
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED, "Invalid credentials"),
    (MaxNotFound, status.HTTP_409_CONFLICT, None),
    (SessionNotFound, status.HTTP_404_NOT_FOUND, "Session not found"),
    (EnrollmentNotFound, status.HTTP_404_NOT_FOUND, "No active enrollment"),
    (ProgramNotFound, status.HTTP_404_NOT_FOUND, "Program not found"),
    (LiftNotFound, status.HTTP_404_NOT_FOUND, "Lift not found"),
    (PrescriptionNotFound, status.HTTP_404_NOT_FOUND, "Prescription not found"),
    (InvalidConfiguration, status.HTTP_422_UNPROCESSABLE_ENTITY, None),
    (LiftMismatch, status.HTTP_422_UNPROCESSABLE_ENTITY, None),
    (InvalidFinishTime, status.HTTP_422_UNPROCESSABLE_ENTITY, None),
]


def to_http_exception(exc: LiftcycleError) -> HTTPException:
    for error_type, status_code, detail in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=detail or str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error")
