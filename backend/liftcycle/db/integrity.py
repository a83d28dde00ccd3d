from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError


def is_unique_violation(
    exc: IntegrityError,
    constraint_name: str,
    table: str,
    columns: Sequence[str],
) -> bool:
    """True when ``exc`` was raised by the named unique constraint or index.

    PostgreSQL reports the constraint name; SQLite only lists the columns.
    """
    diag = getattr(exc.orig, "diag", None)
    if getattr(diag, "constraint_name", None) == constraint_name:
        return True

    message = str(exc.orig)
    if constraint_name in message:
        return True

    marker = "UNIQUE constraint failed:"
    if marker not in message:
        return False
    failed = {part.strip() for part in message.split(marker, 1)[1].split(",")}
    return failed == {f"{table}.{column}" for column in columns}
