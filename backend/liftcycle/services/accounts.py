from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from liftcycle.core.errors import EmailInUse, InvalidCredentials
from liftcycle.core.security import hash_password, verify_password
from liftcycle.db.integrity import is_unique_violation
from liftcycle.db.models.enums import WeightUnit
from liftcycle.db.models.user import User

logger = logging.getLogger("liftcycle.domain")


def normalize_email(email: str) -> str:
    return email.lower().strip()


def _find_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def create_account(
    db: Session,
    email: str,
    name: str,
    password: str,
    weight_unit: WeightUnit = WeightUnit.LB,
) -> User:
    email = normalize_email(email)
    if _find_by_email(db, email) is not None:
        logger.info("domain_event event=signup_failed reason=email_conflict")
        raise EmailInUse(email)

    user = User(
        email=email,
        name=name.strip(),
        weight_unit=weight_unit,
        password_hash=hash_password(password),
    )
    try:
        with db.begin_nested():
            db.add(user)
            db.flush()
    except IntegrityError as exc:
        # Two signups for one address can both pass the lookup above.
        if is_unique_violation(exc, "ix_users_email", "users", ("email",)):
            logger.info("domain_event event=signup_failed reason=integrity_error")
            raise EmailInUse(email) from None
        raise

    db.commit()
    logger.info("domain_event event=signup_success user_id=%s", user.user_id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = _find_by_email(db, normalize_email(email))
    if user is None or not verify_password(password, user.password_hash):
        logger.info("domain_event event=login_failed reason=invalid_credentials")
        raise InvalidCredentials("Invalid credentials")
    logger.info("domain_event event=login_success user_id=%s", user.user_id)
    return user
