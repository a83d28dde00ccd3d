from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from liftcycle.api.deps import get_current_user
from liftcycle.api.errors import to_http_exception
from liftcycle.core.errors import LiftcycleError
from liftcycle.core.security import create_access_token
from liftcycle.db.models.user import User
from liftcycle.db.session import get_db
from liftcycle.schemas.auth import LoginRequest, MeResponse, SignupRequest, TokenResponse
from liftcycle.services import accounts

router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    try:
        user = accounts.create_account(
            db,
            payload.email,
            payload.name,
            payload.password,
            payload.weight_unit,
        )
    except LiftcycleError as exc:
        db.rollback()
        raise to_http_exception(exc) from None
    return TokenResponse(access_token=create_access_token(user.user_id))


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = accounts.authenticate(db, payload.email, payload.password)
    except LiftcycleError as exc:
        raise to_http_exception(exc) from None
    return TokenResponse(access_token=create_access_token(user.user_id))


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    return MeResponse(
        user_id=current_user.user_id,
        email=current_user.email,
        name=current_user.name,
        weight_unit=current_user.weight_unit,
    )
