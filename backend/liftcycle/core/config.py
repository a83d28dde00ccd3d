from __future__ import annotations

import os

DEFAULT_DATABASE_URL = "sqlite:///./liftcycle.db"
DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def get_database_url() -> str:
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def get_sql_echo() -> bool:
    return _env_bool("SQL_ECHO")


def get_log_level() -> str:
    return (os.getenv("LOG_LEVEL") or "INFO").upper()


def get_cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS") or DEFAULT_CORS_ORIGINS
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_access_token_expire_minutes() -> int:
    return _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60)


def get_default_rounding_increment() -> float:
    value = _env_float("DEFAULT_ROUNDING_INCREMENT", 5.0)
    if value <= 0:
        raise RuntimeError("DEFAULT_ROUNDING_INCREMENT must be greater than zero")
    return value


def get_default_rest_seconds() -> int:
    return _env_int("DEFAULT_REST_SECONDS", 120)


def get_default_set_seconds() -> int:
    return _env_int("DEFAULT_SET_SECONDS", 45)
