import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from liftcycle.api.v1.auth import router as auth_router
from liftcycle.api.v1.dashboard import router as dashboard_router
from liftcycle.api.v1.enrollment import router as enrollment_router
from liftcycle.api.v1.lift_maxes import router as lift_maxes_router
from liftcycle.api.v1.progression_history import router as progression_history_router
from liftcycle.api.v1.sessions import router as sessions_router
from liftcycle.core.config import get_cors_origins, get_log_level
from liftcycle.db.session import get_db
from liftcycle.middleware.request_logging import RequestLoggingMiddleware

app = FastAPI(title="Liftcycle Training API")
logging.basicConfig(level=get_log_level())
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)
app.include_router(auth_router)
app.include_router(enrollment_router)
app.include_router(sessions_router)
app.include_router(lift_maxes_router)
app.include_router(progression_history_router)
app.include_router(dashboard_router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/health/db")
def health_db(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"db": "ok"}
