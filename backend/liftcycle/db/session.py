from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from liftcycle.core.config import get_database_url, get_sql_echo


class Base(DeclarativeBase):
    pass


def _enable_sqlite_transactions(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT. Take over
    # transaction control and grab the write lock up front so concurrent
    # writers queue on the busy timeout instead of failing with "locked".
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str | None = None) -> Engine:
    url = database_url or get_database_url()
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=get_sql_echo(),
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        _enable_sqlite_transactions(engine)
        return engine
    return create_engine(url, echo=get_sql_echo(), pool_pre_ping=True)


def build_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_sessionmaker(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
