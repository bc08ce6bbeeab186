"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError, UnboundExecutionError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from bookdesk.core.config import settings

logger = logging.getLogger(__name__)


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    if db_url.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_seconds,
            },
        }
    kwargs: dict[str, Any] = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 5,
        "pool_recycle": 300,
        "pool_pre_ping": True,
    }
    if db_url.startswith("postgresql") and settings.statement_timeout_ms:
        kwargs["connect_args"] = {"options": f"-c statement_timeout={settings.statement_timeout_ms}"}
    return kwargs


def configure_engine(target: Engine) -> Engine:
    """
    Attach dialect-specific connection hooks.

    SQLite gets foreign keys and ``BEGIN IMMEDIATE`` transactions so that
    concurrent writers serialize on the database write lock instead of
    racing between the overlap check and the insert.
    """
    if target.dialect.name != "sqlite":
        return target

    @event.listens_for(target, "connect")
    def _sqlite_on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # Hand transaction control to SQLAlchemy so the "begin" hook owns BEGIN.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(settings.sqlite_busy_timeout_seconds * 1000)}")
        cursor.close()

    @event.listens_for(target, "begin")
    def _sqlite_on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return target


db_url = settings.get_database_url()
engine: Engine = configure_engine(create_engine(db_url, **_build_engine_kwargs(db_url)))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_dialect_name(session: Session) -> str:
    """Dialect of the engine behind ``session``; unbound sessions count as SQLite."""
    try:
        return session.get_bind().dialect.name
    except UnboundExecutionError:
        return "sqlite"


T = TypeVar("T")

# Postgres SQLSTATEs for serialization_failure and deadlock_detected.
_SERIALIZATION_SQLSTATES = {"40001", "40P01"}
_SERIALIZATION_SNIPPETS = (
    "could not serialize access",
    "deadlock detected",
    "database is locked",
)
_STATEMENT_TIMEOUT_SNIPPETS = (
    "canceling statement due to statement timeout",
    "canceling statement due to user request",
    "interrupted",
)


def _sqlstate(exc: DBAPIError) -> str:
    orig = getattr(exc, "orig", None)
    return str(getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None) or "")


def is_serialization_failure(exc: BaseException) -> bool:
    """True for errors that a retry of the whole transaction can resolve."""
    if not isinstance(exc, DBAPIError):
        return False
    if _sqlstate(exc) in _SERIALIZATION_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _SERIALIZATION_SNIPPETS)


def is_statement_timeout(exc: BaseException) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    if _sqlstate(exc) == "57014":
        return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _STATEMENT_TIMEOUT_SNIPPETS)


def _retry_delay(attempt: int) -> float:
    # 1ms doubling per attempt, capped at 10ms, with jitter inside the same band.
    base = min(0.001 * (2 ** (attempt - 1)), 0.010)
    return random.uniform(base, 0.010)


def with_serialization_retry(
    op_name: str,
    func: Callable[[], T],
    *,
    max_retries: int = 3,
    on_retry: Callable[[int], None] | None = None,
) -> T:
    """
    Run ``func`` and retry it when the database reports a serialization failure.

    ``func`` must own its transaction so that each attempt starts clean.
    After ``max_retries`` retries the last error is re-raised.
    """
    attempt = 1
    while True:
        try:
            return func()
        except DBAPIError as exc:
            if attempt > max_retries or not is_serialization_failure(exc):
                raise

            delay = _retry_delay(attempt)
            logger.warning(
                "Serialization failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc.orig) if exc.orig is not None else str(exc),
                },
            )
            if on_retry is not None:
                on_retry(attempt)
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "configure_engine",
    "engine",
    "get_db",
    "get_dialect_name",
    "is_serialization_failure",
    "is_statement_timeout",
    "with_serialization_retry",
]
