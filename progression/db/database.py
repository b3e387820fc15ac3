from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from progression.db.models.base import Base
from progression.db.queries import FIND_XP_TOTAL_DRIFT

_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None

# Connection execution option marking a transaction that will write
WRITE_OPTION = "progression_write"


def _install_sqlite_hooks(engine: Engine) -> None:
    """
    Make SQLite write transactions take the write lock up front.

    pysqlite's default deferred BEGIN lets two writers both read before either
    writes, which ends in "database is locked" instead of waiting. With
    BEGIN IMMEDIATE writers queue on the busy timeout. Read-only transactions
    keep a deferred BEGIN so they never wait on a writer.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def _build_engine(database_url: str) -> Engine:
    settings = get_settings()
    echo = settings.log_level == "DEBUG"
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout_seconds,
            },
        )
        _install_sqlite_hooks(engine)
        return engine
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def configure_database(database_url: str | None = None) -> Engine:
    """(Re)create the engine and session factory, e.g. for a test database."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    url = database_url or get_settings().database_url
    _engine = _build_engine(url)
    _SessionLocal = sessionmaker(
        bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    logger.debug(f"Database configured: {url.split('@')[-1]}")
    return _engine


def get_engine() -> Engine:
    """Get the database engine (lazy initialization)."""
    if _engine is None:
        configure_database()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Get the session factory (lazy initialization)."""
    if _SessionLocal is None:
        configure_database()
    return _SessionLocal


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables initialized")


def drop_db() -> None:
    """Drop all tables. Used by tests and `progression db reset`."""
    Base.metadata.drop_all(bind=get_engine())
    logger.warning("Database tables dropped")


@contextmanager
def session_scope(write: bool = False) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Args:
        write: The transaction will write; on SQLite it takes the write lock
            when it begins instead of on its first write
    """
    session = get_session_factory()()
    try:
        if write:
            session.connection(execution_options={WRITE_OPTION: True})
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()


def check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


# --------------------------------------------------
# Data integrity validation
# Validates cached XP totals match the progress rows. Run via CLI or tests.
# --------------------------------------------------
def validate_xp_totals() -> dict[str, Any]:
    """
    Validate user_xp_totals.total_xp matches the sum of completed progress rows.

    Returns dict with:
        - valid: bool - True if all totals match
        - mismatches: list of {user_id, cached, actual} for any mismatches
    """
    with get_engine().connect() as conn:
        result = conn.execute(text(FIND_XP_TOTAL_DRIFT))
        mismatches = [
            {"user_id": row[0], "cached": row[1], "actual": row[2]}
            for row in result.fetchall()
        ]
    if mismatches:
        logger.warning(f"XP total drift detected for {len(mismatches)} user(s)")
    return {
        "valid": len(mismatches) == 0,
        "mismatches": mismatches,
    }
