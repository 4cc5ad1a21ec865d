"""
core/database.py -- Engine construction and storage error translation.

Both stores (auth/store.py, tracker/store.py) build their engines here so the
timeout policy and SQLite pragmas are identical everywhere:

  - SQLite: check_same_thread=False (FastAPI runs sync handlers in a thread
    pool), busy timeout = DB_TIMEOUT_SECONDS, WAL journal mode and
    foreign_keys=ON set on every new connection.
  - Server databases: pool checkout bounded by DB_TIMEOUT_SECONDS, stale
    connections detected with pool_pre_ping. PostgreSQL additionally gets a
    statement_timeout so no single query can hang a request.

storage_errors() wraps every store call and converts SQLAlchemy's operational
failures into StorageTimeout / StorageUnavailable. IntegrityError is left
alone -- stores translate it into the domain error that fits the constraint.

Layer rule: no imports from api/, auth/, or tracker/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from core.errors import StorageTimeout, StorageUnavailable

logger = logging.getLogger("tasktracker.storage")

# Fixed-width UTC format: every stored timestamp has the same length and
# offset, so lexical comparison in SQL matches chronological order.
_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

_TIMEOUT_MARKERS = ("database is locked", "timeout", "timed out", "canceling statement")


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def to_iso(value: datetime) -> str:
    """Normalize a datetime to the stored UTC string. Naive values are treated as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TS_FORMAT)


def now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and foreign keys on every new SQLite connection.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys backs up the explicit task
    cascade in TrackerStore.delete_project.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def make_engine(db_url: str, timeout: float) -> Engine:
    """Create an engine whose every wait is bounded by `timeout` seconds."""
    if db_url.startswith("sqlite"):
        engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False, "timeout": timeout},
        )
        event.listen(engine, "connect", _sqlite_pragmas)
        return engine

    connect_args: dict = {}
    if db_url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={int(timeout * 1000)}"
    return create_engine(
        db_url,
        connect_args=connect_args,
        pool_timeout=timeout,
        pool_pre_ping=True,
    )


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


def _is_timeout(exc: OperationalError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver-level failures raised inside the block into domain errors."""
    try:
        yield
    except PoolTimeoutError as exc:
        logger.error("%s: timed out waiting for a database connection", operation)
        raise StorageTimeout() from exc
    except OperationalError as exc:
        if _is_timeout(exc):
            logger.error("%s: database timeout (%s)", operation, exc.orig)
            raise StorageTimeout() from exc
        logger.error("%s: database unavailable (%s)", operation, exc.orig)
        raise StorageUnavailable() from exc
