"""Session record persistence on SQLAlchemy.

Every operation validates the session id before touching the database and is
bounded by the repository timeout. Driver errors are translated into
StoreTimeoutError or StoreUnavailableError; nothing is retried.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from sessionstore.core.exceptions import (
    InvalidModifiedError,
    RecordNotFoundError,
    StoreTimeoutError,
    StoreUnavailableError,
)
from sessionstore.core.identifiers import validate_identifier
from sessionstore.db.base import Base
from sessionstore.db.models.session_record import SessionRecord
from sessionstore.db.session import DEFAULT_TIMEOUT, get_db_sync

logger = logging.getLogger(__name__)

TIMEOUT_MARKERS = (
    "timeout",
    "timed out",
    "statement timeout",
    "canceling statement",
    "database is locked",
)


def utcnow() -> datetime:
    """Current time as naive UTC, the storage format of SessionRecord.modified"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage_time(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC; naive input is taken as UTC"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _is_timeout(error: DBAPIError) -> bool:
    message = str(error.orig if error.orig is not None else error).lower()
    return any(marker in message for marker in TIMEOUT_MARKERS)


class SessionRecordRepository:
    """CRUD for SessionRecord rows keyed by session id"""

    def __init__(self, session_factory: sessionmaker, timeout: float = DEFAULT_TIMEOUT):
        self.session_factory = session_factory
        self.timeout = timeout

    @contextmanager
    def _bounded(self, operation: str) -> Generator[Session, None, None]:
        """Open a database session and translate driver failures"""
        started = time.monotonic()
        try:
            with get_db_sync(self.session_factory) as db:
                yield db
        except PoolTimeoutError as e:
            logger.error("Session store %s timed out waiting for a connection", operation)
            raise StoreTimeoutError(operation, self.timeout) from e
        except DBAPIError as e:
            elapsed = time.monotonic() - started
            if elapsed >= self.timeout or _is_timeout(e):
                logger.error(
                    "Session store %s timed out after %.2fs", operation, elapsed,
                    extra={"error_type": type(e.orig).__name__},
                )
                raise StoreTimeoutError(operation, self.timeout) from e
            logger.error(
                "Session store %s failed: %s", operation, type(e.orig).__name__,
            )
            raise StoreUnavailableError(f"session store {operation} failed: {e.orig}") from e
        except SQLAlchemyError as e:
            logger.error("Session store %s failed: %s", operation, type(e).__name__)
            raise StoreUnavailableError(f"session store {operation} failed: {e}") from e

    def ensure_schema(self) -> None:
        """Create the sessions table if it doesn't exist"""
        with self._bounded("ensure_schema") as db:
            Base.metadata.create_all(
                bind=db.get_bind(),
                tables=[SessionRecord.__table__],
                checkfirst=True,
            )
        logger.debug("Session record table ensured")

    def load(self, identifier: str) -> SessionRecord:
        """
        Load the record for identifier.

        Raises:
            InvalidIdentifierError: identifier is malformed
            RecordNotFoundError: no record exists
            StoreTimeoutError, StoreUnavailableError: database failures
        """
        validate_identifier(identifier)
        with self._bounded("load") as db:
            record = db.scalar(select(SessionRecord).where(SessionRecord.id == identifier))
        if record is None:
            raise RecordNotFoundError(identifier)
        return record

    def upsert(self, record: SessionRecord) -> None:
        """Insert or replace the record with the same id"""
        validate_identifier(record.id)
        if not isinstance(record.modified, datetime):
            raise InvalidModifiedError(
                f"modified must be a datetime, not {type(record.modified).__name__}"
            )
        values = {"payload": record.payload, "modified": to_storage_time(record.modified)}

        with self._bounded("upsert") as db:
            statement = update(SessionRecord).where(SessionRecord.id == record.id).values(**values)
            result = db.execute(statement)

            # If no rows were updated, insert a new record
            if result.rowcount == 0:
                try:
                    db.add(SessionRecord(id=record.id, **values))
                    db.flush()
                except IntegrityError:
                    # Another writer inserted the same id first, or the
                    # driver reports only changed rows; the row exists now
                    db.rollback()
                    if db.execute(statement).rowcount == 0:
                        # Deleted again between the insert and the update
                        raise StoreUnavailableError(
                            f"session store upsert lost a write race for {record.id}"
                        )
            db.commit()

    def delete(self, identifier: str) -> None:
        """Delete the record for identifier; a missing record is not an error"""
        validate_identifier(identifier)
        with self._bounded("delete") as db:
            result = db.execute(delete(SessionRecord).where(SessionRecord.id == identifier))
            db.commit()
        if result.rowcount == 0:
            logger.debug("No session record to delete for %s", identifier)

    def purge_expired(self, max_age: int, now: Optional[datetime] = None) -> int:
        """
        Delete records not modified within max_age seconds.

        Args:
            max_age: Idle lifetime in seconds
            now: Reference time (defaults to the current UTC time)

        Returns:
            Number of records deleted
        """
        if max_age <= 0:
            raise ValueError("max_age must be positive")
        reference = to_storage_time(now) if now is not None else utcnow()
        cutoff = reference - timedelta(seconds=max_age)
        with self._bounded("purge_expired") as db:
            result = db.execute(delete(SessionRecord).where(SessionRecord.modified < cutoff))
            db.commit()
        logger.info("Purged expired session records", extra={"purged": result.rowcount})
        return result.rowcount

    def count(self) -> int:
        with self._bounded("count") as db:
            return db.scalar(select(func.count()).select_from(SessionRecord)) or 0

    def health_check(self) -> bool:
        """
        Check connectivity of the backing database.

        Returns:
            True if the database answers, False otherwise. Never raises.
        """
        try:
            with self._bounded("health_check") as db:
                db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Session store health check failed: %s", type(e).__name__)
            return False
