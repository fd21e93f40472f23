"""Counter stores for the fixed-window rate limiter."""

import logging
import threading
from typing import Protocol

from sqlalchemy import (
    BigInteger,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    def consume(
        self, identifier: str, endpoint: str, window_start: int, limit: int
    ) -> int | None:
        """
        Count one request against a window.

        Returns the new count, or None when the window already holds
        ``limit`` requests (nothing is recorded in that case). Raises when
        the request could not be recorded; the limiter then fails open.
        """
        ...

    def purge_before(self, cutoff: int) -> int:
        """Drop windows starting before ``cutoff``; return how many were dropped."""
        ...


class MemoryRateLimitStore:
    """Process-local counters. Suitable for a single worker."""

    def __init__(self) -> None:
        self._counts: dict[tuple[str, str, int], int] = {}
        self._lock = threading.Lock()

    def consume(
        self, identifier: str, endpoint: str, window_start: int, limit: int
    ) -> int | None:
        key = (identifier, endpoint, window_start)
        with self._lock:
            count = self._counts.get(key, 0)
            if count >= limit:
                return None
            self._counts[key] = count + 1
            return count + 1

    def purge_before(self, cutoff: int) -> int:
        with self._lock:
            expired = [key for key in self._counts if key[2] < cutoff]
            for key in expired:
                del self._counts[key]
        return len(expired)


metadata = MetaData()

rate_limits_table = Table(
    "rate_limits",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("identifier", String(255), nullable=False),
    Column("endpoint", String(255), nullable=False),
    # Epoch seconds, aligned to the window length
    Column("window_start", BigInteger, nullable=False, index=True),
    Column("count", Integer, nullable=False, default=0),
    UniqueConstraint(
        "identifier", "endpoint", "window_start", name="uq_rate_limits_window"
    ),
)


def create_store_engine(database_url: str) -> Engine:
    """Create an engine, sharing one connection for in-memory SQLite."""
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


class SQLRateLimitStore:
    """Counters in a relational ``rate_limits`` table, shared across workers."""

    def __init__(self, engine: Engine, create_tables: bool = True) -> None:
        self.engine = engine
        if create_tables:
            metadata.create_all(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SQLRateLimitStore":
        return cls(create_store_engine(database_url))

    def _key(self, identifier: str, endpoint: str, window_start: int):
        t = rate_limits_table
        return (
            (t.c.identifier == identifier)
            & (t.c.endpoint == endpoint)
            & (t.c.window_start == window_start)
        )

    def consume(
        self, identifier: str, endpoint: str, window_start: int, limit: int
    ) -> int | None:
        t = rate_limits_table
        key = self._key(identifier, endpoint, window_start)

        last_error: IntegrityError | None = None
        for _ in range(2):
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(
                        update(t)
                        .where(key & (t.c["count"] < limit))
                        .values(count=t.c["count"] + 1)
                    )
                    if result.rowcount == 1:
                        return conn.execute(select(t.c["count"]).where(key)).scalar_one()

                    existing = conn.execute(select(t.c["count"]).where(key)).scalar_one_or_none()
                    if existing is not None:
                        return None

                    if limit <= 0:
                        return None
                    conn.execute(
                        insert(t).values(
                            identifier=identifier,
                            endpoint=endpoint,
                            window_start=window_start,
                            count=1,
                        )
                    )
                    return 1
            except IntegrityError as e:
                # Another worker created the window row first; retry as an update
                logger.debug(f"Concurrent insert for {identifier}/{endpoint}, retrying")
                last_error = e

        raise RuntimeError(
            f"Could not record request for {identifier}/{endpoint} after retrying"
        ) from last_error

    def purge_before(self, cutoff: int) -> int:
        t = rate_limits_table
        with self.engine.begin() as conn:
            result = conn.execute(delete(t).where(t.c.window_start < cutoff))
        return result.rowcount or 0
