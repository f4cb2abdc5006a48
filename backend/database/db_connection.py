"""
PostgreSQL connection pool.

The pool is a long-lived handle: the gateway opens it once at startup,
hands it to the Ledger, and closes it at shutdown.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2.extras import DictCursor
from psycopg2.pool import ThreadedConnectionPool

from backend.common.errors import InternalError

logger = logging.getLogger(__name__)


class Database:
    """
    Thread-safe pool of psycopg2 connections with dictionary-based row access.

    Usage:
        db = Database(DATABASE_URL)
        db.open()
        with db.transaction() as conn:
            with conn.cursor() as cur:
                cur.execute(...)
        db.close()

    Every connection carries a server-side statement timeout, and waiting
    for a free connection is bounded by `pool_timeout` seconds.
    """

    def __init__(
        self,
        dsn: str,
        minconn: int = 1,
        maxconn: int = 10,
        pool_timeout: float = 5.0,
        statement_timeout_ms: int = 5000,
        connect_timeout: int = 5,
    ) -> None:
        if not dsn:
            raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")
        self.dsn = dsn
        self.minconn = minconn
        self.maxconn = maxconn
        self.pool_timeout = pool_timeout
        self.statement_timeout_ms = statement_timeout_ms
        self.connect_timeout = connect_timeout
        self._pool: Optional[ThreadedConnectionPool] = None
        self._slots = threading.BoundedSemaphore(maxconn)

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._pool.closed

    def open(self) -> "Database":
        if self.is_open:
            return self
        self._pool = ThreadedConnectionPool(
            self.minconn,
            self.maxconn,
            self.dsn,
            cursor_factory=DictCursor,
            connect_timeout=self.connect_timeout,
            options=f"-c statement_timeout={self.statement_timeout_ms}",
        )
        logger.info(f"Database pool opened (min={self.minconn}, max={self.maxconn})")
        return self

    def close(self) -> None:
        if self.is_open:
            self._pool.closeall()
            logger.info("Database pool closed")
        self._pool = None

    @contextmanager
    def connection(self) -> Iterator["psycopg2.extensions.connection"]:
        """
        Borrow a connection from the pool and give it back afterwards.

        Raises:
            InternalError: The pool is closed or no connection became free
                within `pool_timeout` seconds.
        """
        if not self.is_open:
            raise InternalError("Database is not available")
        if not self._slots.acquire(timeout=self.pool_timeout):
            logger.error("Timed out waiting for a database connection")
            raise InternalError("Database is busy, try again later")
        try:
            conn = self._pool.getconn()
        except Exception:
            self._slots.release()
            raise
        try:
            yield conn
        finally:
            self._pool.putconn(conn, close=bool(conn.closed))
            self._slots.release()

    @contextmanager
    def transaction(self) -> Iterator["psycopg2.extensions.connection"]:
        """
        Run a block as a single transaction: commit on success, roll back on
        any exception (which is re-raised).
        """
        with self.connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
