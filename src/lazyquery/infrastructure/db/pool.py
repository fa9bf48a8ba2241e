"""Bounded pool of SQLite connections shared by the SQLite queries.

Connections are opened lazily up to ``pool_size``.  Each checkout through
:meth:`ConnectionPool.connection` is one transaction, so a ``save_items``
batch either lands completely or not at all.
"""

import logging
import queue
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence, Union

from ...errors import ConnectionPoolExhausted, DatabaseError

_logger = logging.getLogger(__name__)

DEFAULT_PRAGMAS = ("PRAGMA foreign_keys = ON",)


class ConnectionPool:
    def __init__(
        self,
        db_path: Union[Path, str],
        pool_size: int = 5,
        timeout: float = 30.0,
        pragmas: Sequence[str] = DEFAULT_PRAGMAS,
    ):
        if pool_size <= 0:
            raise ValueError(f"pool_size must be positive, got {pool_size}")
        self._db_path = db_path
        self._pool_size = pool_size
        self._timeout = timeout
        self._pragmas = tuple(pragmas)
        self._idle: queue.LifoQueue = queue.LifoQueue(maxsize=pool_size)
        self._opened = 0
        self._in_use = 0
        self._closed = False
        self._lock = threading.Lock()

    @property
    def db_path(self) -> Union[Path, str]:
        return self._db_path

    @property
    def in_use(self) -> int:
        """Connections currently checked out."""
        return self._in_use

    @property
    def closed(self) -> bool:
        return self._closed

    def _open(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            for pragma in self._pragmas:
                conn.execute(pragma)
        except sqlite3.Error as exc:
            raise DatabaseError(f"Cannot open {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        _logger.debug("Opened connection %d/%d to %s", self._opened, self._pool_size, self._db_path)
        return conn

    def _checkout(self) -> sqlite3.Connection:
        if self._closed:
            raise DatabaseError(f"Connection pool for {self._db_path} is closed")
        try:
            conn = self._idle.get_nowait()
        except queue.Empty:
            conn = None
        if conn is None:
            with self._lock:
                may_open = self._opened < self._pool_size
                if may_open:
                    self._opened += 1
            if may_open:
                try:
                    conn = self._open()
                except DatabaseError:
                    with self._lock:
                        self._opened -= 1
                    raise
            else:
                try:
                    conn = self._idle.get(timeout=self._timeout)
                except queue.Empty:
                    raise ConnectionPoolExhausted(
                        f"All {self._pool_size} connections to {self._db_path} "
                        f"busy for {self._timeout}s"
                    ) from None
        with self._lock:
            self._in_use += 1
        return conn

    def _checkin(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            self._in_use -= 1
        if self._closed:
            conn.close()
            return
        try:
            self._idle.put_nowait(conn)
        except queue.Full:
            conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a pooled connection; commit on success, roll back on error."""
        conn = self._checkout()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._checkin(conn)

    def close_all(self) -> None:
        """Close idle connections; busy ones are closed when returned."""
        self._closed = True
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            conn.close()
        _logger.debug("Closed connection pool for %s (%d still in use)", self._db_path, self._in_use)
