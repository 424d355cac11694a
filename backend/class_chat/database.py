"""Durable key-value store on top of SQLite.

Records are JSON documents addressed by ``(namespace, key)``. Every mutation
goes through ``atomic_update``, which runs the read, the caller's transform
and the write inside one ``BEGIN IMMEDIATE`` transaction while holding a
per-key lock, so two updates of the same key never interleave. Updates of
different keys only contend on SQLite's own write lock.
"""
import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import DB_FILE, DB_TIMEOUT
from .errors import StoreError

logger = logging.getLogger(__name__)

CHAT_NAMESPACE = "chat"
CLASS_REQUESTS_NAMESPACE = "class_requests"

Transform = Callable[[Optional[Any]], Optional[Any]]


class DurableStore:
    """SQLite-backed record store with per-key atomic read-modify-write."""

    def __init__(self, db_file: Optional[str] = None, timeout: float = DB_TIMEOUT):
        self.db_file = db_file or DB_FILE
        self.timeout = timeout
        # Thread-local storage for database connections
        self._local = threading.local()
        # (namespace, key) -> [lock, number of holders and waiters]
        self._locks: Dict[Tuple[str, str], list] = {}
        self._locks_guard = threading.Lock()
        self._connections: List[sqlite3.Connection] = []

    @contextmanager
    def get_db(self):
        """Get this thread's database connection."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            # Autocommit mode; transactions are opened explicitly
            conn = sqlite3.connect(
                self.db_file,
                timeout=self.timeout,
                check_same_thread=False,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            # Enable WAL mode for better concurrency
            conn.execute("PRAGMA journal_mode=WAL")
            self._local.connection = conn
            with self._locks_guard:
                self._connections.append(conn)

        try:
            yield conn
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise

    def init_db(self):
        """Create the records table."""
        Path(self.db_file).parent.mkdir(parents=True, exist_ok=True)
        with self.get_db() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS records (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
            ''')

    def close(self):
        """Close every connection opened by this store."""
        with self._locks_guard:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()

    @contextmanager
    def _key_lock(self, namespace: str, key: str):
        """Hold the lock of one key; the entry is dropped once nobody needs it."""
        with self._locks_guard:
            entry = self._locks.setdefault((namespace, key), [threading.Lock(), 0])
            entry[1] += 1

        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[(namespace, key)]

    def read_record(self, namespace: str, key: str) -> Optional[Any]:
        """Return the committed value for a key, or None if absent."""
        try:
            with self.get_db() as conn:
                row = conn.execute(
                    'SELECT value FROM records WHERE namespace = ? AND key = ?',
                    (namespace, key)
                ).fetchone()
        except sqlite3.Error as e:
            logger.exception("Failed to read %s/%s", namespace, key)
            raise StoreError("Storage read failed") from e
        return json.loads(row['value']) if row else None

    def scan(self, namespace: str) -> List[Any]:
        """Return every committed value in a namespace."""
        try:
            with self.get_db() as conn:
                cursor = conn.execute(
                    'SELECT value FROM records WHERE namespace = ? ORDER BY key',
                    (namespace,)
                )
                return [json.loads(row['value']) for row in cursor]
        except sqlite3.Error as e:
            logger.exception("Failed to scan %s", namespace)
            raise StoreError("Storage read failed") from e

    def atomic_update(self, namespace: str, key: str, fn: Transform) -> Tuple[Optional[Any], Optional[Any]]:
        """Apply ``fn`` to the current value of a key and persist the result.

        ``fn`` receives the current value (None when absent) and returns the
        new value; returning None deletes the record. Whatever ``fn`` raises
        aborts the transaction and propagates unchanged. The committed
        ``(previous, current)`` pair is returned.
        """
        with self._key_lock(namespace, key):
            try:
                with self.get_db() as conn:
                    conn.execute('BEGIN IMMEDIATE')
                    row = conn.execute(
                        'SELECT value FROM records WHERE namespace = ? AND key = ?',
                        (namespace, key)
                    ).fetchone()
                    previous = json.loads(row['value']) if row else None

                    # fn may mutate its argument in place; previous is a separate copy
                    current = fn(json.loads(row['value']) if row else None)

                    if current is None:
                        conn.execute(
                            'DELETE FROM records WHERE namespace = ? AND key = ?',
                            (namespace, key)
                        )
                    else:
                        conn.execute('''
                            INSERT OR REPLACE INTO records (namespace, key, value, updated_at)
                            VALUES (?, ?, ?, ?)
                        ''', (namespace, key, json.dumps(current),
                              datetime.now(timezone.utc).isoformat()))
                    conn.execute('COMMIT')
            except sqlite3.Error as e:
                logger.exception("Failed to update %s/%s", namespace, key)
                raise StoreError("Storage write failed") from e

        return previous, current
