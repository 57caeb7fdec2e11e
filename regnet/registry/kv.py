"""Key-value backends standing in for the ledger's world state.

The hosting platform owns durability and ordering. These backends give the
registry something concrete to run against:

- InMemoryKeyValueStore: dict-backed, used by tests and embedding hosts.
- SQLiteKeyValueStore: single-file database so state survives between
  runs of the CLI.
- TransactionalStore: per-invocation write buffer. Reads see buffered
  writes first (read-your-writes); commit() applies every buffered write
  to the backend in one batch, and discarding the buffer leaves the backend
  untouched. This is how the host emulates the platform's all-or-nothing
  invocation boundary.

Concurrency Handling:
    SQLiteKeyValueStore opens WAL-mode connections. Batched writes use
    IMMEDIATE isolation and retry with exponential backoff on transient
    'database is locked' errors (store.retry_* in config).
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Mapping, Protocol, TypeVar

from ..config import get_validated_config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStore(Protocol):
    """Byte-addressed get/put, as exposed by the ledger platform."""

    def get_state(self, key: str) -> bytes | None: ...

    def put_state(self, key: str, value: bytes) -> None: ...

    def put_states(self, items: Mapping[str, bytes]) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store. Not thread-safe; the host serializes invocations."""

    _data: dict[str, bytes]

    def __init__(self, initial: Mapping[str, bytes] | None = None) -> None:
        self._data = dict(initial) if initial else {}

    def get_state(self, key: str) -> bytes | None:
        return self._data.get(key)

    def put_state(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def put_states(self, items: Mapping[str, bytes]) -> None:
        for key, value in items.items():
            self.put_state(key, value)

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)


def _with_retry(
    func: Callable[[], T],
    max_retries: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> T:
    """Call ``func`` until it stops failing with 'database is locked'.

    Another writer holding the database (a second CLI process, say) shows
    up as a lock error. The wait doubles after each attempt up to
    ``max_delay``. Any other OperationalError is raised at once.

    Unset limits come from the store.retry_* config keys.

    Raises:
        sqlite3.OperationalError: The store stayed locked for
            ``max_retries`` attempts, or failed for another reason
    """
    store = get_validated_config().store
    attempts = max_retries if max_retries is not None else store.retry_max
    delay = base_delay if base_delay is not None else store.retry_base
    cap = max_delay if max_delay is not None else store.retry_max_delay

    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except sqlite3.OperationalError as e:
            if "database is locked" not in str(e):
                raise
            if attempt >= attempts:
                logger.warning("World state still locked after %d attempts: %s", attempt, e)
                raise
            wait = min(delay * 2 ** (attempt - 1), cap)
            logger.debug("World state locked, attempt %d/%d, waiting %.2fs", attempt, attempts, wait)
            time.sleep(wait)


def _key_bytes(key: str) -> bytes:
    # Composite keys contain U+0000, so they are stored as BLOBs
    return key.encode("utf-8")


class SQLiteKeyValueStore:
    """SQLite-backed world state.

    One row per key. Each instance opens short-lived connections, so
    several processes may point at the same file.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Create database and table if they don't exist."""
        with self._connect_write() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS world_state (
                    key BLOB PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    def _open(self, isolation_level: str | None = "DEFERRED") -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), isolation_level=isolation_level)
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def _connect_read(self) -> Iterator[sqlite3.Connection]:
        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _connect_write(self) -> Iterator[sqlite3.Connection]:
        # IMMEDIATE takes the write lock up front
        conn = self._open("IMMEDIATE")
        try:
            yield conn
        finally:
            conn.close()

    def get_state(self, key: str) -> bytes | None:
        def do_get() -> bytes | None:
            with self._connect_read() as conn:
                row = conn.execute(
                    "SELECT value FROM world_state WHERE key = ?", (_key_bytes(key),)
                ).fetchone()
            return bytes(row[0]) if row else None

        return _with_retry(do_get)

    def put_state(self, key: str, value: bytes) -> None:
        self.put_states({key: value})

    def put_states(self, items: Mapping[str, bytes]) -> None:
        """Write every item in a single transaction."""
        rows = [(_key_bytes(key), sqlite3.Binary(value)) for key, value in items.items()]
        if not rows:
            return

        def do_put() -> None:
            with self._connect_write() as conn:
                try:
                    conn.executemany(
                        """
                        INSERT OR REPLACE INTO world_state (key, value, updated_at)
                        VALUES (?, ?, CURRENT_TIMESTAMP)
                        """,
                        rows,
                    )
                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise

        _with_retry(do_put)

    def keys(self) -> list[str]:
        with self._connect_read() as conn:
            return [
                bytes(row[0]).decode("utf-8")
                for row in conn.execute("SELECT key FROM world_state ORDER BY key")
            ]


class TransactionalStore:
    """Write buffer over a backend for the duration of one invocation."""

    backend: KeyValueStore
    _pending: dict[str, bytes]

    def __init__(self, backend: KeyValueStore) -> None:
        self.backend = backend
        self._pending = {}

    def get_state(self, key: str) -> bytes | None:
        if key in self._pending:
            return self._pending[key]
        return self.backend.get_state(key)

    def put_state(self, key: str, value: bytes) -> None:
        self._pending[key] = bytes(value)

    def put_states(self, items: Mapping[str, bytes]) -> None:
        for key, value in items.items():
            self.put_state(key, value)

    @property
    def pending_keys(self) -> list[str]:
        """Keys written so far in this invocation, in write order."""
        return list(self._pending.keys())

    def commit(self) -> int:
        """Apply buffered writes to the backend. Returns the number of keys written."""
        count = len(self._pending)
        if count:
            self.backend.put_states(self._pending)
        self._pending = {}
        return count

    def discard(self) -> None:
        self._pending = {}


@contextmanager
def transaction(backend: KeyValueStore) -> Iterator[TransactionalStore]:
    """Run a block against a write buffer, committing only if it returns normally."""
    tx = TransactionalStore(backend)
    try:
        yield tx
    except BaseException:
        if tx.pending_keys:
            logger.debug("Discarding %d uncommitted write(s)", len(tx.pending_keys))
        tx.discard()
        raise
    tx.commit()


def open_store(backend: str | None = None, path: str | None = None) -> KeyValueStore:
    """Build the backend named in config (store.backend / store.path)."""
    config = get_validated_config().store
    name = backend or config.backend
    if name == "memory":
        return InMemoryKeyValueStore()
    if name == "sqlite":
        return SQLiteKeyValueStore(path or config.path)
    raise ValueError(f"Unknown store backend: {name}")
