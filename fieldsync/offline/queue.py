"""Local durable queue of pending mutations.

SQLite-backed store that survives restarts and offline periods.
Entries are keyed by mutation id and read back in insertion order.

Design constraints:
- One transaction per operation, serialized by a lock
- Storage failures always propagate (never a silent drop)
- Quota exhaustion surfaces as StorageFullError
- A store that cannot be opened puts the queue in disabled mode:
  writes fail fast with QueueDisabledError, reads return nothing
"""
import contextlib
import json
import logging
import sqlite3
import threading
from pathlib import Path

from ..constants import DEFAULT_QUEUE_MAX_BYTES, SQLITE_BUSY_TIMEOUT_S
from ..core.errors import (
    QueueDisabledError,
    StorageError,
    StorageFullError,
    StorageUnavailableError,
)
from ..core.receipt import emit_receipt
from .mutation import QueuedMutation, is_queueable, serialize_payload

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS mutations (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    target_url TEXT NOT NULL,
    method TEXT NOT NULL,
    payload TEXT NOT NULL,
    headers TEXT NOT NULL DEFAULT '{}',
    record_type TEXT,
    created_at TEXT NOT NULL,
    synced INTEGER NOT NULL DEFAULT 0,
    priority INTEGER NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT
);
CREATE INDEX IF NOT EXISTS idx_mutations_synced ON mutations (synced);
CREATE INDEX IF NOT EXISTS idx_mutations_created_at ON mutations (created_at);
CREATE TABLE IF NOT EXISTS sync_state (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

_COLUMNS = (
    "id, target_url, method, payload, headers, record_type, "
    "created_at, synced, attempts, last_error"
)


def classify_storage_error(error: sqlite3.Error) -> StorageError:
    """Map a SQLite error onto the storage error taxonomy."""
    name = getattr(error, "sqlite_errorname", "")
    if name == "SQLITE_FULL" or "full" in str(error).lower():
        return StorageFullError(f"Offline storage is full: {error}")
    return StorageUnavailableError(f"Offline storage failed: {error}")


def _row_to_mutation(row) -> QueuedMutation:
    return QueuedMutation(
        id=row[0],
        target_url=row[1],
        method=row[2],
        payload=json.loads(row[3]),
        headers=json.loads(row[4]),
        record_type=row[5],
        created_at=row[6],
        synced=bool(row[7]),
        attempts=row[8],
        last_error=row[9],
    )


class MutationQueue:
    """Durable queue of mutations awaiting replay.

    Attributes:
        path: SQLite database file
        max_bytes: Offline capacity; writes beyond it raise StorageFullError
        enabled: False once the store failed to open
        disabled_reason: Why the queue is disabled
    """

    def __init__(
        self,
        path: str | Path,
        max_bytes: int = DEFAULT_QUEUE_MAX_BYTES,
        tenant_id: str = "default",
    ):
        self.path = Path(path)
        self.max_bytes = max_bytes
        self.tenant_id = tenant_id
        self.enabled = True
        self.disabled_reason: str | None = None
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> bool:
        """Open the store, creating it if needed.

        Returns:
            True if the queue is usable, False if it switched to disabled mode
        """
        with self._lock:
            if self._conn is not None:
                return True
            conn = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    str(self.path),
                    timeout=SQLITE_BUSY_TIMEOUT_S,
                    check_same_thread=False,
                )
                conn.executescript(SCHEMA)
                page_size = conn.execute("PRAGMA page_size").fetchone()[0]
                conn.execute(f"PRAGMA max_page_count = {max(1, self.max_bytes // page_size)}")
            except (OSError, sqlite3.Error) as e:
                if conn is not None:
                    conn.close()
                self.enabled = False
                self.disabled_reason = str(e)
                logger.warning("Offline queue disabled, storage unavailable at %s: %s", self.path, e)
                return False

            self._conn = conn
            self.enabled = True
            self.disabled_reason = None
            return True

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> "MutationQueue":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _usable(self) -> bool:
        if self._conn is None and self.enabled:
            return self.open()
        return self._conn is not None

    @contextlib.contextmanager
    def _transaction(self):
        with self._lock:
            if not self._usable():
                raise QueueDisabledError(
                    f"Offline queue is disabled: {self.disabled_reason}"
                )
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def enqueue(self, mutation: QueuedMutation) -> QueuedMutation:
        """Persist a mutation with synced=False.

        Args:
            mutation: Mutation to store; id and created_at are assigned if empty

        Returns:
            The stored mutation

        Raises:
            SerializationError: payload or headers are not JSON-serializable
            QueueDisabledError: queue runs in disabled mode
            StorageFullError: offline capacity exhausted
            StorageUnavailableError: any other storage failure
        """
        if not is_queueable(mutation.method):
            raise ValueError(f"Only writes are queued, got {mutation.method}")

        payload = serialize_payload(mutation.payload)
        headers = serialize_payload(mutation.headers)
        mutation.stamp()
        mutation.synced = False

        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO mutations (id, target_url, method, payload, headers, "
                    "record_type, created_at, synced, priority) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?)",
                    (
                        mutation.id,
                        mutation.target_url,
                        mutation.method,
                        payload,
                        headers,
                        mutation.record_type,
                        mutation.created_at,
                        mutation.priority,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Mutation {mutation.id} is already queued") from e

        emit_receipt("offline_enqueue", {
            "tenant_id": self.tenant_id,
            "mutation_id": mutation.id,
            "method": mutation.method,
            "target_url": mutation.target_url,
            "record_type": mutation.record_type,
            "payload_bytes": len(payload),
        })

        return mutation

    def list_pending(self, limit: int | None = None) -> list[QueuedMutation]:
        """Pending mutations in insertion order.

        Args:
            limit: Return at most this many entries

        Returns:
            Oldest first; empty when the queue is disabled
        """
        sql = f"SELECT {_COLUMNS} FROM mutations WHERE synced = 0 ORDER BY seq"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._lock:
            if not self._usable():
                return []
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e
        return [_row_to_mutation(row) for row in rows]

    def get(self, mutation_id: str) -> QueuedMutation | None:
        with self._lock:
            if not self._usable():
                return None
            try:
                row = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM mutations WHERE id = ?", (mutation_id,)
                ).fetchone()
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e
        return _row_to_mutation(row) if row else None

    def pending_count(self) -> int:
        return self._count("SELECT COUNT(*) FROM mutations WHERE synced = 0")

    def _count(self, sql: str, params: tuple = ()) -> int:
        with self._lock:
            if not self._usable():
                return 0
            try:
                return self._conn.execute(sql, params).fetchone()[0]
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e

    def mark_synced(self, mutation_id: str) -> bool:
        """Mark a mutation as accepted by the server.

        Idempotent: an unknown or already-synced id is a no-op.

        Returns:
            True if the entry changed state
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE mutations SET synced = 1, last_error = NULL "
                "WHERE id = ? AND synced = 0",
                (mutation_id,),
            )
        return cursor.rowcount > 0

    def record_failure(self, mutation_id: str, error: str) -> None:
        """Count a failed replay; the entry stays pending."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE mutations SET attempts = attempts + 1, last_error = ? "
                "WHERE id = ? AND synced = 0",
                (error, mutation_id),
            )

    def prune_synced(self) -> int:
        """Delete every synced entry.

        Returns:
            Number of deleted entries (0 on repeated calls)
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM mutations WHERE synced = 1")
        return cursor.rowcount

    def stuck(self, min_attempts: int) -> list[QueuedMutation]:
        """Pending mutations whose replay failed at least min_attempts times."""
        with self._lock:
            if not self._usable():
                return []
            try:
                rows = self._conn.execute(
                    f"SELECT {_COLUMNS} FROM mutations "
                    "WHERE synced = 0 AND attempts >= ? ORDER BY seq",
                    (min_attempts,),
                ).fetchall()
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e
        return [_row_to_mutation(row) for row in rows]

    def clear(self) -> int:
        """Remove every entry, synced or not. Returns the count removed."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM mutations")
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Sync state
    # ------------------------------------------------------------------

    def set_state(self, key: str, value: str | None) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO sync_state (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def get_state(self, key: str) -> str | None:
        with self._lock:
            if not self._usable():
                return None
            try:
                row = self._conn.execute(
                    "SELECT value FROM sync_state WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e
        return row[0] if row else None

    def sync_status(self, stuck_after: int) -> dict:
        """Backlog summary for a sync indicator.

        Args:
            stuck_after: Failed attempts after which an entry counts as stuck

        Returns:
            Dict with enabled, pending_count, stuck_count, oldest_pending,
            last_sync_time, last_sync_batch_id
        """
        pending = self.list_pending(limit=1)
        return {
            "enabled": self._usable(),
            "disabled_reason": self.disabled_reason,
            "pending_count": self.pending_count(),
            "stuck_count": self._count(
                "SELECT COUNT(*) FROM mutations WHERE synced = 0 AND attempts >= ?",
                (stuck_after,),
            ),
            "oldest_pending": pending[0].created_at if pending else None,
            "last_sync_time": self.get_state("last_sync_time"),
            "last_sync_batch_id": self.get_state("last_sync_batch_id"),
        }
