"""Versioned response cache.

Keeps the last good response per request URL, byte for byte. Cache
names embed a version string bumped on every deploy; activation purges
every name that is not current.
"""
import contextlib
import json
import logging
import sqlite3
import threading
from pathlib import Path

from ..constants import DEFAULT_CACHE_PREFIX, DEFAULT_CACHE_VERSION, SQLITE_BUSY_TIMEOUT_S
from ..core.errors import StorageUnavailableError
from ..core.receipt import emit_receipt, utc_now
from .http import SOURCE_CACHE, InterceptedResponse
from .queue import classify_storage_error

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    cache_name TEXT NOT NULL,
    url TEXT NOT NULL,
    status INTEGER NOT NULL,
    headers TEXT NOT NULL,
    body BLOB NOT NULL,
    stored_at TEXT NOT NULL,
    PRIMARY KEY (cache_name, url)
);
"""


class ResponseCache:
    """Two named caches per version: static assets and API reads.

    Attributes:
        path: SQLite database file
        static_name: Cache for static assets and the app shell
        api_name: Cache for API GET responses
    """

    def __init__(
        self,
        path: str | Path,
        prefix: str = DEFAULT_CACHE_PREFIX,
        version: str = DEFAULT_CACHE_VERSION,
        tenant_id: str = "default",
    ):
        self.path = Path(path)
        self.version = version
        self.static_name = f"{prefix}-v{version}"
        self.api_name = f"{prefix}-offline-v{version}"
        self.tenant_id = tenant_id
        self.enabled = True
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def current_names(self) -> tuple[str, str]:
        return (self.static_name, self.api_name)

    def open(self) -> bool:
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
            except (OSError, sqlite3.Error) as e:
                if conn is not None:
                    conn.close()
                self.enabled = False
                logger.warning("Response cache disabled, storage unavailable at %s: %s", self.path, e)
                return False
            self._conn = conn
            self.enabled = True
            return True

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _usable(self) -> bool:
        if self._conn is None and self.enabled:
            return self.open()
        return self._conn is not None

    @contextlib.contextmanager
    def _transaction(self):
        with self._lock:
            if not self._usable():
                raise StorageUnavailableError("Response cache is disabled")
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e

    def put(self, url: str, response: InterceptedResponse, cache_name: str | None = None) -> None:
        """Store response for url, replacing any previous entry."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cache_entries "
                "(cache_name, url, status, headers, body, stored_at) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    cache_name or self.static_name,
                    url,
                    response.status,
                    json.dumps(response.headers),
                    sqlite3.Binary(response.body),
                    utc_now(),
                ),
            )

    def match(self, url: str, cache_name: str | None = None) -> InterceptedResponse | None:
        """Cached response for url.

        Args:
            url: Request URL
            cache_name: Look in this cache only; default searches current caches

        Returns:
            Response with source "cache", or None
        """
        names = (cache_name,) if cache_name else self.current_names
        with self._lock:
            if not self._usable():
                return None
            try:
                for name in names:
                    row = self._conn.execute(
                        "SELECT status, headers, body FROM cache_entries "
                        "WHERE cache_name = ? AND url = ?",
                        (name, url),
                    ).fetchone()
                    if row:
                        return InterceptedResponse(
                            status=row[0],
                            headers=json.loads(row[1]),
                            body=bytes(row[2]),
                            source=SOURCE_CACHE,
                        )
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e
        return None

    def delete(self, url: str, cache_name: str | None = None) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE cache_name = ? AND url = ?",
                (cache_name or self.static_name, url),
            )
        return cursor.rowcount > 0

    def _column(self, sql: str, params: tuple = ()) -> list[str]:
        with self._lock:
            if not self._usable():
                return []
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise classify_storage_error(e) from e
        return [row[0] for row in rows]

    def keys(self, cache_name: str | None = None) -> list[str]:
        return self._column(
            "SELECT url FROM cache_entries WHERE cache_name = ? ORDER BY url",
            (cache_name or self.static_name,),
        )

    def cache_names(self) -> list[str]:
        return self._column(
            "SELECT DISTINCT cache_name FROM cache_entries ORDER BY cache_name"
        )

    def delete_cache(self, cache_name: str) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM cache_entries WHERE cache_name = ?", (cache_name,)
            )
        return cursor.rowcount

    def purge_stale(self) -> list[str]:
        """Delete every cache whose name is not current.

        Returns:
            Names of the purged caches
        """
        stale = [name for name in self.cache_names() if name not in self.current_names]
        for name in stale:
            logger.info("Deleting old cache %s", name)
            self.delete_cache(name)

        emit_receipt("cache_activate", {
            "tenant_id": self.tenant_id,
            "cache_version": self.version,
            "purged": stale,
        })

        return stale
