"""Sync reconciler: replays queued mutations against the remote API.

Reconciliation pass:
1. Skip if the monitor reports offline
2. Snapshot pending mutations (insertion order)
3. Replay each with its original method, URL, payload and headers
4. 2xx marks the entry synced; anything else counts a failure and
   moves on to the next entry
5. Prune synced entries and record the sync time

Only one pass runs at a time. A trigger arriving mid-pass sets a
rerun flag; the running caller does exactly one more pass afterwards.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, field

import requests

from ..constants import (
    BACKGROUND_SYNC_TAG,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_STUCK_AFTER_ATTEMPTS,
    DEFAULT_SYNC_INTERVAL_S,
    WORKER_JOIN_TIMEOUT_S,
)
from ..core.receipt import emit_receipt, utc_now
from .connectivity import ConnectivityMonitor
from .mutation import QueuedMutation
from .queue import MutationQueue

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one reconciliation run (one or more passes)."""
    batch_id: str = ""
    attempted: int = 0
    synced: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    pruned: int = 0
    skipped: bool = False
    passes: int = 0
    stuck: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.skipped and not self.failed

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "attempted": self.attempted,
            "synced_count": len(self.synced),
            "synced": list(self.synced),
            "failed": list(self.failed),
            "pruned": self.pruned,
            "skipped": self.skipped,
            "passes": self.passes,
            "stuck": list(self.stuck),
            "success": self.success,
        }


class SyncReconciler:
    """Drains the durable queue when connectivity allows.

    Attributes:
        queue: Durable queue to drain
        session: requests.Session used for replays
        monitor: Optional monitor; passes are skipped while offline
        sync_interval: Periodic safety-net interval in seconds, 0 disables
    """

    def __init__(
        self,
        queue: MutationQueue,
        session: requests.Session,
        monitor: ConnectivityMonitor | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
        sync_interval: float = DEFAULT_SYNC_INTERVAL_S,
        stuck_after_attempts: int = DEFAULT_STUCK_AFTER_ATTEMPTS,
        tenant_id: str = "default",
    ):
        self.queue = queue
        self.session = session
        self.monitor = monitor
        self.request_timeout = request_timeout
        self.sync_interval = sync_interval
        self.stuck_after_attempts = stuck_after_attempts
        self.tenant_id = tenant_id

        self._state_lock = threading.Lock()
        self._running = False
        self._rerun = False

        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def in_progress(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Guarded run
    # ------------------------------------------------------------------

    def reconcile(self) -> SyncResult | None:
        """Run reconciliation passes until no rerun was requested.

        Returns:
            Combined result, or None when coalesced into a running pass
        """
        with self._state_lock:
            if self._running:
                self._rerun = True
                logger.debug("Reconciliation in progress, coalescing trigger")
                return None
            self._running = True

        combined = SyncResult()
        try:
            while True:
                with self._state_lock:
                    self._rerun = False
                self._run_pass(combined)
                with self._state_lock:
                    if not self._rerun:
                        self._running = False
                        return combined
        except BaseException:
            with self._state_lock:
                self._running = False
                self._rerun = False
            raise

    def _replay(self, mutation: QueuedMutation) -> tuple[bool, str | None]:
        """Send one mutation. Returns (accepted, error)."""
        try:
            response = self.session.request(
                mutation.method,
                mutation.target_url,
                data=mutation.body(),
                headers=mutation.headers,
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            return False, f"network: {e}"

        if 200 <= response.status_code < 300:
            return True, None
        return False, f"status {response.status_code}"

    def _run_pass(self, result: SyncResult) -> None:
        result.passes += 1
        result.batch_id = str(uuid.uuid4())

        if self.monitor is not None and not self.monitor.is_online():
            logger.info("Offline, skipping sync pass")
            result.skipped = result.attempted == 0
            return
        result.skipped = False

        snapshot = self.queue.list_pending()
        logger.info("Syncing %d pending mutations", len(snapshot))

        synced, failed = [], []
        for mutation in snapshot:
            result.attempted += 1
            accepted, error = self._replay(mutation)
            if accepted:
                self.queue.mark_synced(mutation.id)
                synced.append(mutation.id)
                logger.debug("Synced mutation %s", mutation.id)
            else:
                self.queue.record_failure(mutation.id, error)
                failed.append(mutation.id)
                logger.warning("Failed to sync mutation %s: %s", mutation.id, error)

        pruned = self.queue.prune_synced()
        self.queue.set_state("last_sync_time", utc_now())
        self.queue.set_state("last_sync_batch_id", result.batch_id)

        result.synced.extend(synced)
        # A later pass may have delivered an entry that failed earlier
        result.failed = [m for m in result.failed if m not in synced] + failed
        result.pruned += pruned
        result.stuck = [m.id for m in self.queue.stuck(self.stuck_after_attempts)]

        emit_receipt("sync_pass", {
            "tenant_id": self.tenant_id,
            "batch_id": result.batch_id,
            "snapshot_size": len(snapshot),
            "synced_count": len(synced),
            "failed_count": len(failed),
            "pruned": pruned,
            "stuck_count": len(result.stuck),
        })

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def request_sync(self) -> None:
        """Ask the worker thread for a pass. Safe from any thread."""
        self._wake.set()

    def on_connectivity(self, online: bool) -> None:
        """Monitor subscriber: an online transition requests a pass."""
        if online:
            self.request_sync()

    def on_sync_event(self, tag: str) -> bool:
        """Platform background-sync signal.

        Returns:
            True if the tag was recognised and a pass was requested
        """
        if tag != BACKGROUND_SYNC_TAG:
            return False
        self.request_sync()
        return True

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._work, name="fieldsync-reconciler", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._wake.set()
        if self._thread is not None:
            self._thread.join(timeout=WORKER_JOIN_TIMEOUT_S)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def _work(self) -> None:
        timeout = self.sync_interval or None
        while not self._stop.is_set():
            self._wake.wait(timeout)
            if self._stop.is_set():
                break
            self._wake.clear()
            try:
                self.reconcile()
            except Exception:
                # Storage failures are not retried until the next trigger
                logger.exception("Reconciliation failed")
