"""Offline engine: builds every service and owns their lifecycle.

Usage:
    from fieldsync import OfflineEngine, SyncConfig

    with OfflineEngine(SyncConfig.from_env()) as engine:
        engine.client.save({"type": "punch_in", ...})
"""
import logging

import requests

from .client import RecordsClient
from .config import SyncConfig
from .offline.cache import ResponseCache
from .offline.connectivity import ConnectivityMonitor, Probe, build_probe
from .offline.interceptor import Interceptor
from .offline.queue import MutationQueue
from .offline.reconciler import SyncReconciler, SyncResult

logger = logging.getLogger(__name__)


class OfflineEngine:
    """Queue, cache, monitor, interceptor, reconciler and client.

    Nothing touches disk, network or threads until start().

    Attributes:
        config: Validated SyncConfig
        session: Shared requests.Session
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        session: requests.Session | None = None,
        probe: Probe | None = None,
        initially_online: bool = True,
    ):
        self.config = (config or SyncConfig()).require_valid()
        self.session = session or requests.Session()
        self._owns_session = session is None

        self.queue = MutationQueue(
            self.config.queue_path,
            max_bytes=self.config.queue_max_bytes,
            tenant_id=self.config.tenant_id,
        )
        self.cache = ResponseCache(
            self.config.cache_path,
            prefix=self.config.cache_prefix,
            version=self.config.cache_version,
            tenant_id=self.config.tenant_id,
        )
        self.monitor = ConnectivityMonitor(
            probe if probe is not None else build_probe(self.config, self.session),
            initial=initially_online,
            poll_interval=self.config.poll_interval,
            tenant_id=self.config.tenant_id,
        )
        self.reconciler = SyncReconciler(
            self.queue,
            self.session,
            self.monitor,
            request_timeout=self.config.request_timeout,
            sync_interval=self.config.sync_interval,
            stuck_after_attempts=self.config.stuck_after_attempts,
            tenant_id=self.config.tenant_id,
        )
        self.interceptor = Interceptor(
            self.session,
            self.queue,
            self.cache,
            self.config,
            monitor=self.monitor,
            on_enqueued=self.reconciler.request_sync,
        )
        self.client = RecordsClient(self.interceptor, self.queue, self.config)

        self._unsubscribe = None
        self.started = False

    def start(self, background: bool = True, precache: bool = True) -> "OfflineEngine":
        """Open stores, install/activate caches, wire triggers.

        Args:
            background: Start the polling and reconciler threads
            precache: Fetch the static shell into the cache
        """
        if self.started:
            return self

        if not self.queue.open():
            logger.warning("Offline queue unavailable, writes will fail fast while offline")
        self.cache.open()

        if precache and self.monitor.is_online():
            self.interceptor.install()
        self.interceptor.activate()

        self._unsubscribe = self.monitor.subscribe(self.reconciler.on_connectivity)
        if background:
            self.monitor.start()
            self.reconciler.start()

        self.started = True
        return self

    def stop(self) -> None:
        """Stop threads, drop subscriptions and close stores."""
        if not self.started:
            return
        self.reconciler.stop()
        self.monitor.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.queue.close()
        self.cache.close()
        if self._owns_session:
            self.session.close()
        self.started = False

    def __enter__(self) -> "OfflineEngine":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    def sync_now(self) -> SyncResult | None:
        """Run a reconciliation in the calling thread."""
        return self.reconciler.reconcile()

    def background_sync(self, tag: str) -> bool:
        """Forward a platform background-sync signal."""
        return self.reconciler.on_sync_event(tag)

    def status(self) -> dict:
        return {
            **self.client.sync_status(),
            "online": self.monitor.is_online(),
            "sync_in_progress": self.reconciler.in_progress,
            "cache_version": self.config.cache_version,
        }
