"""Connectivity monitor.

Tracks online/offline state and notifies subscribers once per
transition. State comes from platform signals fed through set_online()
or from a probe run by check(), optionally on a polling thread.
"""
import logging
import socket
import threading
from typing import Callable
from urllib.parse import urlsplit

import requests

from ..constants import DEFAULT_POLL_INTERVAL_S, DEFAULT_PROBE_TIMEOUT_S, WORKER_JOIN_TIMEOUT_S
from ..core.receipt import emit_receipt

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]
Subscriber = Callable[[bool], None]


def tcp_probe(host: str, port: int, timeout: float = DEFAULT_PROBE_TIMEOUT_S) -> Probe:
    """Probe that succeeds when host:port accepts a TCP connection."""

    def probe() -> bool:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            return False

    return probe


def http_probe(session: requests.Session, url: str, timeout: float = DEFAULT_PROBE_TIMEOUT_S) -> Probe:
    """Probe that succeeds when a health endpoint answers 2xx."""

    def probe() -> bool:
        try:
            response = session.get(url, timeout=timeout)
        except requests.RequestException:
            return False
        return 200 <= response.status_code < 300

    return probe


def build_probe(config, session: requests.Session) -> Probe:
    """HTTP health probe when a health path is configured, TCP otherwise."""
    if config.health_url:
        return http_probe(session, config.health_url)

    parts = urlsplit(config.api_base_url)
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return tcp_probe(parts.hostname or "localhost", port)


class ConnectivityMonitor:
    """Online/offline state with transition notifications.

    Attributes:
        poll_interval: Seconds between probes on the polling thread
    """

    def __init__(
        self,
        probe: Probe | None = None,
        initial: bool = True,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        tenant_id: str = "default",
    ):
        self._probe = probe
        self._online = initial
        self.poll_interval = poll_interval
        self.tenant_id = tenant_id
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback(online) for every transition.

        Returns:
            Function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """Feed a connectivity signal.

        Subscribers are notified only when the state actually changes.

        Returns:
            True if this signal was a transition
        """
        online = bool(online)
        with self._lock:
            if online == self._online:
                return False
            self._online = online
            subscribers = list(self._subscribers)

        logger.info("Connectivity changed: %s", "online" if online else "offline")
        emit_receipt("connectivity_change", {
            "tenant_id": self.tenant_id,
            "online": online,
        })

        for callback in subscribers:
            try:
                callback(online)
            except Exception:
                logger.exception("Connectivity subscriber %r failed", callback)
        return True

    def check(self) -> bool:
        """Run the probe once and feed its result."""
        if self._probe is None:
            return self._online
        online = self._probe()
        self.set_online(online)
        return online

    # ------------------------------------------------------------------
    # Polling thread
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None or self._probe is None:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._poll, name="fieldsync-connectivity", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=WORKER_JOIN_TIMEOUT_S)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None

    def _poll(self) -> None:
        while not self._stop.is_set():
            self.check()
            self._stop.wait(self.poll_interval)
