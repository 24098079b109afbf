"""Interception layer between application code and the network.

Per request it decides whether to pass through, serve from cache or
divert into the durable queue:

- API reads: network first, cache fallback, synthesized offline body
- Record writes: network first, queued on network failure
- Other API writes: network only, failure raised
- Static assets: cache first, network fallback, app shell for navigations

Only a completed network failure (connection error or timeout) takes
the offline path. A cancelled request raises RequestAborted and never
reaches the queue.
"""
import logging
import threading
from typing import Callable

import requests

from ..constants import (
    IDEMPOTENCY_HEADER,
    JSON_CONTENT_TYPE,
    OFFLINE_READ_MESSAGE,
    OFFLINE_SHELL_BODY,
    OFFLINE_WRITE_MESSAGE,
)
from ..core.errors import NetworkUnavailableError, RequestAborted, StorageError
from ..core.receipt import emit_receipt
from .cache import ResponseCache
from .connectivity import ConnectivityMonitor
from .http import (
    SOURCE_OFFLINE,
    SOURCE_QUEUED,
    InterceptedRequest,
    InterceptedResponse,
)
from .mutation import QueuedMutation, encode_body, generate_mutation_id, is_queueable
from .queue import MutationQueue

logger = logging.getLogger(__name__)


def _strip_query(url: str) -> str:
    return url.split("?", 1)[0].split("#", 1)[0]


def check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise RequestAborted("Request was cancelled by the caller")


class Interceptor:
    """Applies cache and queue policy to outgoing requests.

    Attributes:
        session: requests.Session used for every network attempt
        queue: Durable queue receiving failed record writes
        cache: Response cache for reads and static assets
        config: SyncConfig with URLs and timeouts
        monitor: Optional monitor; when offline the network is skipped
        on_enqueued: Called after a write was queued
    """

    def __init__(
        self,
        session: requests.Session,
        queue: MutationQueue,
        cache: ResponseCache,
        config,
        monitor: ConnectivityMonitor | None = None,
        on_enqueued: Callable[[], None] | None = None,
    ):
        self.session = session
        self.queue = queue
        self.cache = cache
        self.config = config
        self.monitor = monitor
        self.on_enqueued = on_enqueued
        self._api_prefix = config.api_base_url.rstrip("/") + "/"
        self._records_url = _strip_query(config.records_url)

    def fetch(
        self,
        request: InterceptedRequest,
        cancel: threading.Event | None = None,
    ) -> InterceptedResponse:
        """Resolve a request through the cache/queue policy.

        Args:
            request: Outgoing request
            cancel: Set by the caller to abort the request

        Returns:
            Response with source network, cache, offline or queued

        Raises:
            RequestAborted: cancel was set before the request resolved
            SerializationError: write body is not JSON-serializable
            QueueDisabledError, StorageFullError: write could not be queued
            NetworkUnavailableError: request without offline fallback failed
        """
        check_cancelled(cancel)

        if self.is_api(request.url):
            if request.method == "GET":
                return self._handle_api_read(request, cancel)
            return self._handle_api_write(request, cancel)

        return self._handle_static(request, cancel)

    def is_api(self, url: str) -> bool:
        return url.startswith(self._api_prefix) or url.rstrip("/") == self._api_prefix.rstrip("/")

    def is_record_write(self, request: InterceptedRequest) -> bool:
        return is_queueable(request.method) and _strip_query(request.url) == self._records_url

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    def _send(
        self,
        request: InterceptedRequest,
        data: bytes | None,
        headers: dict,
        cancel: threading.Event | None,
    ) -> InterceptedResponse:
        response = self.session.request(
            request.method,
            request.url,
            data=data,
            headers=headers,
            timeout=self.config.request_timeout,
        )
        check_cancelled(cancel)
        return InterceptedResponse.from_requests(response)

    def _attempt(
        self,
        request: InterceptedRequest,
        data: bytes | None,
        headers: dict,
        cancel: threading.Event | None,
    ) -> InterceptedResponse | None:
        """Network attempt; None means the network failed."""
        if self.monitor is not None and not self.monitor.is_online():
            logger.debug("Offline, skipping network for %s %s", request.method, request.url)
            return None
        try:
            return self._send(request, data, headers, cancel)
        except requests.RequestException as e:
            check_cancelled(cancel)
            logger.info("Network failed for %s %s: %s", request.method, request.url, e)
            return None

    # ------------------------------------------------------------------
    # Cache helpers, best effort
    # ------------------------------------------------------------------

    def _store(self, url: str, response: InterceptedResponse, cache_name: str) -> None:
        try:
            self.cache.put(url, response, cache_name)
        except StorageError as e:
            logger.warning("Could not cache %s: %s", url, e)

    def _match(self, url: str) -> InterceptedResponse | None:
        try:
            return self.cache.match(url)
        except StorageError as e:
            logger.warning("Cache lookup failed for %s: %s", url, e)
            return None

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def _handle_api_read(self, request, cancel) -> InterceptedResponse:
        response = self._attempt(request, None, dict(request.headers), cancel)
        if response is not None:
            if response.ok:
                self._store(request.url, response, self.cache.api_name)
            return response

        cached = self._match(request.url)
        if cached is not None:
            logger.info("Serving %s from cache", request.url)
            return cached

        return InterceptedResponse.synthesized(
            {"error": "Offline", "message": OFFLINE_READ_MESSAGE, "offline": True},
            SOURCE_OFFLINE,
        )

    def _handle_api_write(self, request, cancel) -> InterceptedResponse:
        data = encode_body(request.body)

        headers = {"Content-Type": JSON_CONTENT_TYPE, **request.headers}
        record_write = self.is_record_write(request)
        mutation_id = ""
        if record_write:
            # Same key on the first attempt and on every replay
            mutation_id = headers.setdefault(IDEMPOTENCY_HEADER, generate_mutation_id())

        response = self._attempt(request, data, headers, cancel)
        if response is not None:
            return response

        if not record_write:
            raise NetworkUnavailableError(f"{request.method} {request.url} failed while offline")

        check_cancelled(cancel)
        mutation = self.queue.enqueue(QueuedMutation(
            target_url=request.url,
            method=request.method,
            payload=request.body,
            headers=headers,
            id=mutation_id,
        ))

        if self.on_enqueued is not None:
            self.on_enqueued()

        return InterceptedResponse.synthesized(
            {
                "success": True,
                "offline": True,
                "message": OFFLINE_WRITE_MESSAGE,
                "queuedId": mutation.id,
            },
            SOURCE_QUEUED,
        )

    def _handle_static(self, request, cancel) -> InterceptedResponse:
        if request.method == "GET":
            cached = self._match(request.url)
            if cached is not None:
                return cached

        response = self._attempt(request, None, dict(request.headers), cancel)
        if response is not None:
            if response.ok and request.method == "GET":
                self._store(request.url, response, self.cache.static_name)
            return response

        if request.mode == "navigate":
            shell = self._match(self.config.shell_url)
            if shell is not None:
                return shell
            return InterceptedResponse(
                status=200,
                headers={"Content-Type": "text/plain"},
                body=OFFLINE_SHELL_BODY,
                source=SOURCE_OFFLINE,
            )

        raise NetworkUnavailableError(f"Static asset unavailable offline: {request.url}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def install(self, urls: list[str] | None = None) -> dict:
        """Precache static assets into the current static cache.

        Best effort: an asset that cannot be fetched is logged and skipped.

        Returns:
            Dict with cached and failed URL lists
        """
        urls = self.config.precache_urls if urls is None else urls
        cached, failed = [], []

        for url in urls:
            request = InterceptedRequest("GET", url)
            try:
                response = self._send(request, None, {}, None)
            except requests.RequestException as e:
                logger.warning("Precache failed for %s: %s", url, e)
                failed.append(url)
                continue
            if not response.ok:
                logger.warning("Precache got status %s for %s", response.status, url)
                failed.append(url)
                continue
            self._store(url, response, self.cache.static_name)
            cached.append(url)

        emit_receipt("cache_install", {
            "tenant_id": self.config.tenant_id,
            "cache_name": self.cache.static_name,
            "cached_count": len(cached),
            "failed_count": len(failed),
        })

        return {"cached": cached, "failed": failed}

    def activate(self) -> list[str]:
        """Purge caches left by previous versions."""
        return self.cache.purge_stale()
