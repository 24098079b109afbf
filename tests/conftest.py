"""Fixtures for the offline sync engine.

FakeSession: in-process stand-in for requests.Session that answers with
real requests.Response objects and can be switched offline.
FakeRecordsApi: minimal records endpoint (POST stores, GET lists).
"""
import json
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from fieldsync.client import RecordsClient
from fieldsync.config import SyncConfig
from fieldsync.offline.cache import ResponseCache
from fieldsync.offline.connectivity import ConnectivityMonitor
from fieldsync.offline.interceptor import Interceptor
from fieldsync.offline.queue import MutationQueue
from fieldsync.offline.reconciler import SyncReconciler


def make_response(status: int = 200, json_body=None, body: bytes | None = None,
                  headers: dict | None = None, url: str = "") -> requests.Response:
    """Build a fully-read requests.Response."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    if body is None:
        body = json.dumps(json_body if json_body is not None else {}).encode("utf-8")
        headers = {"Content-Type": "application/json", **(headers or {})}
    response._content = body
    response.headers = CaseInsensitiveDict(headers or {})
    response.encoding = "utf-8"
    return response


@dataclass
class Call:
    """One request seen by FakeSession."""
    method: str
    url: str
    data: bytes | None
    headers: dict
    timeout: float | None

    @property
    def json(self):
        return json.loads(self.data) if self.data else None


@dataclass
class FakeSession:
    """requests.Session stand-in.

    Routes map (method, url) to a requests.Response, or to a callable
    taking the Call and returning a response (or raising).
    """
    online: bool = True
    calls: list[Call] = field(default_factory=list)
    routes: dict = field(default_factory=dict)
    closed: bool = False

    def respond(self, method: str, url: str, status: int = 200, json_body=None,
                body: bytes | None = None, headers: dict | None = None) -> None:
        self.routes[(method.upper(), url)] = make_response(status, json_body, body, headers, url)

    def route(self, method: str, url: str, handler) -> None:
        self.routes[(method.upper(), url)] = handler

    def request(self, method, url, data=None, headers=None, timeout=None, **kwargs):
        call = Call(method.upper(), url, data, dict(headers or {}), timeout)
        self.calls.append(call)
        if not self.online:
            raise requests.ConnectionError(f"Failed to establish a connection to {url}")

        handler = self.routes.get((call.method, url))
        if handler is None:
            handler = self.routes.get((call.method, url.split("?", 1)[0]))
        if handler is None:
            return make_response(404, {"error": "Not found"}, url=url)
        if callable(handler):
            return handler(call)
        return handler

    def get(self, url, timeout=None, **kwargs):
        return self.request("GET", url, timeout=timeout)

    def close(self):
        self.closed = True

    def calls_to(self, method: str, url: str) -> list[Call]:
        return [c for c in self.calls if c.method == method.upper() and c.url == url]


@dataclass
class FakeRecordsApi:
    """Records endpoint: POST stores a record, GET lists by ?type=."""
    records_url: str
    records: list[dict] = field(default_factory=list)
    reject_types: set = field(default_factory=set)

    def install(self, session: FakeSession) -> "FakeRecordsApi":
        session.route("POST", self.records_url, self._create)
        session.route("GET", self.records_url, self._list)
        return self

    def _create(self, call: Call) -> requests.Response:
        record = call.json or {}
        if not record.get("type"):
            return make_response(400, {"error": "Record type required"})
        if record["type"] in self.reject_types:
            return make_response(400, {"error": "Invalid record type"})
        record_id = f"srv-{len(self.records) + 1}"
        self.records.append({**record, "id": record_id})
        return make_response(200, {"success": True, "id": record_id})

    def _list(self, call: Call) -> requests.Response:
        query = parse_qs(urlsplit(call.url).query)
        wanted = query.get("type", [None])[0]
        records = [r for r in self.records if wanted is None or r["type"] == wanted]
        return make_response(200, {"records": records})


@pytest.fixture
def config(tmp_path) -> SyncConfig:
    """Config pointing at throwaway stores and fake hosts."""
    return SyncConfig(
        api_base_url="http://api.test/php",
        app_base_url="http://app.test",
        health_path="",
        precache_paths=["/", "/index.html"],
        data_dir=tmp_path / "data",
        request_timeout=2.0,
        poll_interval=0.05,
        sync_interval=0,
        stuck_after_attempts=3,
    )


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def records_api(config, session) -> FakeRecordsApi:
    return FakeRecordsApi(config.records_url).install(session)


@pytest.fixture
def queue(config):
    q = MutationQueue(config.queue_path, max_bytes=config.queue_max_bytes)
    q.open()
    yield q
    q.close()


@pytest.fixture
def cache(config):
    c = ResponseCache(config.cache_path, prefix=config.cache_prefix, version=config.cache_version)
    c.open()
    yield c
    c.close()


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(probe=None, initial=True)


@pytest.fixture
def interceptor(session, queue, cache, config, monitor) -> Interceptor:
    return Interceptor(session, queue, cache, config, monitor=monitor)


@pytest.fixture
def reconciler(queue, session, monitor, config) -> SyncReconciler:
    return SyncReconciler(
        queue,
        session,
        monitor,
        request_timeout=config.request_timeout,
        sync_interval=0,
        stuck_after_attempts=config.stuck_after_attempts,
    )


@pytest.fixture
def client(interceptor, queue, config) -> RecordsClient:
    return RecordsClient(interceptor, queue, config)


@pytest.fixture
def punch_in() -> dict:
    return {
        "type": "punch_in",
        "technicianName": "R. Naidu",
        "location": "Mandal 7 POP",
        "notes": "",
        "status": "punched_in",
        "gpsCoordinates": {"latitude": 16.5062, "longitude": 80.648, "accuracy": 12},
        "photos": ["iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="],
        "punchInTime": "2026-10-19T08:00:00Z",
        "punchOutTime": None,
    }


@pytest.fixture
def punch_out(punch_in) -> dict:
    return {
        **punch_in,
        "status": "punched_out",
        "punchOutTime": "2026-10-19T17:30:00Z",
    }
