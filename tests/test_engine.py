"""Tests for engine wiring and lifecycle."""
import time

import pytest

from conftest import FakeRecordsApi, FakeSession
from fieldsync.constants import BACKGROUND_SYNC_TAG
from fieldsync.core.errors import ConfigError
from fieldsync.engine import OfflineEngine
from fieldsync.offline.cache import ResponseCache
from fieldsync.offline.http import InterceptedResponse


@pytest.fixture
def fake() -> FakeSession:
    return FakeSession()


@pytest.fixture
def engine(config, fake):
    e = OfflineEngine(config, session=fake, probe=lambda: fake.online)
    yield e
    e.stop()


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestLifecycle:
    """Test start/stop."""

    def test_invalid_config_rejected(self, config):
        config.request_timeout = 0
        with pytest.raises(ConfigError):
            OfflineEngine(config, session=FakeSession())

    def test_start_precaches_shell(self, engine, fake, config):
        fake.respond("GET", "http://app.test/", body=b"<html>root</html>")
        fake.respond("GET", "http://app.test/index.html", body=b"<html>shell</html>")

        engine.start(background=False)

        assert engine.cache.match(config.shell_url).body == b"<html>shell</html>"

    def test_start_offline_skips_precache(self, config, fake):
        fake.online = False
        engine = OfflineEngine(config, session=fake, probe=lambda: fake.online, initially_online=False)
        engine.start(background=False)
        try:
            assert fake.calls == []
        finally:
            engine.stop()

    def test_start_purges_old_caches(self, engine, fake):
        old = ResponseCache(engine.config.cache_path, version="0.9.0")
        old.put("http://app.test/", InterceptedResponse(200, {}, b"old"))
        old.close()

        engine.start(background=False, precache=False)

        assert engine.cache.cache_names() == []

    def test_stop_is_idempotent(self, engine):
        engine.start(background=False, precache=False)
        engine.stop()
        engine.stop()
        assert not engine.started

    def test_context_manager(self, config, fake):
        with OfflineEngine(config, session=fake, probe=lambda: fake.online) as engine:
            assert engine.started
            assert engine.monitor.running
            assert engine.reconciler.running
        assert not engine.started
        assert not engine.reconciler.running

    def test_status(self, engine, fake):
        engine.start(background=False, precache=False)

        status = engine.status()

        assert status["online"] is True
        assert status["pending_count"] == 0
        assert status["sync_in_progress"] is False
        assert status["cache_version"] == "1.0.0"


class TestSync:
    """Test wiring between interceptor, monitor and reconciler."""

    def test_sync_now(self, engine, fake, config, punch_in):
        api = FakeRecordsApi(config.records_url).install(fake)
        engine.start(background=False, precache=False)

        fake.online = False
        engine.client.save(punch_in)
        fake.online = True

        result = engine.sync_now()

        assert result.success
        assert len(api.records) == 1
        assert engine.client.pending_count() == 0

    def test_background_sync_tag(self, engine):
        engine.start(background=False, precache=False)
        assert engine.background_sync(BACKGROUND_SYNC_TAG) is True
        assert engine.background_sync("other") is False

    def test_reconnect_drains_queue_in_background(self, engine, fake, config, punch_in, punch_out):
        api = FakeRecordsApi(config.records_url).install(fake)
        engine.start(background=True, precache=False)

        fake.online = False
        assert _wait_for(lambda: not engine.monitor.is_online())
        engine.client.save(punch_in)
        engine.client.save(punch_out)
        assert engine.client.pending_count() == 2

        fake.online = True

        assert _wait_for(lambda: engine.client.pending_count() == 0)
        assert [r["status"] for r in api.records] == ["punched_in", "punched_out"]
