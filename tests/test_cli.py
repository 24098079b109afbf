"""Tests for the fieldsync CLI."""
import json

import pytest
from click.testing import CliRunner

from conftest import FakeRecordsApi, FakeSession
from fieldsync.engine import OfflineEngine
from fieldsync_cli.main import cli


@pytest.fixture
def fake() -> FakeSession:
    return FakeSession()


@pytest.fixture
def api(fake, config) -> FakeRecordsApi:
    return FakeRecordsApi(config.records_url).install(fake)


@pytest.fixture
def run(config, fake):
    runner = CliRunner()

    def factory(cfg):
        return OfflineEngine(cfg, session=fake, probe=lambda: fake.online)

    def invoke(*args, input=None):
        return runner.invoke(
            cli,
            list(args),
            obj={"config": config, "engine_factory": factory},
            input=input,
        )

    return invoke


def _json_tail(output: str) -> dict:
    """Parse the JSON document printed after any status line."""
    return json.loads(output[output.index("{"):])


class TestRecords:
    """Test save and fetch commands."""

    def test_save_online(self, run, api):
        result = run("save", "--type", "punch_in", "--data", '{"technicianName": "T", "location": "A"}')

        assert result.exit_code == 0, result.output
        assert "Saved" in result.output
        assert _json_tail(result.output)["id"] == "srv-1"
        assert api.records[0]["type"] == "punch_in"

    def test_save_offline(self, run, fake):
        fake.online = False

        result = run("save", "--type", "punch_in", "--data", '{"technicianName": "T", "location": "A"}')

        assert result.exit_code == 0, result.output
        assert "Saved offline" in result.output
        assert _json_tail(result.output)["offline"] is True

    def test_save_from_file(self, run, api, tmp_path):
        path = tmp_path / "record.json"
        path.write_text(json.dumps({"location": "Span 4", "taskDescription": "Inspect"}))

        result = run("save", "--type", "patroller_task", "--data", f"@{path}")

        assert result.exit_code == 0, result.output
        assert api.records[0]["location"] == "Span 4"

    def test_save_invalid_record(self, run, fake):
        result = run("save", "--type", "punch_in", "--data", '{"location": "A"}')

        assert result.exit_code == 2
        assert "technicianName" in result.output
        assert fake.calls_to("POST", "http://api.test/php/records.php") == []

    def test_save_bad_json(self, run):
        result = run("save", "--type", "punch_in", "--data", "{not json")
        assert result.exit_code == 2

    def test_save_unknown_type(self, run):
        result = run("save", "--type", "fuel_log", "--data", "{}")
        assert result.exit_code == 2

    def test_fetch(self, run, api):
        run("save", "--type", "punch_in", "--data", '{"technicianName": "T", "location": "A"}')

        result = run("fetch", "--type", "punch_in")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["offline"] is False
        assert len(data["records"]) == 1


class TestQueueCommands:
    """Test queue inspection and sync commands."""

    def _queue_one(self, run, fake):
        fake.online = False
        run("save", "--type", "punch_in", "--data", '{"technicianName": "T", "location": "A"}')

    def test_status(self, run, fake):
        self._queue_one(run, fake)

        result = run("status")

        assert result.exit_code == 0, result.output
        status = json.loads(result.output)
        assert status["pending_count"] == 1
        assert status["online"] is False

    def test_queue_listing(self, run, fake):
        self._queue_one(run, fake)

        result = run("queue")

        assert result.exit_code == 0, result.output
        assert "Showing 1 of 1 pending mutations" in result.output
        assert "punch_in" in result.output

    def test_queue_empty(self, run):
        result = run("queue")
        assert "Queue is empty" in result.output

    def test_sync_refuses_offline(self, run, fake):
        self._queue_one(run, fake)

        result = run("sync")

        assert result.exit_code == 1
        assert "Not connected" in result.output

    def test_sync_after_reconnect(self, run, fake, api):
        self._queue_one(run, fake)
        fake.online = True

        result = run("sync")

        assert result.exit_code == 0, result.output
        assert "Synced 1 mutations" in result.output
        assert len(api.records) == 1
        assert json.loads(run("status").output)["pending_count"] == 0

    def test_sync_reports_failures(self, run, fake, config):
        self._queue_one(run, fake)
        fake.online = True
        fake.respond("POST", config.records_url, status=500, json_body={"error": "Failed to save record"})

        result = run("sync")

        assert "1 mutations still pending" in result.output
        assert _json_tail(result.output)["failed"]

    def test_connected(self, run, fake):
        assert json.loads(run("connected").output)["connected"] is True
        fake.online = False
        assert json.loads(run("connected").output)["status"] == "offline"

    def test_prune(self, run):
        result = run("prune")
        assert "Pruned 0 synced mutations" in result.output

    def test_clear(self, run, fake):
        self._queue_one(run, fake)

        result = run("clear", input="y\n")

        assert "Queue cleared" in result.output
        assert "Queue is empty" in run("queue").output

    def test_clear_declined(self, run, fake):
        self._queue_one(run, fake)

        run("clear", input="n\n")

        assert "Showing 1 of 1" in run("queue").output

    def test_cache_purge(self, run):
        result = run("cache", "purge")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["purged"] == []
        assert "field-maintenance-v1.0.0" in data["current"]


class TestConfig:
    """Test global options."""

    def test_invalid_api_url(self, run):
        result = run("--api-url", "not-a-url", "status")
        assert result.exit_code == 2
        assert "Invalid configuration" in result.output

    def test_version(self, run):
        result = run("--version")
        assert result.exit_code == 0
        assert "1.0.0" in result.output
