"""Tests for structured receipts."""
import json
import logging
from datetime import datetime

import fieldsync.core.receipt as receipt_module
from fieldsync.core.receipt import RECEIPT_LOGGER, emit_receipt, payload_hash, utc_now
from fieldsync.offline.mutation import QueuedMutation


class TestReceipt:
    """Test receipt primitives."""

    def test_payload_hash_canonical(self):
        assert payload_hash({"b": 1, "a": 2}) == payload_hash({"a": 2, "b": 1})
        assert len(payload_hash(b"x")) == 64
        assert payload_hash("x") == payload_hash(b"x")

    def test_utc_now_suffix(self):
        assert utc_now().endswith("Z")

    def test_utc_now_fixed_width(self, monkeypatch):
        """Whole-second times keep their microseconds so stamps sort as text."""
        class WholeSecond(datetime):
            @classmethod
            def now(cls, tz=None):
                return datetime(2026, 1, 1, 12, 0, 0, tzinfo=tz)

        monkeypatch.setattr(receipt_module, "datetime", WholeSecond)

        assert utc_now() == "2026-01-01T12:00:00.000000Z"
        assert utc_now() < "2026-01-01T12:00:00.000001Z"

    def test_emit_receipt_fields(self):
        receipt = emit_receipt("sync_pass", {"batch_id": "b1", "synced_count": 2})

        assert receipt["receipt_type"] == "sync_pass"
        assert receipt["tenant_id"] == "default"
        assert receipt["batch_id"] == "b1"
        assert len(receipt["payload_hash"]) == 64

    def test_tenant_from_data(self):
        receipt = emit_receipt("cache_install", {"tenant_id": "crew-7"}, tenant_id="default")
        assert receipt["tenant_id"] == "crew-7"

    def test_logged_as_json(self, caplog):
        with caplog.at_level(logging.INFO, logger=RECEIPT_LOGGER):
            emit_receipt("connectivity_change", {"online": False})

        record = caplog.records[-1]
        assert record.name == RECEIPT_LOGGER
        assert json.loads(record.getMessage())["online"] is False

    def test_enqueue_emits_receipt(self, queue, caplog, config):
        with caplog.at_level(logging.INFO, logger=RECEIPT_LOGGER):
            queue.enqueue(QueuedMutation(config.records_url, "POST", {"type": "punch_in"}))

        receipts = [json.loads(r.getMessage()) for r in caplog.records if r.name == RECEIPT_LOGGER]
        assert receipts[-1]["receipt_type"] == "offline_enqueue"
        assert receipts[-1]["record_type"] == "punch_in"
