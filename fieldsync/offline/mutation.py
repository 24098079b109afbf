"""Queued mutation type.

A mutation is a non-idempotent write (create/update/delete) that could
not reach the remote API and waits in the durable queue for replay.
"""
import json
import secrets
import time
from dataclasses import dataclass, field
from typing import Any

from ..constants import DEFAULT_METHOD_PRIORITY, METHOD_PRIORITY, QUEUEABLE_METHODS
from ..core.errors import SerializationError
from ..core.receipt import utc_now


def generate_mutation_id() -> str:
    """Time-based id with a random suffix, sortable by creation time."""
    return f"{int(time.time() * 1000):012x}-{secrets.token_hex(6)}"


def priority_for_method(method: str) -> int:
    """Creates rank above updates, updates above deletes."""
    return METHOD_PRIORITY.get(method.upper(), DEFAULT_METHOD_PRIORITY)


def is_queueable(method: str) -> bool:
    return method.upper() in QUEUEABLE_METHODS


def serialize_payload(payload: Any) -> str:
    """Serialize a payload once, at enqueue time.

    Raises:
        SerializationError: payload is not JSON-serializable
    """
    try:
        return json.dumps(payload, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Payload is not JSON-serializable: {e}") from e


def encode_body(payload: Any) -> bytes | None:
    """Wire bytes for a request body, identical on first attempt and replay."""
    if payload is None:
        return None
    return serialize_payload(payload).encode("utf-8")


@dataclass
class QueuedMutation:
    """A write waiting for replay.

    Attributes:
        target_url: Endpoint the write was destined for
        method: POST, PUT or DELETE
        payload: Original JSON-serializable request body
        headers: Headers replayed with the request
        record_type: Record "type" tag when the payload is a field record
        id: Assigned at enqueue time if empty, immutable afterwards
        created_at: ISO-8601 UTC enqueue time
        synced: True once the server accepted the replay
        attempts: Failed replay attempts so far
        last_error: Reason of the last failed replay
    """
    target_url: str
    method: str
    payload: Any
    headers: dict = field(default_factory=dict)
    record_type: str | None = None
    id: str = ""
    created_at: str = ""
    synced: bool = False
    attempts: int = 0
    last_error: str | None = None

    def __post_init__(self):
        self.method = self.method.upper()
        if self.record_type is None and isinstance(self.payload, dict):
            tag = self.payload.get("type")
            if isinstance(tag, str):
                self.record_type = tag

    @property
    def priority(self) -> int:
        return priority_for_method(self.method)

    def body(self) -> bytes | None:
        """Request body bytes; None for a write sent without a body."""
        return encode_body(self.payload)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "targetUrl": self.target_url,
            "method": self.method,
            "payload": self.payload,
            "headers": dict(self.headers),
            "recordType": self.record_type,
            "createdAt": self.created_at,
            "synced": self.synced,
            "priority": self.priority,
            "attempts": self.attempts,
            "lastError": self.last_error,
        }

    def stamp(self) -> "QueuedMutation":
        """Fill id and created_at if missing. Returns self."""
        if not self.id:
            self.id = generate_mutation_id()
        if not self.created_at:
            self.created_at = utc_now()
        return self
