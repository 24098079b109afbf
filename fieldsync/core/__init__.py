"""Core subpackage for fieldsync primitives.

Exports receipt helpers and the error taxonomy.
"""
from .errors import (
    ConfigError,
    FieldSyncError,
    InvalidResponseError,
    NetworkUnavailableError,
    QueueDisabledError,
    RecordValidationError,
    RemoteRejectedError,
    RequestAborted,
    SerializationError,
    StorageError,
    StorageFullError,
    StorageUnavailableError,
)
from .receipt import emit_receipt, payload_hash, utc_now

__all__ = [
    "emit_receipt",
    "payload_hash",
    "utc_now",
    "FieldSyncError",
    "ConfigError",
    "StorageError",
    "StorageFullError",
    "StorageUnavailableError",
    "QueueDisabledError",
    "SerializationError",
    "RecordValidationError",
    "NetworkUnavailableError",
    "RequestAborted",
    "RemoteRejectedError",
    "InvalidResponseError",
]
