"""Error taxonomy for the offline sync engine.

Transient network failures are absorbed by the interceptor (cache or queue).
Everything that reaches the caller derives from FieldSyncError.
"""


class FieldSyncError(Exception):
    """Base class for all fieldsync errors."""


class ConfigError(FieldSyncError):
    """Configuration failed validation."""


class StorageError(FieldSyncError):
    """Local durable storage failed. Never retried automatically."""


class StorageFullError(StorageError):
    """Offline capacity is exhausted; the user must reconnect to free it."""


class StorageUnavailableError(StorageError):
    """Local storage cannot be opened or written."""


class QueueDisabledError(StorageUnavailableError):
    """The durable queue runs in disabled mode, writes fail fast."""


class SerializationError(FieldSyncError):
    """Payload cannot be serialized for queueing."""


class RecordValidationError(SerializationError):
    """Record does not match the schema for its type."""

    def __init__(self, message: str, record_type: str | None = None):
        super().__init__(message)
        self.record_type = record_type


class NetworkUnavailableError(FieldSyncError):
    """A request that has no offline fallback failed at the network layer."""


class RequestAborted(FieldSyncError):
    """The caller cancelled the request before it resolved."""


class InvalidResponseError(FieldSyncError):
    """The remote API answered 2xx with a body that is not a JSON object."""


class RemoteRejectedError(FieldSyncError):
    """The remote API answered with a non-2xx status."""

    def __init__(self, status: int, body=None):
        message = f"Remote API rejected request with status {status}"
        if isinstance(body, dict) and body.get("error"):
            message = f"{message}: {body['error']}"
        super().__init__(message)
        self.status = status
        self.body = body
