"""fieldsync: offline-first sync engine for field maintenance records.

Public API:
- Engine: OfflineEngine, SyncConfig
- Client: RecordsClient (save / fetch_all)
- Records: validate_record, RECORD_TYPES
- Offline: MutationQueue, ResponseCache, ConnectivityMonitor,
  Interceptor, SyncReconciler
"""
from .client import RecordsClient
from .config import SyncConfig
from .core import (
    FieldSyncError,
    InvalidResponseError,
    QueueDisabledError,
    RecordValidationError,
    RemoteRejectedError,
    RequestAborted,
    SerializationError,
    StorageFullError,
    StorageUnavailableError,
    emit_receipt,
)
from .engine import OfflineEngine
from .offline import (
    ConnectivityMonitor,
    InterceptedRequest,
    InterceptedResponse,
    Interceptor,
    MutationQueue,
    QueuedMutation,
    ResponseCache,
    SyncReconciler,
    SyncResult,
)
from .records import RECORD_TYPES, validate_record

__version__ = "1.0.0"

__all__ = [
    # Engine
    "OfflineEngine",
    "SyncConfig",
    "RecordsClient",
    # Records
    "RECORD_TYPES",
    "validate_record",
    # Offline
    "MutationQueue",
    "QueuedMutation",
    "ResponseCache",
    "ConnectivityMonitor",
    "Interceptor",
    "InterceptedRequest",
    "InterceptedResponse",
    "SyncReconciler",
    "SyncResult",
    # Core
    "emit_receipt",
    "FieldSyncError",
    "StorageFullError",
    "StorageUnavailableError",
    "QueueDisabledError",
    "SerializationError",
    "RecordValidationError",
    "RemoteRejectedError",
    "InvalidResponseError",
    "RequestAborted",
]
