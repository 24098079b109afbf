"""Offline mode: durable queue, response cache, connectivity and sync.

Writes that cannot reach the API are queued locally and replayed when
connectivity returns. Reads fall back to the last good response.

Usage:
    from fieldsync.offline import MutationQueue, SyncReconciler

    queue = MutationQueue(path)
    reconciler = SyncReconciler(queue, session, monitor)

    # Drain the queue once connectivity is back
    result = reconciler.reconcile()
"""
from fieldsync.offline.cache import ResponseCache
from fieldsync.offline.connectivity import (
    ConnectivityMonitor,
    build_probe,
    http_probe,
    tcp_probe,
)
from fieldsync.offline.http import InterceptedRequest, InterceptedResponse
from fieldsync.offline.interceptor import Interceptor
from fieldsync.offline.mutation import (
    QueuedMutation,
    generate_mutation_id,
    priority_for_method,
)
from fieldsync.offline.queue import MutationQueue
from fieldsync.offline.reconciler import SyncReconciler, SyncResult

__all__ = [
    # Queue
    "MutationQueue",
    "QueuedMutation",
    "generate_mutation_id",
    "priority_for_method",
    # Cache
    "ResponseCache",
    # Connectivity
    "ConnectivityMonitor",
    "build_probe",
    "http_probe",
    "tcp_probe",
    # Interception
    "Interceptor",
    "InterceptedRequest",
    "InterceptedResponse",
    # Sync
    "SyncReconciler",
    "SyncResult",
]
