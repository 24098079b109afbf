"""fieldsync constants and defaults.

All magic numbers live here. No exceptions.
"""
from pathlib import Path

# Storage locations
DEFAULT_DATA_DIR = Path.home() / ".fieldsync"
QUEUE_DB_NAME = "offline_queue.db"
CACHE_DB_NAME = "response_cache.db"

# Durable queue quota (offline capacity)
DEFAULT_QUEUE_MAX_BYTES = 50 * 1024 * 1024
SQLITE_BUSY_TIMEOUT_S = 5.0

# Cache namespaces, bumped on every deploy
DEFAULT_CACHE_PREFIX = "field-maintenance"
DEFAULT_CACHE_VERSION = "1.0.0"

# Remote API
DEFAULT_API_BASE_URL = "http://localhost/field-maintenance/php"
DEFAULT_APP_BASE_URL = "http://localhost/field-maintenance"
DEFAULT_RECORDS_PATH = "/records.php"
DEFAULT_HEALTH_PATH = "/test_connection.php"
DEFAULT_SHELL_PATH = "/index.html"
DEFAULT_PRECACHE_PATHS = (
    "/",
    "/index.html",
    "/static/js/bundle.js",
    "/static/css/main.css",
    "/manifest.json",
)

# Timing (seconds)
DEFAULT_REQUEST_TIMEOUT_S = 10.0
DEFAULT_PROBE_TIMEOUT_S = 5.0
DEFAULT_POLL_INTERVAL_S = 15.0
DEFAULT_SYNC_INTERVAL_S = 300.0  # periodic safety net, 0 disables
WORKER_JOIN_TIMEOUT_S = 5.0

# Replay bookkeeping
DEFAULT_STUCK_AFTER_ATTEMPTS = 5

# Write verbs that are queued, ranked creates > updates > deletes
QUEUEABLE_METHODS = ("POST", "PUT", "DELETE")
METHOD_PRIORITY = {
    "POST": 1,
    "PUT": 2,
    "DELETE": 3,
}
DEFAULT_METHOD_PRIORITY = 2

# Platform background-sync tag
BACKGROUND_SYNC_TAG = "background-sync"

# Header carrying the mutation id so the backend can drop replays
IDEMPOTENCY_HEADER = "Idempotency-Key"

# Synthesized response messages
OFFLINE_READ_MESSAGE = "You are offline. Data will sync when connection is restored."
OFFLINE_WRITE_MESSAGE = "Data saved offline. Will sync when connection is restored."
OFFLINE_SHELL_BODY = b"Offline"

JSON_CONTENT_TYPE = "application/json"
