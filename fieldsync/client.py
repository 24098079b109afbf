"""Record save/fetch surface for the application.

Return shapes are uniform whether an operation was served live, from
cache, or deferred to the queue; the "offline" flag tells them apart.
"""
import threading
from urllib.parse import urlencode

from .core.errors import InvalidResponseError, RemoteRejectedError
from .offline.http import SOURCE_NETWORK, InterceptedRequest, InterceptedResponse
from .offline.interceptor import Interceptor
from .offline.queue import MutationQueue
from .records import validate_record


def _decode(response: InterceptedResponse) -> dict:
    """JSON object body of a response.

    Raises:
        RemoteRejectedError: non-2xx status, JSON or not
        InvalidResponseError: 2xx status with a body that is not a JSON object
    """
    try:
        data = response.json()
    except (ValueError, UnicodeDecodeError):
        if not response.ok:
            raise RemoteRejectedError(
                response.status, response.body.decode("utf-8", errors="replace")
            ) from None
        raise InvalidResponseError(
            f"API answered {response.status} with a non-JSON body of {len(response.body)} bytes"
        ) from None

    if not response.ok:
        raise RemoteRejectedError(response.status, data)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidResponseError(f"Expected a JSON object from the API, got {type(data).__name__}")
    return data


class RecordsClient:
    """Saves and fetches field records through the interceptor."""

    def __init__(self, interceptor: Interceptor, queue: MutationQueue, config):
        self.interceptor = interceptor
        self.queue = queue
        self.config = config

    def save(self, record: dict, cancel: threading.Event | None = None) -> dict:
        """Submit a record.

        Args:
            record: Record dict tagged with "type"
            cancel: Set by the caller to abort the submission

        Returns:
            {"offline": False, "success": True, "id": ...} when sent live,
            {"offline": True, "success": True, "queuedId": ...} when queued

        Raises:
            RecordValidationError: record does not match its schema
            RemoteRejectedError: API answered non-2xx
            InvalidResponseError: API answered 2xx without a JSON object
            StorageFullError, QueueDisabledError: could not queue offline
            RequestAborted: cancelled
        """
        record = validate_record(record)
        response = self.interceptor.fetch(
            InterceptedRequest("POST", self.config.records_url, body=record),
            cancel,
        )
        data = _decode(response)
        return {**data, "offline": response.offline}

    def fetch_all(self, record_type: str | None = None, cancel: threading.Event | None = None) -> dict:
        """Fetch records, optionally filtered by type.

        Returns:
            {"offline": bool, "source": ..., "records": [...]}; an offline
            response without cache also carries "message"
        """
        url = self.config.records_url
        if record_type:
            url = f"{url}?{urlencode({'type': record_type})}"

        response = self.interceptor.fetch(InterceptedRequest("GET", url), cancel)
        data = _decode(response)

        result = {
            "offline": response.source != SOURCE_NETWORK,
            "source": response.source,
            "records": data.get("records", []),
        }
        if "message" in data:
            result["message"] = data["message"]
        return result

    def pending_count(self) -> int:
        return self.queue.pending_count()

    def sync_status(self) -> dict:
        return self.queue.sync_status(self.config.stuck_after_attempts)
