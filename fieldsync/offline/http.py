"""Request and response types passed through the interception layer."""
import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from ..constants import JSON_CONTENT_TYPE

SOURCE_NETWORK = "network"
SOURCE_CACHE = "cache"
SOURCE_OFFLINE = "offline"
SOURCE_QUEUED = "queued"


@dataclass
class InterceptedRequest:
    """An outgoing request as issued by application code.

    Attributes:
        method: HTTP verb
        url: Absolute URL
        body: JSON-serializable body, None for reads
        headers: Extra request headers
        mode: "navigate" for page navigations, anything else otherwise
    """
    method: str
    url: str
    body: Any = None
    headers: dict = field(default_factory=dict)
    mode: str = "cors"

    def __post_init__(self):
        self.method = self.method.upper()

    @property
    def path(self) -> str:
        return urlsplit(self.url).path


@dataclass
class InterceptedResponse:
    """A response whatever its origin.

    Attributes:
        status: HTTP status code
        headers: Response headers
        body: Exact body bytes
        source: network, cache, offline or queued
    """
    status: int
    headers: dict
    body: bytes
    source: str = SOURCE_NETWORK

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def offline(self) -> bool:
        return self.source != SOURCE_NETWORK

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8")) if self.body else None

    @classmethod
    def from_requests(cls, response) -> "InterceptedResponse":
        """Wrap a requests.Response read in full."""
        return cls(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
            source=SOURCE_NETWORK,
        )

    @classmethod
    def synthesized(cls, data: dict, source: str, status: int = 200) -> "InterceptedResponse":
        """JSON response built locally instead of coming from the network."""
        return cls(
            status=status,
            headers={"Content-Type": JSON_CONTENT_TYPE},
            body=json.dumps(data).encode("utf-8"),
            source=source,
        )
