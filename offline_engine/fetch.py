"""
Request/response snapshots and the network-fetch capability.

The engine never talks to the network directly: every strategy and task
goes through a Transport, so tests and hosts can substitute their own.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol
from urllib.parse import urljoin, urlparse

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .exceptions import NetworkError

logger = logging.getLogger("engine.fetch")

NAVIGATE = "navigate"

# Headers that describe the wire encoding rather than the body we hold
_WIRE_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


def _lookup(headers: Mapping[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


@dataclass(frozen=True)
class Request:
    """An intercepted request."""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    mode: str = "cors"  # "navigate" for top-level page loads

    @property
    def path(self) -> str:
        return urlparse(self.url).path or "/"

    @property
    def is_navigation(self) -> bool:
        return self.mode == NAVIGATE

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = _lookup(self.headers, name)
        return default if value is None else value

    def accepts(self, content_type: str) -> bool:
        """True if the Accept header mentions content_type (e.g. "image")."""
        return content_type in (self.header("Accept") or "")


@dataclass
class Response:
    """A response snapshot. The body is bytes, so clones share nothing mutable."""
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    status_text: str = ""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = _lookup(self.headers, name)
        return default if value is None else value

    def clone(self) -> "Response":
        return Response(
            status=self.status,
            headers=dict(self.headers),
            body=self.body,
            status_text=self.status_text,
            url=self.url,
        )

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON. Raises ValueError on malformed data."""
        return json.loads(self.body)

    @classmethod
    def from_json(
        cls,
        payload: Any,
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> "Response":
        merged = {"Content-Type": "application/json"}
        merged.update(headers or {})
        return cls(status=status, headers=merged, body=json.dumps(payload).encode("utf-8"))


class Transport(Protocol):
    """
    Network-fetch capability supplied by the host.

    Returns a Response for any HTTP status (4xx/5xx included) and raises
    NetworkError only when no response could be obtained.
    """

    def fetch(self, request: Request) -> Response:
        ...


class RequestsTransport:
    """
    Transport backed by a requests.Session.

    Connection errors are retried with exponential backoff before being
    reported as NetworkError. Relative URLs resolve against base_url.
    """

    def __init__(
        self,
        base_url: str,
        retry_attempts: int = 2,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.retry_attempts = max(1, retry_attempts)
        self.timeout = timeout
        self._session = session or requests.Session()

    def resolve(self, url: str) -> str:
        return urljoin(self.base_url, url)

    def fetch(self, request: Request) -> Response:
        url = self.resolve(request.url)
        try:
            return self._send(request, url)
        except requests.RequestException as e:
            logger.warning(f"Network fetch failed: {request.method} {url} - {e}")
            raise NetworkError(str(e)) from e

    def _send(self, request: Request, url: str) -> Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(requests.ConnectionError),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                raw = self._session.request(
                    request.method,
                    url,
                    headers=request.headers,
                    data=request.body,
                    timeout=self.timeout,
                )
        headers = {k: v for k, v in raw.headers.items() if k.lower() not in _WIRE_HEADERS}
        return Response(
            status=raw.status_code,
            headers=headers,
            body=raw.content,
            status_text=raw.reason or "",
            url=raw.url,
        )

    def close(self) -> None:
        self._session.close()
