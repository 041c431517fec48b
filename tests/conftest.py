"""
Shared fixtures: a scripted transport, failing stores and a wired engine.
"""
import threading
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

import pytest

from config.settings import Settings
from offline_engine.cache.store import MemoryNamespaceRegistry
from offline_engine.clients import WindowClients
from offline_engine.engine import OfflineEngine
from offline_engine.exceptions import NetworkError, StorageError
from offline_engine.fetch import Request, Response
from offline_engine.notifications import NotificationCenter

ORIGIN = "http://app.test"


class FakeTransport:
    """
    Scripted network. Routes are keyed by (method, path?query).

    Unknown routes answer 404; `offline` makes every fetch fail.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Response] = {}
        self.failing: set = set()
        self.offline = False
        self.calls: List[Request] = []
        self.gate: Optional[threading.Event] = None
        self._lock = threading.Lock()

    def route(self, path: str, body=b"", status: int = 200, headers=None, method: str = "GET"):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[(method, path)] = Response(
            status=status,
            headers=dict(headers or {"Content-Type": "text/plain"}),
            body=body,
        )

    def fail(self, path: str):
        self.failing.add(path)

    def calls_to(self, path: str, method: str = "GET") -> List[Request]:
        with self._lock:
            return [c for c in self.calls if c.method == method and _path(c.url) == path]

    def fetch(self, request: Request) -> Response:
        with self._lock:
            self.calls.append(request)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        path = _path(request.url)
        if self.offline or path in self.failing:
            raise NetworkError(f"offline: {path}")
        response = self.routes.get((request.method, path))
        if response is None:
            return Response(status=404, status_text="Not Found")
        return response.clone()


def _path(url: str) -> str:
    parsed = urlparse(url)
    return parsed.path + ("?" + parsed.query if parsed.query else "")


class FailingRegistry(MemoryNamespaceRegistry):
    """Memory registry whose reads and/or writes raise StorageError."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get(self, name, key):
        if self.fail_reads:
            raise StorageError("disk I/O error")
        return super().get(name, key)

    def names(self):
        if self.fail_reads:
            raise StorageError("disk I/O error")
        return super().names()

    def put(self, name, key, record):
        if self.fail_writes:
            raise StorageError("quota exceeded")
        super().put(name, key, record)

    def delete_namespace(self, name):
        if self.fail_writes:
            raise StorageError("quota exceeded")
        return super().delete_namespace(name)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        origin=ORIGIN,
        main_cache_name="shell-v2",
        api_cache_name="api-v2",
        sync_cache_name="sync-v1",
        precache_assets=["/", "/offline.html", "/style.css"],
        store_backend="memory",
        revalidation_workers=2,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def registry():
    return MemoryNamespaceRegistry()


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def clients():
    return WindowClients()


@pytest.fixture
def engine(settings, transport, registry, notifications, clients):
    engine = OfflineEngine(
        settings,
        transport,
        registry=registry,
        notifications=notifications,
        clients=clients,
    )
    yield engine
    engine.close()


@pytest.fixture
def shell_routes(transport):
    """Upstream serving the precache list."""
    transport.route("/", "<html>home</html>", headers={"Content-Type": "text/html"})
    transport.route("/offline.html", "<html>offline</html>", headers={"Content-Type": "text/html"})
    transport.route("/style.css", "body{}", headers={"Content-Type": "text/css"})
    return transport


def url(path: str) -> str:
    return ORIGIN + path
