"""
Per-class caching strategies.

API and navigation requests go network-first; static assets go
cache-first with a detached background refresh. Network failures always
resolve to a cached record or a synthesized response, and storage
failures are treated as cache misses.
"""
import logging
import threading
from typing import Dict, Optional

from .cache.background import BackgroundRunner
from .cache.core import CacheGeneration, CacheRecord, request_key
from .cache.store import NamespaceRegistry
from .classifier import RequestClass
from .exceptions import NetworkError, StorageError
from .fetch import Request, Response, Transport
from .utils.helpers import utc_timestamp

logger = logging.getLogger("engine.strategies")

PLACEHOLDER_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
    '<rect width="100" height="100" rx="12" fill="#e5e7eb"/>'
    '<path d="M30 65 L45 45 L57 58 L65 50 L75 65 Z" fill="#9ca3af"/>'
    '<circle cx="38" cy="35" r="6" fill="#9ca3af"/>'
    '</svg>'
)


def is_cacheable(response: Response) -> bool:
    """
    Only explicit success responses are stored.

    Redirects, client and server errors never reach the cache, and
    neither does 206 since a partial body is not the resource.
    """
    return response.ok and response.status != 206


class StrategyExecutor:
    """
    Runs the caching protocol selected by the request classifier.

    Namespaces come from the generation: API responses go to the API
    namespace, everything else to the main namespace.
    """

    def __init__(
        self,
        registry: NamespaceRegistry,
        transport: Transport,
        generation: CacheGeneration,
        background: BackgroundRunner,
        origin: str,
        offline_url: str = "/offline.html",
        root_url: str = "/",
        offline_marker_header: str = "X-Engine-Cache",
        offline_message: str = "You are offline. Data shown may be outdated.",
        unavailable_status: int = 408,
    ):
        self._registry = registry
        self._transport = transport
        self._background = background
        self.generation = generation
        self.origin = origin
        self.offline_url = offline_url
        self.root_url = root_url
        self.offline_marker_header = offline_marker_header
        self.offline_message = offline_message
        self.unavailable_status = unavailable_status

        self._stats = {
            "hits": 0,
            "misses": 0,
            "network_fallbacks": 0,
            "revalidations": 0,
            "storage_errors": 0,
        }
        self._stats_lock = threading.Lock()

    def execute(self, request: Request, request_class: RequestClass) -> Optional[Response]:
        """
        Produce a response for a classified request.

        Returns None for BYPASS: the host forwards the request untouched.
        """
        if request_class is RequestClass.BYPASS:
            return None
        if request_class is RequestClass.API:
            return self.network_first_api(request)
        if request_class is RequestClass.NAVIGATION:
            return self.network_first_navigation(request)
        return self.cache_first_static(request)

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def network_first_api(self, request: Request) -> Response:
        key = self.key_for(request.url)
        try:
            response = self._fetch(request)
        except NetworkError as e:
            self._count("network_fallbacks")
            logger.warning(f"API fetch failed, serving from cache: {key} - {e}")
            cached = self._read(self.generation.api, key)
            if cached is not None:
                self._count("hits")
                return cached.to_response(url=key)
            self._count("misses")
            return self.offline_api_response()

        self._write(self.generation.api, key, response)
        return response

    def network_first_navigation(self, request: Request) -> Response:
        key = self.key_for(request.url)
        try:
            response = self._fetch(request)
        except NetworkError as e:
            self._count("network_fallbacks")
            logger.warning(f"Navigation failed, serving offline page: {key} - {e}")
            for fallback in (self.offline_url, self.root_url):
                cached = self._match(self.key_for(fallback))
                if cached is not None:
                    self._count("hits")
                    return cached.to_response(url=self.key_for(fallback))
            self._count("misses")
            return self.unavailable_response()

        self._write(self.generation.main, key, response)
        return response

    def cache_first_static(self, request: Request) -> Response:
        key = self.key_for(request.url)
        cached = self._match(key)
        if cached is not None:
            logger.debug(f"CACHE HIT: {key}")
            self._count("hits")
            self._background.spawn(f"revalidate:{key}", lambda: self._revalidate(request, key))
            return cached.to_response(url=key)

        logger.debug(f"CACHE MISS: {key}")
        self._count("misses")
        try:
            response = self._fetch(request)
        except NetworkError as e:
            self._count("network_fallbacks")
            logger.warning(f"Static fetch failed, serving placeholder: {key} - {e}")
            return self.placeholder_for(request)

        self._write(self.generation.main, key, response)
        return response

    def _fetch(self, request: Request) -> Response:
        """
        Fetch through the transport. Any failure, including a transport
        bug, is reported as NetworkError so the caller's fallback applies.
        """
        try:
            return self._transport.fetch(request)
        except NetworkError:
            raise
        except Exception as e:
            logger.error(f"Transport error for {request.url}: {e}", exc_info=True)
            raise NetworkError(str(e)) from e

    def _revalidate(self, request: Request, key: str) -> None:
        """Background refresh of a static entry. Failures are discarded."""
        try:
            response = self._fetch(request)
        except NetworkError as e:
            logger.debug(f"Background update failed: {key} - {e}")
            return
        if self._write(self.generation.main, key, response):
            self._count("revalidations")
            logger.debug(f"Background update complete: {key}")

    # ------------------------------------------------------------------
    # Synthesized responses
    # ------------------------------------------------------------------

    def offline_api_response(self) -> Response:
        return Response.from_json(
            {
                "status": "offline",
                "message": self.offline_message,
                "timestamp": utc_timestamp(),
            },
            headers={self.offline_marker_header: "offline"},
        )

    def unavailable_response(self) -> Response:
        return Response(status=self.unavailable_status, status_text="Offline")

    def placeholder_for(self, request: Request) -> Response:
        if request.accepts("image"):
            return Response(
                headers={"Content-Type": "image/svg+xml"},
                body=PLACEHOLDER_SVG.encode("utf-8"),
            )
        return self.unavailable_response()

    # ------------------------------------------------------------------
    # Store access (failures degrade to cache misses)
    # ------------------------------------------------------------------

    def key_for(self, url: str) -> str:
        return request_key(url, self.origin)

    def _read(self, name: str, key: str) -> Optional[CacheRecord]:
        try:
            return self._registry.get(name, key)
        except StorageError as e:
            self._count("storage_errors")
            logger.warning(f"Cache read failed, treating as miss: {name} {key} - {e}")
            return None

    def _match(self, key: str) -> Optional[CacheRecord]:
        """Current main namespace first, then every other namespace."""
        try:
            record = self._registry.get(self.generation.main, key)
            if record is not None:
                return record
            return self._registry.match(key)
        except StorageError as e:
            self._count("storage_errors")
            logger.warning(f"Cache match failed, treating as miss: {key} - {e}")
            return None

    def _write(self, name: str, key: str, response: Response) -> bool:
        """Store a clone of response if cacheable. True if it was stored."""
        if not is_cacheable(response):
            logger.debug(f"Not caching {response.status} response: {key}")
            return False
        try:
            self._registry.put(name, key, CacheRecord.from_response(response.clone()))
        except StorageError as e:
            self._count("storage_errors")
            logger.warning(f"Cache write failed: {name} {key} - {e}")
            return False
        return True

    def _count(self, stat: str) -> None:
        with self._stats_lock:
            self._stats[stat] += 1

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            stats = dict(self._stats)
        stats["revalidating"] = self._background.active
        return stats
