"""
Core cache data structures.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping, Tuple
from urllib.parse import urldefrag, urljoin

from ..fetch import Response


class CacheRole(Enum):
    """Roles a namespace can play in a generation."""
    MAIN = "main"   # App shell, precached assets, navigations, static assets
    API = "api"     # Network-first API responses
    SYNC = "sync"   # Staged payloads waiting for background sync


@dataclass(frozen=True)
class CacheGeneration:
    """
    The set of namespace names current for one build.

    Only MAIN and API survive activation; every other namespace
    (older versions, and the sync namespace) is reclaimed.
    """
    main: str
    api: str
    sync: str

    @classmethod
    def from_mapping(cls, names: Mapping[str, str]) -> "CacheGeneration":
        return cls(
            main=names[CacheRole.MAIN.value],
            api=names[CacheRole.API.value],
            sync=names[CacheRole.SYNC.value],
        )

    @property
    def allow_list(self) -> Tuple[str, str]:
        """Namespaces kept at activation."""
        return (self.main, self.api)


def request_key(url: str, origin: str) -> str:
    """
    Normalize a URL into a cache key.

    Relative URLs resolve against the intercepted origin and fragments
    are dropped. The method is not part of the key; only GET is cached.
    """
    absolute = urljoin(origin.rstrip("/") + "/", url)
    return urldefrag(absolute)[0]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheRecord:
    """
    Immutable snapshot of a response stored under a request key.

    A record is replaced as a whole; there is no partial update.
    """
    status: int
    headers: Tuple[Tuple[str, str], ...]
    body: bytes
    status_text: str = ""
    stored_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_response(cls, response: Response) -> "CacheRecord":
        return cls(
            status=response.status,
            headers=tuple(response.headers.items()),
            body=response.body,
            status_text=response.status_text,
        )

    def to_response(self, url: str = "") -> Response:
        return Response(
            status=self.status,
            headers=dict(self.headers),
            body=self.body,
            status_text=self.status_text,
            url=url,
        )
