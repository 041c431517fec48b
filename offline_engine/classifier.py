"""
Request classification.

Maps an intercepted request to the caching policy that handles it.
Pure: the result depends only on method, URL path and navigation flag.
"""
from enum import Enum
from typing import Container, Iterable

from .fetch import Request


class RequestClass(Enum):
    """Caching policy tags."""
    BYPASS = "bypass"                    # Not intercepted; host forwards untouched
    API = "api"                          # Network-first, API namespace
    NAVIGATION = "navigation"            # Network-first, offline document fallback
    STATIC = "static"                    # Cache-first with background revalidation
    PRECACHED_ASSET = "precached_asset"  # Static asset from the install list; same policy as STATIC


def matches_prefix(path: str, prefixes: Iterable[str]) -> bool:
    return any(path.startswith(prefix) for prefix in prefixes)


def classify(
    request: Request,
    api_prefixes: Iterable[str],
    precached_paths: Container[str] = (),
) -> RequestClass:
    """
    Classify a request. Rule order matters:

    1. Non-GET bypasses, even under an API prefix
    2. API prefixes win over navigation
    3. Top-level navigations
    4. Everything else is a static asset (PRECACHED_ASSET when the path
       is on the install list)
    """
    if request.method.upper() != "GET":
        return RequestClass.BYPASS
    if matches_prefix(request.path, api_prefixes):
        return RequestClass.API
    if request.is_navigation:
        return RequestClass.NAVIGATION
    if request.path in precached_paths:
        return RequestClass.PRECACHED_ASSET
    return RequestClass.STATIC
