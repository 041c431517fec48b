"""
Offline-first request interception and multi-policy cache engine.
"""
from .classifier import RequestClass, classify
from .engine import OfflineEngine, build_registry, get_engine
from .fetch import Request, RequestsTransport, Response, Transport

__all__ = [
    "OfflineEngine",
    "build_registry",
    "get_engine",
    "RequestClass",
    "classify",
    "Request",
    "Response",
    "Transport",
    "RequestsTransport",
]
