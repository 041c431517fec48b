"""
Versioned cache namespaces, generation cleanup and background revalidation.
"""
from .background import BackgroundRunner
from .core import CacheGeneration, CacheRecord, CacheRole, request_key
from .generations import GenerationManager
from .sql_store import SqlNamespaceRegistry
from .store import MemoryNamespaceRegistry, Namespace, NamespaceRegistry

__all__ = [
    # Core types
    "CacheGeneration",
    "CacheRecord",
    "CacheRole",
    "request_key",
    # Stores
    "Namespace",
    "NamespaceRegistry",
    "MemoryNamespaceRegistry",
    "SqlNamespaceRegistry",
    # Lifecycle helpers
    "GenerationManager",
    "BackgroundRunner",
]
