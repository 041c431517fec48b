"""
Cache namespace store.

A NamespaceRegistry owns every named namespace the engine creates. Each
namespace maps request keys to immutable CacheRecords. Writes to a key
are last-write-wins; there is no locking across keys.
"""
import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, List, Optional

from .core import CacheRecord

logger = logging.getLogger("engine.store")


class Namespace:
    """Handle to one named namespace, as returned by NamespaceRegistry.open()."""

    def __init__(self, registry: "NamespaceRegistry", name: str):
        self._registry = registry
        self.name = name

    def get(self, key: str) -> Optional[CacheRecord]:
        return self._registry.get(self.name, key)

    def put(self, key: str, record: CacheRecord) -> None:
        self._registry.put(self.name, key, record)

    def delete(self, key: str) -> bool:
        return self._registry.delete(self.name, key)

    def keys(self) -> List[str]:
        return self._registry.keys(self.name)

    def __len__(self) -> int:
        return len(self.keys())

    def __repr__(self):
        return f"<Namespace(name='{self.name}')>"


class NamespaceRegistry(ABC):
    """
    Abstract store of named cache namespaces.

    Backends raise StorageError for failures; callers on the request
    path are expected to catch it and treat it as a cache miss.
    """

    def open(self, name: str) -> Namespace:
        """Open a namespace, creating it if it does not exist."""
        self.create(name)
        return Namespace(self, name)

    @abstractmethod
    def create(self, name: str) -> None:
        """Create the namespace if missing. Idempotent."""

    @abstractmethod
    def names(self) -> List[str]:
        """Existing namespace names, in creation order."""

    @abstractmethod
    def delete_namespace(self, name: str) -> bool:
        """Delete a namespace and all its records. True if it existed."""

    @abstractmethod
    def get(self, name: str, key: str) -> Optional[CacheRecord]:
        """Record for key, or None if the key or namespace is absent."""

    @abstractmethod
    def put(self, name: str, key: str, record: CacheRecord) -> None:
        """Store record under key, replacing any previous record."""

    @abstractmethod
    def delete(self, name: str, key: str) -> bool:
        """Remove key from the namespace. True if it existed."""

    @abstractmethod
    def keys(self, name: str) -> List[str]:
        """Keys stored in the namespace, in insertion order."""

    def match(self, key: str) -> Optional[CacheRecord]:
        """
        Look a key up in every namespace, oldest namespace first.

        Returns the first record found.
        """
        for name in self.names():
            record = self.get(name, key)
            if record is not None:
                return record
        return None

    def sizes(self) -> Dict[str, int]:
        """Entry count per namespace."""
        return {name: len(self.keys(name)) for name in self.names()}


class MemoryNamespaceRegistry(NamespaceRegistry):
    """
    In-process registry. Lives for the lifetime of the process.

    Thread-safe: background revalidation writes from worker threads.
    """

    def __init__(self):
        self._namespaces: "OrderedDict[str, OrderedDict[str, CacheRecord]]" = OrderedDict()
        self._lock = threading.RLock()

    def create(self, name: str) -> None:
        with self._lock:
            if name not in self._namespaces:
                self._namespaces[name] = OrderedDict()
                logger.debug(f"Created namespace: {name}")

    def names(self) -> List[str]:
        with self._lock:
            return list(self._namespaces)

    def delete_namespace(self, name: str) -> bool:
        with self._lock:
            if name in self._namespaces:
                del self._namespaces[name]
                logger.info(f"Deleted namespace: {name}")
                return True
            return False

    def get(self, name: str, key: str) -> Optional[CacheRecord]:
        with self._lock:
            namespace = self._namespaces.get(name)
            if namespace is None:
                return None
            return namespace.get(key)

    def put(self, name: str, key: str, record: CacheRecord) -> None:
        with self._lock:
            namespace = self._namespaces.setdefault(name, OrderedDict())
            # Re-inserting moves the key to the end, like a fresh put
            namespace.pop(key, None)
            namespace[key] = record

    def delete(self, name: str, key: str) -> bool:
        with self._lock:
            namespace = self._namespaces.get(name)
            if namespace is None or key not in namespace:
                return False
            del namespace[key]
            return True

    def keys(self, name: str) -> List[str]:
        with self._lock:
            return list(self._namespaces.get(name, ()))
