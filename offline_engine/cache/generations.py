"""
Cache generation reconciliation.

Staleness is controlled by namespace versioning only: bumping a version
string creates a fresh namespace, and the next activation deletes the
old one. There is no per-entry expiry.
"""
import logging
from typing import List

from ..exceptions import StorageError
from .core import CacheGeneration
from .store import NamespaceRegistry

logger = logging.getLogger("engine.generations")


class GenerationManager:
    """Deletes every namespace outside the current generation's allow-list."""

    def __init__(self, registry: NamespaceRegistry, generation: CacheGeneration):
        self._registry = registry
        self.generation = generation

    def stale_namespaces(self) -> List[str]:
        allowed = set(self.generation.allow_list)
        return [name for name in self._registry.names() if name not in allowed]

    def reclaim(self) -> List[str]:
        """
        Delete stale namespaces.

        A namespace that fails to delete is logged and left for the next
        activation; the others are still removed.

        Returns:
            Names that were deleted
        """
        try:
            stale = self.stale_namespaces()
        except StorageError as e:
            logger.warning(f"Could not enumerate namespaces: {e}")
            return []

        deleted = []
        for name in stale:
            try:
                self._registry.delete_namespace(name)
            except StorageError as e:
                logger.warning(f"Could not delete old cache {name}: {e}")
                continue
            logger.info(f"Deleted old cache: {name}")
            deleted.append(name)
        return deleted
