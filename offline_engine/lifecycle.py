"""
Install and activate.

Install precaches the asset list (all-or-nothing) and asks to skip
waiting. Activate schedules the generation cleanup, claims the open
clients, then waits for the cleanup to finish.
"""
import logging
from enum import Enum
from typing import List, Sequence, Tuple

from .cache.background import BackgroundRunner
from .cache.core import CacheGeneration, CacheRecord, request_key
from .cache.generations import GenerationManager
from .cache.store import NamespaceRegistry
from .clients import ClientRegistry
from .exceptions import InstallError, NetworkError, StorageError
from .fetch import Request, Response, Transport

logger = logging.getLogger("engine.lifecycle")


class LifecycleState(Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"     # Waiting to activate
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"     # Install failed


class Lifecycle:
    """Tracks the worker's lifecycle state and performs its transitions."""

    def __init__(
        self,
        registry: NamespaceRegistry,
        transport: Transport,
        generation: CacheGeneration,
        generations: GenerationManager,
        clients: ClientRegistry,
        background: BackgroundRunner,
        origin: str,
        precache_assets: Sequence[str] = (),
    ):
        self._registry = registry
        self._transport = transport
        self._generations = generations
        self._clients = clients
        self._background = background
        self.generation = generation
        self.origin = origin
        self.precache_assets = list(precache_assets)

        self.state = LifecycleState.PARSED
        self.skip_waiting_requested = False
        self.claimed = False

    def install(self) -> LifecycleState:
        logger.info("Installing...")
        self.state = LifecycleState.INSTALLING
        try:
            self.precache()
        except InstallError as e:
            logger.error(f"Install failed: {e}")
            self.state = LifecycleState.REDUNDANT
            return self.state

        self.state = LifecycleState.INSTALLED
        self.skip_waiting()
        return self.state

    def precache(self) -> List[str]:
        """
        Fetch every asset, then store them all in the main namespace.

        Nothing is left behind if any fetch or write fails.

        Raises:
            InstallError: on the first failed fetch, non-2xx response or write
        """
        logger.info(f"Caching app shell ({len(self.precache_assets)} assets)")
        fetched: List[Tuple[str, Response]] = []
        for path in self.precache_assets:
            key = request_key(path, self.origin)
            try:
                response = self._transport.fetch(Request(url=key))
            except NetworkError as e:
                raise InstallError(f"Failed to fetch {path}: {e}") from e
            if not response.ok:
                raise InstallError(f"Failed to fetch {path}: HTTP {response.status}")
            fetched.append((key, response))

        written: List[str] = []
        try:
            namespace = self._registry.open(self.generation.main)
            for key, response in fetched:
                namespace.put(key, CacheRecord.from_response(response))
                written.append(key)
        except StorageError as e:
            self._rollback(written)
            raise InstallError(f"Failed to store precached assets: {e}") from e
        return written

    def _rollback(self, keys: List[str]) -> None:
        for key in keys:
            try:
                self._registry.delete(self.generation.main, key)
            except StorageError as e:
                logger.warning(f"Could not roll back precached {key}: {e}")

    def skip_waiting(self) -> None:
        """Activate as soon as installed instead of waiting."""
        self.skip_waiting_requested = True
        if self.state is LifecycleState.INSTALLED:
            self.activate()

    def activate(self) -> LifecycleState:
        """
        Reclaim old generations and claim clients.

        Only an installed worker activates; after a failed install the
        previous generation's namespaces stay in place.
        """
        if self.state in (LifecycleState.ACTIVATING, LifecycleState.ACTIVATED):
            return self.state
        if self.state is not LifecycleState.INSTALLED:
            logger.warning(f"Refusing to activate from state {self.state.value}")
            return self.state

        self.state = LifecycleState.ACTIVATING
        cleanup = self._background.spawn("activate:reclaim", self._generations.reclaim)
        # Cleanup is scheduled; clients may be claimed before it completes
        self._clients.claim()
        self.claimed = True
        if cleanup is not None:
            cleanup.result()

        self.state = LifecycleState.ACTIVATED
        logger.info("Activated")
        return self.state
