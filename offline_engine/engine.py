"""
Engine assembly.

OfflineEngine owns the namespace registry and wires every component to
the host capabilities it was given: transport, notification sink and
client registry. Host events enter through the router.
"""
import logging
from typing import Any, Dict, Optional

from config.settings import Settings, settings as default_settings

from .cache.background import BackgroundRunner, ErrorSink
from .cache.core import CacheGeneration
from .cache.generations import GenerationManager
from .cache.sql_store import SqlNamespaceRegistry
from .cache.store import MemoryNamespaceRegistry, NamespaceRegistry
from .classifier import RequestClass, classify
from .clients import ClientRegistry, WindowClient, WindowClients
from .fetch import Request, RequestsTransport, Response, Transport
from .lifecycle import Lifecycle, LifecycleState
from .messages import MessageHandler, ReplyPort
from .notifications import Notification, NotificationCenter, NotificationDispatcher, NotificationSink
from .router import EventKind, Router
from .strategies import StrategyExecutor
from .tasks import DeferredTaskCoordinator, TaskOutcome

logger = logging.getLogger("engine")


def build_registry(config: Settings) -> NamespaceRegistry:
    """Namespace registry for the configured backend."""
    if config.store_backend == "memory":
        return MemoryNamespaceRegistry()
    if config.store_backend == "sql":
        return SqlNamespaceRegistry(config.store_url)
    raise ValueError(f"Unknown store backend: {config.store_backend}")


class OfflineEngine:
    """
    Request interception and cache engine.

    Usage:
        engine = OfflineEngine(settings, transport)
        engine.install()
        response = engine.fetch(Request(url="/style.css"))
        if response is None:
            ...  # bypassed: forward the request yourself
    """

    def __init__(
        self,
        config: Settings,
        transport: Transport,
        registry: Optional[NamespaceRegistry] = None,
        notifications: Optional[NotificationSink] = None,
        clients: Optional[ClientRegistry] = None,
        error_sink: Optional[ErrorSink] = None,
    ):
        self.settings = config
        self.transport = transport
        self.generation = CacheGeneration.from_mapping(config.generation())
        self.registry = registry if registry is not None else build_registry(config)
        self.notifications = notifications if notifications is not None else NotificationCenter()
        self.clients = clients if clients is not None else WindowClients()
        self.background = BackgroundRunner(
            max_workers=config.revalidation_workers,
            error_sink=error_sink,
        )

        self.executor = StrategyExecutor(
            registry=self.registry,
            transport=transport,
            generation=self.generation,
            background=self.background,
            origin=config.origin,
            offline_url=config.offline_url,
            root_url=config.root_url,
            offline_marker_header=config.offline_marker_header,
            offline_message=config.offline_message,
            unavailable_status=config.unavailable_status,
        )
        self.generations = GenerationManager(self.registry, self.generation)
        self.dispatcher = NotificationDispatcher(
            sink=self.notifications,
            clients=self.clients,
            title=config.notification_title,
            body=config.notification_body,
            icon=config.notification_icon,
            badge=config.notification_badge,
            tag=config.notification_tag,
            vibrate=config.vibrate_pattern,
        )
        self.tasks = DeferredTaskCoordinator(
            registry=self.registry,
            transport=transport,
            generation=self.generation,
            dispatcher=self.dispatcher,
            origin=config.origin,
        )
        self.lifecycle = Lifecycle(
            registry=self.registry,
            transport=transport,
            generation=self.generation,
            generations=self.generations,
            clients=self.clients,
            background=self.background,
            origin=config.origin,
            precache_assets=config.precache_assets,
        )
        self.messages = MessageHandler(self.registry, self.generation, self.lifecycle)

        self.router = Router(
            {
                EventKind.INSTALL: self.lifecycle.install,
                EventKind.ACTIVATE: self.lifecycle.activate,
                EventKind.FETCH: self._handle_fetch,
                EventKind.PUSH: self.dispatcher.handle_push,
                EventKind.NOTIFICATION_CLICK: self.dispatcher.handle_click,
                EventKind.SYNC: self.tasks.run_sync,
                EventKind.PERIODIC_SYNC: self.tasks.run_periodic,
                EventKind.MESSAGE: self.messages.handle,
            },
            error_sink=error_sink,
        )
        self._precached_paths = frozenset(config.precache_assets)
        logger.info(f"{config.engine_name} {config.engine_version} loaded")

    def classify(self, request: Request) -> RequestClass:
        return classify(request, self.settings.api_prefixes, self._precached_paths)

    def _handle_fetch(self, request: Request) -> Optional[Response]:
        return self.executor.execute(request, self.classify(request))

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def install(self) -> Optional[LifecycleState]:
        return self.router.dispatch(EventKind.INSTALL)

    def activate(self) -> Optional[LifecycleState]:
        return self.router.dispatch(EventKind.ACTIVATE)

    def fetch(self, request: Request) -> Optional[Response]:
        """Response for an intercepted request, or None to let it through."""
        return self.router.dispatch(EventKind.FETCH, request)

    def push(self, data: Optional[bytes]) -> Optional[Notification]:
        return self.router.dispatch(EventKind.PUSH, data)

    def notification_click(
        self,
        notification: Notification,
        action: Optional[str] = None,
    ) -> Optional[WindowClient]:
        return self.router.dispatch(EventKind.NOTIFICATION_CLICK, notification, action)

    def sync(self, tag: str) -> Optional[TaskOutcome]:
        return self.router.dispatch(EventKind.SYNC, tag)

    def periodic_sync(self, tag: str) -> Optional[TaskOutcome]:
        return self.router.dispatch(EventKind.PERIODIC_SYNC, tag)

    def message(self, data: Any, reply: Optional[ReplyPort] = None) -> Optional[Dict[str, Any]]:
        return self.router.dispatch(EventKind.MESSAGE, data, reply)

    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return {
            "state": self.lifecycle.state.value,
            "namespaces": self.registry.sizes(),
            "strategies": self.executor.get_stats(),
        }

    def close(self) -> None:
        self.background.shutdown()


# Global engine instance
_engine: Optional[OfflineEngine] = None


def get_engine() -> OfflineEngine:
    """Get or create the global engine, talking to the configured origin."""
    global _engine
    if _engine is None:
        transport = RequestsTransport(
            base_url=default_settings.origin,
            retry_attempts=default_settings.transport_retry_attempts,
            timeout=default_settings.transport_timeout,
        )
        _engine = OfflineEngine(default_settings, transport)
    return _engine
