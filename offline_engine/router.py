"""
Event routing.

Each host event kind maps to one handler. A handler that raises is
reported to the error sink and resolves to None, so no event can take
the host process down.
"""
import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from .cache.background import ErrorSink, log_error

logger = logging.getLogger("engine.router")

Handler = Callable[..., Any]


class EventKind(Enum):
    INSTALL = "install"
    ACTIVATE = "activate"
    FETCH = "fetch"
    PUSH = "push"
    NOTIFICATION_CLICK = "notificationclick"
    SYNC = "sync"
    PERIODIC_SYNC = "periodicsync"
    MESSAGE = "message"


class Router:
    """Maps event kinds to handlers."""

    def __init__(
        self,
        handlers: Optional[Mapping[EventKind, Handler]] = None,
        error_sink: Optional[ErrorSink] = None,
    ):
        self._handlers: Dict[EventKind, Handler] = dict(handlers or {})
        self._error_sink = error_sink or log_error

    def register(self, kind: EventKind, handler: Handler) -> None:
        self._handlers[kind] = handler

    def dispatch(self, kind: EventKind, *args: Any, **kwargs: Any) -> Any:
        handler = self._handlers.get(kind)
        if handler is None:
            logger.debug(f"No handler for {kind.value}")
            return None
        try:
            return handler(*args, **kwargs)
        except Exception as e:
            self._error_sink(kind.value, e)
            return None
