"""
Client windows the engine can focus, open and message.
"""
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .exceptions import ClientError

logger = logging.getLogger("engine.clients")


@dataclass
class WindowClient:
    """An open page."""
    id: int
    url: str
    controlled: bool = False
    focused: bool = False
    messages: List[Dict[str, Any]] = field(default_factory=list)

    def focus(self) -> "WindowClient":
        self.focused = True
        return self

    def post_message(self, message: Dict[str, Any]) -> None:
        self.messages.append(message)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.url,
            "controlled": self.controlled,
            "focused": self.focused,
            "messages": list(self.messages),
        }


class ClientRegistry(Protocol):
    """Host capability for enumerating and opening windows."""

    def match_all(self, include_uncontrolled: bool = False) -> List[WindowClient]:
        ...

    def open_window(self, url: str) -> Optional[WindowClient]:
        ...

    def claim(self) -> None:
        ...


class WindowClients:
    """
    In-memory client registry.

    Windows opened by the engine start controlled; windows registered by
    the host start uncontrolled until the engine claims them.
    """

    def __init__(self, allow_open: bool = True):
        self.allow_open = allow_open
        self._clients: Dict[int, WindowClient] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def add(self, url: str, controlled: bool = False) -> WindowClient:
        with self._lock:
            client = WindowClient(id=next(self._ids), url=url, controlled=controlled)
            self._clients[client.id] = client
            return client

    def get(self, client_id: int) -> Optional[WindowClient]:
        with self._lock:
            return self._clients.get(client_id)

    def match_all(self, include_uncontrolled: bool = False) -> List[WindowClient]:
        with self._lock:
            clients = list(self._clients.values())
        if include_uncontrolled:
            return clients
        return [c for c in clients if c.controlled]

    def open_window(self, url: str) -> Optional[WindowClient]:
        if not self.allow_open:
            raise ClientError(f"Opening windows is not allowed: {url}")
        client = self.add(url, controlled=True)
        logger.info(f"Opened window: {url}")
        return client.focus()

    def claim(self) -> None:
        with self._lock:
            for client in self._clients.values():
                client.controlled = True
        logger.info("Claimed all clients")
