"""
Messages posted to the engine by client pages.

Replies travel over the reply port that came with the message.
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ValidationError

from .cache.core import CacheGeneration
from .cache.store import NamespaceRegistry
from .exceptions import StorageError
from .lifecycle import Lifecycle

logger = logging.getLogger("engine.messages")


class MessageType(str, Enum):
    SKIP_WAITING = "SKIP_WAITING"
    CLEAR_CACHE = "CLEAR_CACHE"
    GET_CACHE_SIZE = "GET_CACHE_SIZE"


class ClientMessage(BaseModel):
    """Inbound message; only `type` is interpreted."""
    type: str

    class Config:
        extra = "allow"


class ReplyPort(Protocol):
    def post_message(self, message: Dict[str, Any]) -> None:
        ...


class MessageChannel:
    """Reply port that collects replies."""

    def __init__(self):
        self.replies: List[Dict[str, Any]] = []

    def post_message(self, message: Dict[str, Any]) -> None:
        self.replies.append(message)


class MessageHandler:
    """Handles SKIP_WAITING, CLEAR_CACHE and GET_CACHE_SIZE."""

    def __init__(
        self,
        registry: NamespaceRegistry,
        generation: CacheGeneration,
        lifecycle: Lifecycle,
    ):
        self._registry = registry
        self._lifecycle = lifecycle
        self.generation = generation

    def handle(self, data: Any, reply: Optional[ReplyPort] = None) -> Optional[Dict[str, Any]]:
        """
        Handle one message.

        Returns the reply that was posted, or None for messages without a
        reply (SKIP_WAITING, unknown or malformed messages).
        """
        logger.info(f"Message received: {data}")
        try:
            message = ClientMessage.model_validate(data)
        except ValidationError:
            logger.debug("Ignoring message without a type")
            return None

        if message.type == MessageType.SKIP_WAITING:
            self._lifecycle.skip_waiting()
            return None
        if message.type == MessageType.CLEAR_CACHE:
            return self._reply(reply, self.clear_cache())
        if message.type == MessageType.GET_CACHE_SIZE:
            return self._reply(reply, self.cache_size())

        logger.debug(f"Ignoring unknown message type: {message.type}")
        return None

    def clear_cache(self) -> Dict[str, Any]:
        try:
            self._registry.delete_namespace(self.generation.main)
        except StorageError as e:
            logger.warning(f"Could not clear {self.generation.main}: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True}

    def cache_size(self) -> Dict[str, Any]:
        try:
            size = len(self._registry.open(self.generation.main).keys())
        except StorageError as e:
            logger.warning(f"Could not count {self.generation.main}: {e}")
            return {"size": 0, "error": str(e)}
        return {"size": size}

    def _reply(self, port: Optional[ReplyPort], message: Dict[str, Any]) -> Dict[str, Any]:
        if port is None:
            logger.warning(f"No reply port for message reply: {message}")
            return message
        port.post_message(message)
        return message
