"""
Push and notification-click handling.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..clients import ClientRegistry, WindowClient
from ..utils.helpers import safe_json, utc_timestamp
from .center import Notification, NotificationSink
from .models import DEFAULT_ACTIONS, NotificationOptions, NotificationPayload

logger = logging.getLogger("engine.dispatcher")

NOTIFICATION_CLICK = "NOTIFICATION_CLICK"


class NotificationDispatcher:
    """
    Turns push payloads into displayed notifications and routes clicks
    to a client window.
    """

    def __init__(
        self,
        sink: NotificationSink,
        clients: ClientRegistry,
        title: str,
        body: str,
        icon: str,
        badge: str,
        tag: str,
        vibrate: Optional[List[int]] = None,
    ):
        self._sink = sink
        self._clients = clients
        self._defaults = {
            "title": title,
            "body": body,
            "icon": icon,
            "badge": badge,
            "tag": tag,
        }
        self.vibrate = list(vibrate or [100, 50, 100])

    def default_payload(self) -> NotificationPayload:
        """Fresh default payload; the timestamp is taken now."""
        return NotificationPayload(
            **self._defaults,
            data={"url": "/", "timestamp": utc_timestamp()},
        )

    def parse_payload(self, raw: Optional[bytes]) -> NotificationPayload:
        """
        Shallow-merge a JSON push payload over the defaults.

        Missing, malformed or ill-typed payloads yield the defaults.
        """
        defaults = self.default_payload()
        if not raw:
            return defaults

        parsed = safe_json(raw)
        if not isinstance(parsed, dict):
            logger.warning("Push data parsing error: payload is not a JSON object")
            return defaults

        fallback = defaults.model_dump()
        merged = {**fallback, **parsed}
        try:
            return NotificationPayload.model_validate(merged)
        except ValidationError as e:
            # Ill-typed fields fall back one by one; valid ones are kept
            invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
            logger.warning(f"Push data parsing error, using defaults for {sorted(invalid)}")

        for name in invalid:
            merged[name] = fallback.get(name)
        try:
            return NotificationPayload.model_validate(merged)
        except ValidationError as e:
            logger.warning(f"Push data parsing error: {e}")
            return defaults

    def handle_push(self, raw: Optional[bytes]) -> Notification:
        logger.info("Push notification received")
        payload = self.parse_payload(raw)
        options = NotificationOptions(
            body=payload.body,
            icon=payload.icon,
            badge=payload.badge,
            tag=payload.tag,
            data=payload.data,
            vibrate=self.vibrate,
            actions=list(DEFAULT_ACTIONS),
            require_interaction=True,
            silent=False,
        )
        return self._sink.show(payload.title, options)

    def show(self, title: str, body: str, icon: Optional[str] = None) -> Notification:
        """Show a plain informational notification."""
        options = NotificationOptions(body=body, icon=icon or self._defaults["icon"])
        return self._sink.show(title, options)

    def handle_click(
        self,
        notification: Notification,
        action: Optional[str] = None,
    ) -> Optional[WindowClient]:
        """
        Close the notification, then focus or open the target window and
        post a NOTIFICATION_CLICK message to it.

        The "close" action is handled like a plain click. Client failures
        are logged; the resulting client is returned, or None.
        """
        logger.info(f"Notification clicked: {notification.options.tag} [action={action}]")
        notification.close()

        data = notification.data or {}
        target = data.get("url") or "/"

        try:
            client = self._focus_or_open(target)
        except Exception as e:
            logger.warning(f"Could not focus or open window for {target}: {e}")
            return None

        if client is None:
            return None

        message: Dict[str, Any] = {
            "type": NOTIFICATION_CLICK,
            "data": notification.data,
            "timestamp": utc_timestamp(),
        }
        try:
            client.post_message(message)
        except Exception as e:
            logger.warning(f"Could not message client {client.url}: {e}")
        return client

    def _focus_or_open(self, target: str) -> Optional[WindowClient]:
        for client in self._clients.match_all(include_uncontrolled=True):
            if target in client.url:
                return client.focus()
        return self._clients.open_window(target)
