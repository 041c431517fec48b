"""
Pydantic models for push payloads and displayed notification options.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NotificationPayload(BaseModel):
    """
    A push payload after defaults have been applied.

    Unrecognized fields are ignored. `data` is replaced as a whole when
    the payload supplies it (the merge over defaults is shallow).
    """
    title: str
    body: str
    icon: str
    badge: str
    tag: str
    data: Optional[Dict[str, Any]] = None

    class Config:
        extra = "ignore"


class NotificationAction(BaseModel):
    """A button shown on the notification."""
    action: str
    title: str


class NotificationOptions(BaseModel):
    """Everything passed to the notification sink besides the title."""
    body: str
    icon: str
    badge: Optional[str] = None
    tag: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    vibrate: List[int] = Field(default_factory=list)
    actions: List[NotificationAction] = Field(default_factory=list)
    require_interaction: bool = Field(False, alias="requireInteraction")
    silent: bool = False

    class Config:
        populate_by_name = True


DEFAULT_ACTIONS = [
    NotificationAction(action="open", title="Open App"),
    NotificationAction(action="close", title="Close"),
]
