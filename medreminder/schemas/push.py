"""Push channel event and wire message schemas."""

import enum
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class EventKind(str, enum.Enum):
    """State changes announced to a user's live connections.

    Clients treat every event as an invalidation hint and re-fetch.
    """

    MEDICATION_ADDED = "medication_added"
    MEDICATION_UPDATED = "medication_updated"
    MEDICATION_DELETED = "medication_deleted"
    USER_UPDATED = "user_updated"
    REMINDER_FOLLOW_UP = "reminder_follow_up"
    SYSTEM_NOTICE = "system_notice"


class ControlType(str, enum.Enum):
    """Gateway-originated message types that are not state events."""

    CONNECTED = "connected"
    PONG = "pong"


class NotificationEvent(BaseModel):
    """Event handed to the connection registry by a mutation trigger."""

    kind: EventKind
    uid: str | None = None
    payload: dict[str, Any] | None = None


class PushMessage(BaseModel):
    """JSON frame sent over the push channel.

    Unset fields are omitted on the wire.
    """

    type: str
    uid: str | None = None
    data: dict[str, Any] | None = None
    timestamp: str | None = Field(
        default_factory=lambda: datetime.now(UTC).isoformat()
    )

    @classmethod
    def from_event(cls, event: NotificationEvent, uid: str | None = None) -> "PushMessage":
        return cls(
            type=event.kind.value,
            uid=event.uid or uid,
            data=event.payload,
        )

    @classmethod
    def control(cls, control_type: ControlType, uid: str | None = None) -> "PushMessage":
        return cls(type=control_type.value, uid=uid)

    def to_wire(self) -> str:
        return self.model_dump_json(exclude_none=True)


class InboundMessage(BaseModel):
    """Client-to-server frame; only ``{"type": "ping"}`` has meaning."""

    model_config = {"extra": "ignore"}

    type: str


class NotifyRequest(BaseModel):
    """Request body for POST /api/notify/{uid}."""

    kind: EventKind
    payload: dict[str, Any] | None = None


class NotifyResponse(BaseModel):
    """Response for POST /api/notify/{uid}."""

    delivered: int
