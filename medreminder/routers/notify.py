"""Mutation trigger hook.

Medication CRUD lives outside this service; whoever performs a mutation
posts the event here and it is fanned out to the user's open clients.
"""

from fastapi import APIRouter

from medreminder.core.auth import BotAuth, Container
from medreminder.schemas.push import NotificationEvent, NotifyRequest, NotifyResponse

router = APIRouter(prefix="/api/notify", tags=["push"], dependencies=[BotAuth])


@router.post("/{uid}", response_model=NotifyResponse)
async def notify_user(
    uid: str,
    body: NotifyRequest,
    container: Container,
) -> NotifyResponse:
    """Best effort: a user with no open connections is not an error."""
    delivered = container.registry.notify(
        uid,
        NotificationEvent(kind=body.kind, uid=uid, payload=body.payload),
    )
    return NotifyResponse(delivered=delivered)


@router.post("", response_model=NotifyResponse)
async def broadcast(body: NotifyRequest, container: Container) -> NotifyResponse:
    """Send an event to every open connection of every user."""
    delivered = container.registry.broadcast(
        NotificationEvent(kind=body.kind, payload=body.payload)
    )
    return NotifyResponse(delivered=delivered)
