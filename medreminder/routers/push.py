"""Real-time push channel.

Clients open ``/ws?token=<session token>`` (the session cookie is accepted
as a fallback) and receive JSON frames for state changes of their account.
The only meaningful inbound frame is ``{"type": "ping"}``, answered with a
pong. Everything else is ignored.

Close codes:
    1008 - no credential presented
    4401 - credential unknown or expired, or revoked while connected
    4408 - no inbound frame within the idle timeout
    1011 - credential check failed unexpectedly
"""

import asyncio

from fastapi import APIRouter, Query, WebSocket
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from medreminder.container import ServiceContainer
from medreminder.logging_config import get_logger
from medreminder.schemas.push import ControlType, InboundMessage, PushMessage
from medreminder.services.connection_registry import PushConnection

logger = get_logger(__name__)

router = APIRouter(tags=["push"])

CLOSE_AUTH_REQUIRED = 1008
CLOSE_INTERNAL_ERROR = 1011
CLOSE_INVALID_AUTH = 4401
CLOSE_IDLE_TIMEOUT = 4408

# Bound on flushing queued frames once the receive loop has ended
SENDER_DRAIN_TIMEOUT = 5.0


async def _close(websocket: WebSocket, code: int, reason: str) -> None:
    if (
        websocket.application_state == WebSocketState.CONNECTED
        and websocket.client_state == WebSocketState.CONNECTED
    ):
        await websocket.close(code=code, reason=reason)


async def _authenticate(
    websocket: WebSocket, container: ServiceContainer, token: str | None
) -> str | None:
    """Resolve the presented token to a uid, closing the socket on failure."""
    if not token:
        logger.info("Push connection rejected", reason="no_token")
        await _close(websocket, CLOSE_AUTH_REQUIRED, "Authentication required")
        return None

    try:
        uid = await container.sessions.validate_session(token)
    except Exception:
        logger.exception("Session lookup failed during push handshake")
        await _close(websocket, CLOSE_INTERNAL_ERROR, "Internal error")
        return None

    if uid is None:
        logger.info("Push connection rejected", reason="invalid_token")
        await _close(websocket, CLOSE_INVALID_AUTH, "Invalid authentication")
        return None
    return uid


@router.websocket("/ws")
async def push_channel(
    websocket: WebSocket,
    token: str | None = Query(default=None),
) -> None:
    container: ServiceContainer = websocket.app.state.container

    # Accept before authenticating so rejected clients see the close code
    await websocket.accept()

    token = token or websocket.cookies.get(container.settings.session_cookie_name)
    uid = await _authenticate(websocket, container, token)
    if uid is None:
        return

    connection = PushConnection(websocket, session_token=token)
    log = logger.bind(uid=uid, connection_id=connection.connection_id)

    # The acknowledgement is queued ahead of any event the registry delivers
    connection.send(PushMessage.control(ControlType.CONNECTED, uid=uid).to_wire())
    container.registry.register(uid, connection)
    sender = asyncio.create_task(connection.run_sender())
    log.info("Push connection established")

    idle_timeout = container.settings.push_idle_timeout_seconds
    close_code: int | None = None

    try:
        while True:
            try:
                message = await asyncio.wait_for(websocket.receive(), idle_timeout)
            except TimeoutError:
                log.info("Push connection idle; closing", timeout=idle_timeout)
                close_code = CLOSE_IDLE_TIMEOUT
                break

            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                continue

            try:
                inbound = InboundMessage.model_validate_json(text)
            except ValidationError:
                log.debug("Ignoring malformed frame")
                continue

            if inbound.type == "ping":
                connection.send(PushMessage.control(ControlType.PONG, uid=uid).to_wire())
    finally:
        container.registry.unregister(uid, connection)
        connection.close()
        try:
            await asyncio.wait_for(sender, SENDER_DRAIN_TIMEOUT)
        except TimeoutError:
            log.warning("Push sender did not drain in time")

    if close_code is not None:
        await _close(websocket, close_code, "Idle timeout")
