"""In-memory registry of live push connections, keyed by user.

Nothing here is persisted: after a restart the registry is empty and
clients reconnect on their own backoff. A registration lives exactly as
long as its connection; the gateway removes it on close or error, and an
emptied per-user set is dropped at once.
"""

import asyncio
import threading
import uuid
from datetime import UTC, datetime
from typing import Protocol

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from medreminder.logging_config import get_logger
from medreminder.schemas.push import NotificationEvent, PushMessage

logger = get_logger(__name__)

# Close code for sockets whose account or session was revoked server-side
CLOSE_REVOKED = 4401


class Connection(Protocol):
    """What the registry needs from a connection handle."""

    @property
    def is_open(self) -> bool: ...

    def send(self, message: str) -> None: ...

    def close(self, code: int | None = None, reason: str = "") -> None: ...


class PushConnection:
    """A WebSocket wrapped with an outbound FIFO and its own sender task.

    ``send`` never blocks: it enqueues, and ``run_sender`` drains the queue
    in order. Safe to call from threads other than the event loop's.
    """

    def __init__(self, websocket: WebSocket, session_token: str | None = None):
        self.websocket = websocket
        self.session_token = session_token
        self.connection_id = uuid.uuid4().hex[:12]
        self.opened_at = datetime.now(UTC)
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._closed = False
        self._close_code: int | None = None
        self._close_reason = ""

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def send(self, message: str) -> None:
        if self._closed:
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, message)

    def close(self, code: int | None = None, reason: str = "") -> None:
        """Stop accepting messages and let the sender task finish.

        With ``code``, the sender closes the socket once the queue drains.
        """
        if self._closed:
            return
        self._closed = True
        self._close_code = code
        self._close_reason = reason
        self._loop.call_soon_threadsafe(self._queue.put_nowait, None)

    async def run_sender(self) -> None:
        while True:
            message = await self._queue.get()
            if message is None:
                if self._close_code is not None:
                    await self._close_socket()
                return
            try:
                await self.websocket.send_text(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug(
                    "Push send failed; connection closing",
                    connection_id=self.connection_id,
                    error=str(e),
                )
                self._closed = True
                return

    async def _close_socket(self) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.close(code=self._close_code, reason=self._close_reason)
        except (RuntimeError, OSError) as e:
            logger.debug(
                "Push close failed", connection_id=self.connection_id, error=str(e)
            )


class ConnectionRegistry:
    """Maps uid -> set of live connections and fans events out to them.

    Guarded by a lock because register/unregister/notify may be called
    from independent connection tasks and from FastAPI's threadpool.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[Connection]] = {}
        self._lock = threading.Lock()

    def register(self, uid: str, connection: Connection) -> None:
        with self._lock:
            self._connections.setdefault(uid, set()).add(connection)
            count = len(self._connections[uid])
        logger.info("Push connection registered", uid=uid, user_connections=count)

    def unregister(self, uid: str, connection: Connection) -> bool:
        """Remove a connection; returns False if it was not registered."""
        with self._lock:
            connections = self._connections.get(uid)
            if not connections or connection not in connections:
                return False
            connections.discard(connection)
            if not connections:
                del self._connections[uid]
            remaining = len(connections)
        logger.info("Push connection unregistered", uid=uid, user_connections=remaining)
        return True

    def disconnect_user(
        self,
        uid: str,
        session_token: str | None = None,
        code: int = CLOSE_REVOKED,
        reason: str = "Session revoked",
    ) -> int:
        """Drop and close the connections of ``uid``.

        With ``session_token``, only connections opened with that token
        are affected. Returns how many were closed.
        """
        with self._lock:
            connections = self._connections.get(uid)
            if not connections:
                return 0
            targets = [
                c
                for c in connections
                if session_token is None
                or getattr(c, "session_token", None) == session_token
            ]
            connections.difference_update(targets)
            if not connections:
                del self._connections[uid]

        for connection in targets:
            connection.close(code, reason)

        if targets:
            logger.info("Push connections revoked", uid=uid, count=len(targets))
        return len(targets)

    def _deliver(self, targets: list[Connection], message: str) -> int:
        delivered = 0
        for connection in targets:
            if not connection.is_open:
                continue
            try:
                connection.send(message)
            except Exception:
                logger.exception("Push delivery failed")
                continue
            delivered += 1
        return delivered

    def notify(self, uid: str, event: NotificationEvent) -> int:
        """Deliver ``event`` to every open connection of ``uid``.

        Best-effort: a user with no connections is a silent no-op. Returns
        the number of connections the message was handed to.
        """
        with self._lock:
            targets = list(self._connections.get(uid, ()))

        if not targets:
            return 0

        message = PushMessage.from_event(event, uid=uid).to_wire()
        delivered = self._deliver(targets, message)

        logger.debug(
            "User notified",
            uid=uid,
            event=event.kind.value,
            delivered=delivered,
        )
        return delivered

    def broadcast(self, event: NotificationEvent) -> int:
        """Deliver ``event`` to every registered connection of every user."""
        with self._lock:
            targets = [c for conns in self._connections.values() for c in conns]

        if not targets:
            return 0

        message = PushMessage.from_event(event).to_wire()
        delivered = self._deliver(targets, message)
        logger.info("Broadcast sent", event=event.kind.value, delivered=delivered)
        return delivered

    def connection_count(self, uid: str) -> int:
        with self._lock:
            return len(self._connections.get(uid, ()))

    def total_connections(self) -> int:
        with self._lock:
            return sum(len(conns) for conns in self._connections.values())

    def user_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, uid: object) -> bool:
        with self._lock:
            return uid in self._connections
