"""Correlation ID middleware for HTTP requests and WebSocket connections.

Pure ASGI rather than BaseHTTPMiddleware, which cannot wrap WebSocket
scopes and interferes with asyncpg connections.
"""

import re
import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from medreminder.logging_config import correlation_id_ctx, get_logger

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Caller-supplied ids are echoed into logs, so only accept plain tokens
_VALID_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _incoming_correlation_id(scope: Scope) -> str:
    for name, value in scope.get("headers", []):
        if name == b"x-correlation-id":
            candidate = value.decode("latin-1")
            if _VALID_ID.match(candidate):
                return candidate
            break
    return str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Tag every HTTP request and WebSocket connection with a correlation id.

    The id is taken from the X-Correlation-ID request header when present
    and well formed, otherwise generated. It is set in the logging context
    for the lifetime of the request or connection and echoed back on HTTP
    responses.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        kind = scope["type"]
        if kind not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        correlation_id = _incoming_correlation_id(scope)
        token = correlation_id_ctx.set(correlation_id)

        start_time = time.perf_counter()
        outcome: dict[str, int | None] = {"status_code": None, "close_code": None}

        path = scope.get("path", "")
        method = scope.get("method", "WS")
        client = scope.get("client")

        logger.info(
            "Request started" if kind == "http" else "WebSocket opening",
            method=method,
            path=path,
            client_ip=client[0] if client else None,
        )

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                outcome["status_code"] = message.get("status")
                headers = list(message.get("headers", []))
                headers.append(
                    (CORRELATION_ID_HEADER.lower().encode(), correlation_id.encode())
                )
                message = {**message, "headers": headers}
            elif message["type"] == "websocket.close":
                outcome["close_code"] = message.get("code", 1000)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception(
                "Request failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        else:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            if kind == "http":
                logger.info(
                    "Request completed",
                    method=method,
                    path=path,
                    status_code=outcome["status_code"],
                    duration_ms=duration_ms,
                )
            else:
                logger.info(
                    "WebSocket closed",
                    path=path,
                    close_code=outcome["close_code"],
                    duration_ms=duration_ms,
                )
        finally:
            correlation_id_ctx.reset(token)
