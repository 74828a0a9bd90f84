"""Authentication dependencies.

Supports two caller types:
1. Browser sessions: httpOnly session cookie, or Authorization Bearer token
2. The Discord bot: shared secret in the X-Bot-Key header
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, Response, status

from medreminder.config import Settings
from medreminder.container import ServiceContainer
from medreminder.core.errors import UnauthenticatedError
from medreminder.core.security import keys_match
from medreminder.logging_config import get_logger
from medreminder.models.user import User

logger = get_logger(__name__)


def get_container(request: Request) -> ServiceContainer:
    """Return the service container built at startup."""
    return request.app.state.container


Container = Annotated[ServiceContainer, Depends(get_container)]


def extract_session_token(request: Request) -> str | None:
    """Session token from the cookie, falling back to a Bearer header."""
    cookie_name = request.app.state.container.settings.session_cookie_name
    token = request.cookies.get(cookie_name)
    if token:
        return token

    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return None


def _credentials_exception(
    cookie_name: str, detail: str = "Not authenticated"
) -> HTTPException:
    # Clear the stale cookie along with the 401
    cookie = f"{cookie_name}=; Max-Age=0; Path=/; HttpOnly; SameSite=lax"
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer", "Set-Cookie": cookie},
    )


async def get_current_user(request: Request, container: Container) -> User:
    """Resolve the session credential to a User.

    Raises:
        HTTPException 401: Missing, unknown or expired session, or the
            session's user no longer exists. The cookie is cleared.
    """
    cookie_name = container.settings.session_cookie_name
    try:
        uid = await container.sessions.authenticate(extract_session_token(request))
    except UnauthenticatedError as e:
        logger.info("Session rejected", reason=str(e))
        raise _credentials_exception(cookie_name, str(e))

    user = await container.store.get_user(uid)
    if user is None:
        logger.warning("Session refers to missing user", uid=uid)
        raise _credentials_exception(cookie_name, "Invalid or expired session")

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def require_bot(
    request: Request,
    x_bot_key: Annotated[str | None, Header()] = None,
) -> None:
    """Reject requests that do not carry the configured bot key."""
    if not keys_match(x_bot_key, request.app.state.container.settings.bot_api_key):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning(
            "Bot endpoint called without valid key",
            path=request.url.path,
            client_ip=client_ip,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid bot credentials",
        )


BotAuth = Depends(require_bot)


def set_session_cookie(response: Response, settings: Settings, token: str) -> None:
    """Attach the session token as an httpOnly cookie."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=settings.session_expire_days * 24 * 3600,
        path="/",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
