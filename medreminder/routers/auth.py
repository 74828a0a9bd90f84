"""Browser authentication router.

Discord OAuth login, direct signup, logout, and the current-user probe.
All of them speak in opaque server-side session tokens carried in an
httpOnly cookie.
"""

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import RedirectResponse

from medreminder.container import ServiceContainer
from medreminder.core.auth import (
    Container,
    CurrentUser,
    clear_session_cookie,
    extract_session_token,
    set_session_cookie,
)
from medreminder.core.errors import ConflictError
from medreminder.logging_config import get_logger
from medreminder.models.user import CreatedVia, User
from medreminder.schemas.auth import (
    AuthorizeUrlResponse,
    ErrorResponse,
    LogoutResponse,
    SessionResponse,
    SignupRequest,
    UserResponse,
)
from medreminder.services.discord_oauth import (
    DiscordOAuthError,
    build_authorize_url,
    exchange_code,
    fetch_discord_user,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


def _frontend_redirect(container: ServiceContainer, path: str) -> RedirectResponse:
    base = container.settings.frontend_url.rstrip("/")
    return RedirectResponse(url=f"{base}{path}", status_code=status.HTTP_302_FOUND)


async def _find_or_create_discord_user(
    container: ServiceContainer, discord_id: str
) -> User:
    user = await container.store.get_user_by_discord_id(discord_id)
    if user is not None:
        return user
    try:
        return await container.store.create_user(
            CreatedVia.DISCORD, discord_id=discord_id
        )
    except ConflictError:
        # Lost a race with a concurrent login for the same Discord account
        user = await container.store.get_user_by_discord_id(discord_id)
        if user is None:
            raise
        return user


@router.get("/discord", response_model=AuthorizeUrlResponse)
async def discord_authorize_url(container: Container) -> AuthorizeUrlResponse:
    """Return the Discord OAuth authorize URL the browser should open."""
    return AuthorizeUrlResponse(url=build_authorize_url(container.settings))


@router.get("/discord/callback", response_model=None)
async def discord_callback(
    container: Container,
    code: str | None = None,
) -> RedirectResponse:
    """Complete Discord login.

    Exchanges the authorization code, finds or creates the matching user,
    issues a session cookie and redirects to the dashboard. Every failure
    redirects to the frontend root with an ``error`` query parameter.
    """
    if not code:
        logger.warning("Discord callback without code")
        return _frontend_redirect(container, "/?error=no_code")

    try:
        access_token = await exchange_code(container.settings, code)
        discord_user = await fetch_discord_user(access_token)
    except DiscordOAuthError as e:
        logger.warning("Discord OAuth failed", reason=e.reason, error=str(e))
        return _frontend_redirect(container, f"/?error={e.reason}")

    try:
        user = await _find_or_create_discord_user(container, str(discord_user["id"]))
        token = await container.sessions.issue_session(user.uid)
    except Exception:
        logger.exception("Discord login failed after OAuth")
        return _frontend_redirect(container, "/?error=auth_failed")

    response = _frontend_redirect(container, "/dashboard")
    set_session_cookie(response, container.settings, token)
    logger.info("User logged in via Discord", uid=user.uid)
    return response


@router.post(
    "/signup",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    response: Response,
    container: Container,
    body: SignupRequest | None = None,
) -> SessionResponse:
    """Create an account without Discord and start a session for it."""
    body = body or SignupRequest()
    user = await container.store.create_user(CreatedVia.PWA, timezone=body.timezone)
    token = await container.sessions.issue_session(user.uid)
    set_session_cookie(response, container.settings, token)

    return SessionResponse(
        uid=user.uid,
        user=UserResponse.model_validate(user),
        session_token=token,
    )


@router.post(
    "/logout",
    response_model=LogoutResponse,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def logout(
    request: Request,
    response: Response,
    container: Container,
    current_user: CurrentUser,
) -> LogoutResponse:
    """Revoke the current session, close its sockets and clear the cookie."""
    token = extract_session_token(request)
    await container.sessions.revoke_session(token)
    container.registry.disconnect_user(current_user.uid, session_token=token)
    clear_session_cookie(response, container.settings)

    logger.info("User logged out", uid=current_user.uid)
    return LogoutResponse()


@router.get(
    "/me",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def get_me(current_user: CurrentUser) -> UserResponse:
    """Current user. An invalid session answers 401 and clears the cookie."""
    return UserResponse.model_validate(current_user)
