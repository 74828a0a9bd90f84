"""Cross-channel account linking.

Two single-use handshakes join a browser session and a Discord account:

- Link code: the logged-in browser asks for a short code, the user types
  ``/link <code>`` in Discord, and the bot redeems it with the Discord id.
- Connect token: the bot asks for a token on behalf of a known user and
  sends them a URL; opening it in a browser redeems the token for a session.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, HTTPException, Request, Response, status

from medreminder.core.auth import BotAuth, Container, CurrentUser, set_session_cookie
from medreminder.core.errors import CodeGenerationError, ConflictError, NotFoundError
from medreminder.logging_config import get_logger
from medreminder.middleware.rate_limit import REDEEM_LIMIT, limiter
from medreminder.schemas.auth import ErrorResponse, SessionResponse, UserResponse
from medreminder.schemas.link import (
    ConnectRedeemRequest,
    ConnectTokenRequest,
    ConnectTokenResponse,
    LinkCodeResponse,
    LinkRedeemRequest,
    LinkRedeemResponse,
)
from medreminder.schemas.push import EventKind, NotificationEvent

logger = get_logger(__name__)

router = APIRouter(tags=["link"])

_INVALID_CODE = "Invalid or expired code"


def _generation_failed() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Could not generate a code, please retry",
    )


@router.post(
    "/api/link/code",
    response_model=LinkCodeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def create_link_code(
    current_user: CurrentUser,
    container: Container,
) -> LinkCodeResponse:
    """Issue a link code for the logged-in user.

    Any earlier unredeemed code of this user stops working.
    """
    try:
        issued = await container.link_codes.issue_code(current_user.uid)
    except CodeGenerationError:
        raise _generation_failed()

    return LinkCodeResponse(code=issued.code, expires_at=issued.expires_at)


@router.post(
    "/api/link/redeem",
    response_model=LinkRedeemResponse,
    dependencies=[BotAuth],
    responses={
        404: {"model": ErrorResponse, "description": _INVALID_CODE},
        409: {"model": ErrorResponse, "description": "Discord ID in use"},
    },
)
@limiter.limit(REDEEM_LIMIT)
async def redeem_link_code(
    request: Request,
    body: LinkRedeemRequest,
    container: Container,
) -> LinkRedeemResponse:
    """Attach the Discord account to the user who issued the code."""
    uid = await container.link_codes.validate_code(body.code)
    if uid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_INVALID_CODE)

    try:
        user = await container.store.link_discord(uid, body.discord_id)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_INVALID_CODE)
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    container.registry.notify(
        uid,
        NotificationEvent(
            kind=EventKind.USER_UPDATED,
            payload={"discord_linked": True},
        ),
    )
    logger.info("Discord account linked via code", uid=uid)
    return LinkRedeemResponse(uid=uid, user=UserResponse.model_validate(user))


@router.post(
    "/api/connect/token",
    response_model=ConnectTokenResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[BotAuth],
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def create_connect_token(
    body: ConnectTokenRequest,
    container: Container,
) -> ConnectTokenResponse:
    """Issue a connect token and the browser URL that redeems it."""
    try:
        issued = await container.connect_tokens.issue_code(body.uid)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except CodeGenerationError:
        raise _generation_failed()

    base = container.settings.frontend_url.rstrip("/")
    url = f"{base}/connect?{urlencode({'token': issued.code})}"
    return ConnectTokenResponse(token=issued.code, expires_at=issued.expires_at, url=url)


@router.post(
    "/api/connect/redeem",
    response_model=SessionResponse,
    responses={404: {"model": ErrorResponse, "description": _INVALID_CODE}},
)
@limiter.limit(REDEEM_LIMIT)
async def redeem_connect_token(
    request: Request,
    response: Response,
    body: ConnectRedeemRequest,
    container: Container,
) -> SessionResponse:
    """Trade a connect token for a browser session."""
    uid = await container.connect_tokens.validate_code(body.token)
    if uid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_INVALID_CODE)

    user = await container.store.get_user(uid)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_INVALID_CODE)

    token = await container.sessions.issue_session(uid)
    set_session_cookie(response, container.settings, token)

    logger.info("Browser connected via token", uid=uid)
    return SessionResponse(
        uid=uid,
        user=UserResponse.model_validate(user),
        session_token=token,
    )
