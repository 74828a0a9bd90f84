"""Bot-facing user management router.

Every endpoint requires the X-Bot-Key header.
"""

from fastapi import APIRouter, HTTPException, status

from medreminder.core.auth import BotAuth, Container
from medreminder.core.errors import ConflictError, NotFoundError
from medreminder.logging_config import get_logger
from medreminder.schemas.auth import ErrorResponse, UserResponse
from medreminder.schemas.push import EventKind, NotificationEvent
from medreminder.schemas.user import (
    DeleteUserResponse,
    LinkDiscordRequest,
    UserCreateRequest,
    UserSettingsUpdate,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    dependencies=[BotAuth],
    responses={401: {"model": ErrorResponse, "description": "Invalid bot credentials"}},
)


def _user_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="User not found",
    )


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Discord ID in use"}},
)
async def create_user(body: UserCreateRequest, container: Container) -> UserResponse:
    try:
        user = await container.store.create_user(
            body.created_via,
            discord_id=body.discord_id,
            timezone=body.timezone,
        )
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return UserResponse.model_validate(user)


@router.get("/discord/{discord_id}", response_model=UserResponse)
async def get_user_by_discord_id(discord_id: str, container: Container) -> UserResponse:
    user = await container.store.get_user_by_discord_id(discord_id)
    if user is None:
        raise _user_not_found()
    return UserResponse.model_validate(user)


@router.get("/{uid}", response_model=UserResponse)
async def get_user(uid: str, container: Container) -> UserResponse:
    user = await container.store.get_user(uid)
    if user is None:
        raise _user_not_found()
    return UserResponse.model_validate(user)


@router.patch("/{uid}/settings", response_model=UserResponse)
async def update_settings(
    uid: str,
    body: UserSettingsUpdate,
    container: Container,
) -> UserResponse:
    """Update user settings and tell the user's open clients to refresh."""
    user = await container.store.update_user(uid, timezone=body.timezone)
    if user is None:
        raise _user_not_found()

    container.registry.notify(
        uid,
        NotificationEvent(
            kind=EventKind.USER_UPDATED,
            payload=body.model_dump(exclude_none=True),
        ),
    )
    return UserResponse.model_validate(user)


@router.post(
    "/{uid}/link-discord",
    response_model=UserResponse,
    responses={409: {"model": ErrorResponse, "description": "Discord ID in use"}},
)
async def link_discord(
    uid: str,
    body: LinkDiscordRequest,
    container: Container,
) -> UserResponse:
    try:
        user = await container.store.link_discord(uid, body.discord_id)
    except NotFoundError:
        raise _user_not_found()
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    container.registry.notify(
        uid,
        NotificationEvent(
            kind=EventKind.USER_UPDATED,
            payload={"discord_linked": True},
        ),
    )
    return UserResponse.model_validate(user)


@router.delete("/{uid}/link-discord", response_model=UserResponse)
async def unlink_discord(uid: str, container: Container) -> UserResponse:
    if not await container.store.unlink_discord(uid):
        raise _user_not_found()

    container.registry.notify(
        uid,
        NotificationEvent(
            kind=EventKind.USER_UPDATED,
            payload={"discord_linked": False},
        ),
    )
    user = await container.store.get_user(uid)
    if user is None:
        raise _user_not_found()
    return UserResponse.model_validate(user)


@router.delete("/{uid}", response_model=DeleteUserResponse)
async def delete_user(uid: str, container: Container) -> DeleteUserResponse:
    """Delete a user. Sessions, outstanding codes and open sockets go with it."""
    if not await container.store.delete_user(uid):
        raise _user_not_found()
    container.follow_ups.cancel_all(uid)
    container.registry.disconnect_user(uid, reason="Account deleted")
    return DeleteUserResponse(deleted=True, uid=uid)
