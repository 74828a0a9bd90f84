"""Follow-up reminder timers, driven by the Discord bot."""

from datetime import timedelta

from fastapi import APIRouter, HTTPException, status

from medreminder.core.auth import BotAuth, Container
from medreminder.schemas.auth import ErrorResponse
from medreminder.schemas.reminder import (
    FollowUpCancelResponse,
    FollowUpRequest,
    FollowUpResponse,
)

router = APIRouter(
    prefix="/api/reminders",
    tags=["reminders"],
    dependencies=[BotAuth],
)


@router.post(
    "/follow-up",
    response_model=FollowUpResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def schedule_follow_up(
    body: FollowUpRequest,
    container: Container,
) -> FollowUpResponse:
    """Arm a follow-up for an item the user has not yet marked as taken."""
    if not await container.store.user_exists(body.uid):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    delay = (
        timedelta(minutes=body.delay_minutes) if body.delay_minutes is not None else None
    )
    run_at = container.follow_ups.schedule(
        body.uid,
        body.item_id,
        delay=delay,
        payload=body.payload,
    )
    return FollowUpResponse(uid=body.uid, item_id=body.item_id, run_at=run_at)


@router.delete(
    "/follow-up/{uid}/{item_id}",
    response_model=FollowUpCancelResponse,
    responses={404: {"model": ErrorResponse, "description": "No pending follow-up"}},
)
async def cancel_follow_up(
    uid: str,
    item_id: str,
    container: Container,
) -> FollowUpCancelResponse:
    if not container.follow_ups.cancel(uid, item_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pending follow-up",
        )
    return FollowUpCancelResponse(cancelled=True)
