"""Follow-up reminder schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class FollowUpRequest(BaseModel):
    """Arm a follow-up for one reminder item.

    Scheduling the same (uid, item_id) again replaces the pending timer.
    """

    uid: str = Field(..., min_length=1, max_length=64)
    item_id: str = Field(..., min_length=1, max_length=128)
    delay_minutes: float | None = Field(default=None, gt=0, le=24 * 60)
    payload: dict[str, Any] | None = None


class FollowUpResponse(BaseModel):
    uid: str
    item_id: str
    run_at: datetime


class FollowUpCancelResponse(BaseModel):
    cancelled: bool
