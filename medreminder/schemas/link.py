"""Account linking and connect-token schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from medreminder.schemas.auth import UserResponse


class LinkCodeResponse(BaseModel):
    """Response schema for POST /api/link/code."""

    code: str
    expires_at: datetime


class LinkRedeemRequest(BaseModel):
    """Sent by the bot when a user types ``/link <code>`` in Discord."""

    code: str = Field(..., min_length=1, max_length=32)
    discord_id: str = Field(..., min_length=1, max_length=64)


class LinkRedeemResponse(BaseModel):
    """Response schema for POST /api/link/redeem."""

    uid: str
    user: UserResponse


class ConnectTokenRequest(BaseModel):
    """Request schema for POST /api/connect/token."""

    uid: str = Field(..., min_length=1, max_length=64)


class ConnectTokenResponse(BaseModel):
    """A connect token and the browser URL that redeems it."""

    token: str
    expires_at: datetime
    url: str


class ConnectRedeemRequest(BaseModel):
    """Request schema for POST /api/connect/redeem."""

    token: str = Field(..., min_length=1, max_length=128)
