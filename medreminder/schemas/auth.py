"""Session and browser-facing identity schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from medreminder.models.user import CreatedVia


class UserResponse(BaseModel):
    """Public user information response."""

    model_config = {"from_attributes": True}

    uid: str
    discord_id: str | None = None
    timezone: str
    created_via: CreatedVia
    created_at: datetime | None = None


class SignupRequest(BaseModel):
    """Request schema for direct (non-Discord) signup."""

    timezone: str = Field(
        default="UTC",
        min_length=1,
        max_length=64,
        description="IANA timezone name used for reminder scheduling",
    )


class SessionResponse(BaseModel):
    """A user together with a freshly issued session token.

    The token is also set as an httpOnly cookie; it is returned in the body
    for clients that cannot read cookies.
    """

    uid: str
    user: UserResponse
    session_token: str


class LogoutResponse(BaseModel):
    """Response schema for logout."""

    message: str = Field(default="Logout successful")


class AuthorizeUrlResponse(BaseModel):
    """Response for GET /api/auth/discord."""

    url: str


class ErrorResponse(BaseModel):
    """Error response schema."""

    detail: str = Field(..., description="Error message")
