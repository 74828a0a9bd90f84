"""Bot-facing user management schemas."""

from pydantic import BaseModel, Field

from medreminder.models.user import CreatedVia


class UserCreateRequest(BaseModel):
    """Request schema for POST /api/users."""

    discord_id: str | None = Field(default=None, min_length=1, max_length=64)
    timezone: str = Field(default="UTC", min_length=1, max_length=64)
    created_via: CreatedVia = CreatedVia.DISCORD


class UserSettingsUpdate(BaseModel):
    """Partial settings update; omitted fields are left unchanged."""

    timezone: str | None = Field(default=None, min_length=1, max_length=64)


class LinkDiscordRequest(BaseModel):
    discord_id: str = Field(..., min_length=1, max_length=64)


class DeleteUserResponse(BaseModel):
    deleted: bool
    uid: str
