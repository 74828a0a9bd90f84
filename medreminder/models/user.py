"""User model: the identity anchor for sessions, codes and push connections."""

import enum

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medreminder.models.base import Base, TimestampMixin


class CreatedVia(str, enum.Enum):
    """Channel through which the account was first created.

    - DISCORD: first seen through Discord OAuth or the Discord bot
    - PWA: direct signup from the browser app
    """

    DISCORD = "discord"
    PWA = "pwa"


class User(Base, TimestampMixin):
    """User account model.

    Attributes:
        uid: Opaque user identifier (``uid_`` + 16 hex characters)
        discord_id: Linked Discord account id, unique when present
        timezone: IANA timezone name used by reminder scheduling
        created_via: Channel the account was created through
    """

    __tablename__ = "users"

    uid: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    discord_id: Mapped[str | None] = mapped_column(
        String(32),
        unique=True,
        nullable=True,
        index=True,
    )
    timezone: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="UTC",
        server_default="UTC",
    )
    created_via: Mapped[CreatedVia] = mapped_column(
        Enum(
            CreatedVia,
            name="createdvia",
            native_enum=False,
            length=20,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    # Relationships
    sessions = relationship(
        "SessionToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    ephemeral_codes = relationship(
        "EphemeralCode",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.uid} ({self.created_via.value})>"
