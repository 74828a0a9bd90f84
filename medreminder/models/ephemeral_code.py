"""Short-lived single-use codes.

Two kinds share one table but never one code space: a link code can
only be redeemed as a link code, a connect token only as a connect token.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medreminder.models.base import Base


class CodeKind(str, enum.Enum):
    """Purpose of an ephemeral code.

    - LINK: short human-typeable code, browser to Discord `/link`
    - CONNECT: long opaque token, Discord `/webconnect` to browser
    """

    LINK = "link"
    CONNECT = "connect"


class EphemeralCode(Base):
    """Temporary code owned by a user.

    Unique per (kind, code). Expires after 10 minutes and is deleted
    when redeemed.
    """

    __tablename__ = "ephemeral_codes"
    __table_args__ = (
        UniqueConstraint("kind", "code", name="uq_ephemeral_codes_kind_code"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    kind: Mapped[CodeKind] = mapped_column(
        Enum(
            CodeKind,
            name="codekind",
            native_enum=False,
            length=16,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )

    code: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    uid: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.uid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    user = relationship("User", back_populates="ephemeral_codes")
