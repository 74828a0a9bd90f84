"""Session token model.

Long-lived opaque credentials; several may be valid for one user at once.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from medreminder.models.base import Base


class SessionToken(Base):
    """A browser or bot session.

    Valid while ``expires_at`` is in the future and the row exists;
    logout deletes the row.
    """

    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
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

    user = relationship("User", back_populates="sessions")
