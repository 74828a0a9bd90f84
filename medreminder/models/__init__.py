# Database Models
from medreminder.models.base import Base, TimestampMixin
from medreminder.models.ephemeral_code import CodeKind, EphemeralCode
from medreminder.models.session import SessionToken
from medreminder.models.user import CreatedVia, User

__all__ = [
    "Base",
    "CodeKind",
    "CreatedVia",
    "EphemeralCode",
    "SessionToken",
    "TimestampMixin",
    "User",
]
