# Business Logic Services
from medreminder.services.code_issuer import CodeIssuer, IssuedCode
from medreminder.services.connection_registry import (
    Connection,
    ConnectionRegistry,
    PushConnection,
)
from medreminder.services.credential_store import CredentialStore
from medreminder.services.followup_scheduler import FollowUpScheduler
from medreminder.services.session_manager import SessionManager

__all__ = [
    "CodeIssuer",
    "Connection",
    "ConnectionRegistry",
    "CredentialStore",
    "FollowUpScheduler",
    "IssuedCode",
    "PushConnection",
    "SessionManager",
]
