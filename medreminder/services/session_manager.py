"""Session token issuance, validation and revocation.

Expired rows are swept opportunistically before every issue and validate
call. There is no background timer: the sweep bounds the number of stale
rows, and validation additionally filters on expiry, so an expired token
is never accepted whether or not it has been swept yet.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from medreminder.core.errors import NotFoundError, UnauthenticatedError
from medreminder.core.security import generate_session_token
from medreminder.logging_config import get_logger, mask_token
from medreminder.services.credential_store import CredentialStore

logger = get_logger(__name__)

DEFAULT_SESSION_LIFETIME = timedelta(days=30)


def utcnow() -> datetime:
    return datetime.now(UTC)


class SessionManager:
    """Issues and checks long-lived session tokens.

    Args:
        store: Credential store holding the sessions table.
        lifetime: Fixed horizon from issuance to expiry.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: CredentialStore,
        lifetime: timedelta = DEFAULT_SESSION_LIFETIME,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._lifetime = lifetime
        self._clock = clock

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    async def _sweep(self, now: datetime) -> None:
        swept = await self._store.sweep_sessions(now)
        if swept:
            logger.debug("Expired sessions swept", count=swept)

    async def issue_session(self, uid: str) -> str:
        """Create a new session for ``uid`` and return its token.

        Raises:
            NotFoundError: If the user does not exist.
        """
        now = self._clock()
        await self._sweep(now)

        if not await self._store.user_exists(uid):
            raise NotFoundError("User not found")

        token = generate_session_token()
        expires_at = now + self._lifetime
        await self._store.insert_session(token, uid, expires_at)

        logger.info(
            "Session issued",
            uid=uid,
            token=mask_token(token),
            expires_at=expires_at.isoformat(),
        )
        return token

    async def validate_session(self, token: str | None) -> str | None:
        """Return the owning uid, or None for a missing, unknown or expired token."""
        if not token:
            return None

        now = self._clock()
        await self._sweep(now)
        return await self._store.find_session_uid(token, now)

    async def authenticate(self, token: str | None) -> str:
        """Like validate_session, but raises instead of returning None.

        Raises:
            UnauthenticatedError: No token, or an unknown or expired one.
        """
        if not token:
            raise UnauthenticatedError("Not authenticated")

        uid = await self.validate_session(token)
        if uid is None:
            raise UnauthenticatedError("Invalid or expired session")
        return uid

    async def revoke_session(self, token: str | None) -> bool:
        """Delete a session. Returns whether it existed; repeat calls return False."""
        if not token:
            return False

        revoked = await self._store.delete_session(token)
        if revoked:
            logger.info("Session revoked", token=mask_token(token))
        return revoked

    async def revoke_all(self, uid: str) -> int:
        """Delete every session belonging to ``uid``."""
        count = await self._store.delete_sessions_for(uid)
        if count:
            logger.info("All sessions revoked", uid=uid, count=count)
        return count
