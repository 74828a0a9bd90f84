"""Credential store: persistence for users, sessions and ephemeral codes.

The store is the single writer of record for tokens and codes. Each
method runs in its own short transaction; nothing here caches validity.
Expiry comparisons are done in SQL so that a row's state is decided by
the database at the moment of the statement.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from medreminder.core.errors import ConflictError, NotFoundError
from medreminder.core.security import generate_uid
from medreminder.logging_config import get_logger
from medreminder.models.ephemeral_code import CodeKind, EphemeralCode
from medreminder.models.session import SessionToken
from medreminder.models.user import CreatedVia, User

logger = get_logger(__name__)


class CredentialStore:
    """Async SQLAlchemy persistence for the credential tables."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, uid: str) -> User | None:
        async with self._session_maker() as db:
            result = await db.execute(select(User).where(User.uid == uid))
            return result.scalar_one_or_none()

    async def get_user_by_discord_id(self, discord_id: str) -> User | None:
        async with self._session_maker() as db:
            result = await db.execute(
                select(User).where(User.discord_id == discord_id)
            )
            return result.scalar_one_or_none()

    async def user_exists(self, uid: str) -> bool:
        async with self._session_maker() as db:
            result = await db.execute(select(User.uid).where(User.uid == uid))
            return result.scalar_one_or_none() is not None

    async def create_user(
        self,
        created_via: CreatedVia,
        discord_id: str | None = None,
        timezone: str = "UTC",
        uid: str | None = None,
    ) -> User:
        """Create a user. A uid is generated unless one is supplied.

        Raises:
            ConflictError: If ``discord_id`` already belongs to another user.
        """
        user = User(
            uid=uid or generate_uid(),
            discord_id=discord_id,
            timezone=timezone,
            created_via=created_via,
        )

        async with self._session_maker() as db:
            if discord_id is not None:
                existing = await db.execute(
                    select(User.uid).where(User.discord_id == discord_id)
                )
                if existing.scalar_one_or_none() is not None:
                    raise ConflictError("Discord ID already registered")

            db.add(user)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise ConflictError("Discord ID already registered")
            await db.refresh(user)

        logger.info(
            "User created",
            uid=user.uid,
            created_via=created_via.value,
        )
        return user

    async def update_user(self, uid: str, timezone: str | None = None) -> User | None:
        """Apply settings changes; returns None when the user does not exist."""
        async with self._session_maker() as db:
            result = await db.execute(select(User).where(User.uid == uid))
            user = result.scalar_one_or_none()
            if user is None:
                return None

            if timezone is not None:
                user.timezone = timezone

            await db.commit()
            await db.refresh(user)
            return user

    async def link_discord(self, uid: str, discord_id: str) -> User:
        """Attach a Discord account to a user.

        Re-linking the same id to the same user is a no-op.

        Raises:
            NotFoundError: If the user does not exist.
            ConflictError: If the Discord id is linked to a different user.
        """
        async with self._session_maker() as db:
            result = await db.execute(select(User).where(User.uid == uid))
            user = result.scalar_one_or_none()
            if user is None:
                raise NotFoundError("User not found")

            owner = await db.execute(
                select(User.uid).where(User.discord_id == discord_id)
            )
            owner_uid = owner.scalar_one_or_none()
            if owner_uid is not None and owner_uid != uid:
                logger.warning(
                    "Discord ID already linked to another account",
                    uid=uid,
                    owner_uid=owner_uid,
                )
                raise ConflictError("Discord ID already linked to another account")

            user.discord_id = discord_id
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise ConflictError("Discord ID already linked to another account")
            await db.refresh(user)

        logger.info("Discord account linked", uid=uid)
        return user

    async def unlink_discord(self, uid: str) -> bool:
        async with self._session_maker() as db:
            result = await db.execute(select(User).where(User.uid == uid))
            user = result.scalar_one_or_none()
            if user is None:
                return False
            user.discord_id = None
            await db.commit()
        return True

    async def delete_user(self, uid: str) -> bool:
        """Delete a user; sessions and codes go with it via FK cascade."""
        async with self._session_maker() as db:
            result = await db.execute(delete(User).where(User.uid == uid))
            await db.commit()
            deleted = result.rowcount > 0

        if deleted:
            logger.info("User deleted", uid=uid)
        return deleted

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def insert_session(self, token: str, uid: str, expires_at: datetime) -> None:
        async with self._session_maker() as db:
            db.add(SessionToken(token=token, uid=uid, expires_at=expires_at))
            await db.commit()

    async def find_session_uid(self, token: str, now: datetime) -> str | None:
        """Return the owner of an unexpired session, or None."""
        async with self._session_maker() as db:
            result = await db.execute(
                select(SessionToken.uid).where(
                    SessionToken.token == token,
                    SessionToken.expires_at > now,
                )
            )
            return result.scalar_one_or_none()

    async def delete_session(self, token: str) -> bool:
        async with self._session_maker() as db:
            result = await db.execute(
                delete(SessionToken).where(SessionToken.token == token)
            )
            await db.commit()
            return result.rowcount > 0

    async def delete_sessions_for(self, uid: str) -> int:
        async with self._session_maker() as db:
            result = await db.execute(
                delete(SessionToken).where(SessionToken.uid == uid)
            )
            await db.commit()
            return result.rowcount

    async def sweep_sessions(self, now: datetime) -> int:
        """Delete every session whose expiry has passed."""
        async with self._session_maker() as db:
            result = await db.execute(
                delete(SessionToken).where(SessionToken.expires_at <= now)
            )
            await db.commit()
            return result.rowcount

    # ------------------------------------------------------------------
    # Ephemeral codes
    # ------------------------------------------------------------------

    async def insert_code(
        self,
        kind: CodeKind,
        code: str,
        uid: str,
        expires_at: datetime,
    ) -> bool:
        """Store a code; returns False if (kind, code) is already taken."""
        async with self._session_maker() as db:
            db.add(EphemeralCode(kind=kind, code=code, uid=uid, expires_at=expires_at))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return False
        return True

    async def replace_code(
        self,
        kind: CodeKind,
        code: str,
        uid: str,
        expires_at: datetime,
    ) -> bool:
        """Store a code as the user's only one of its kind.

        The delete of earlier codes and the insert share one transaction.
        The user row is locked first (FOR UPDATE; a no-op on SQLite, where
        the DELETE takes the database write lock), so concurrent calls for
        one user are serialized and exactly one code survives.

        Returns:
            False if (kind, code) is already taken; nothing is changed.

        Raises:
            NotFoundError: If the user does not exist.
        """
        async with self._session_maker() as db:
            owner = await db.execute(
                select(User.uid).where(User.uid == uid).with_for_update()
            )
            if owner.scalar_one_or_none() is None:
                raise NotFoundError("User not found")

            await db.execute(
                delete(EphemeralCode).where(
                    EphemeralCode.kind == kind,
                    EphemeralCode.uid == uid,
                )
            )
            db.add(EphemeralCode(kind=kind, code=code, uid=uid, expires_at=expires_at))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return False
        return True

    async def consume_code(self, kind: CodeKind, code: str, now: datetime) -> str | None:
        """Atomically delete an unexpired code and return its owner.

        A single DELETE ... RETURNING statement, so of several concurrent
        callers presenting the same code only one gets a row back.
        """
        stmt = (
            delete(EphemeralCode)
            .where(
                EphemeralCode.kind == kind,
                EphemeralCode.code == code,
                EphemeralCode.expires_at > now,
            )
            .returning(EphemeralCode.uid)
            .execution_options(synchronize_session=False)
        )
        async with self._session_maker() as db:
            result = await db.execute(stmt)
            uid = result.scalar_one_or_none()
            await db.commit()
            return uid

    async def sweep_codes(self, kind: CodeKind, now: datetime) -> int:
        async with self._session_maker() as db:
            result = await db.execute(
                delete(EphemeralCode).where(
                    EphemeralCode.kind == kind,
                    EphemeralCode.expires_at <= now,
                )
            )
            await db.commit()
            return result.rowcount
