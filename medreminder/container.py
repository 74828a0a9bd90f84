"""Process-scoped service wiring.

Every service is an explicitly constructed object. The app builds one
container at startup and stores it on ``app.state``; tests build their
own against a throwaway database.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from medreminder.config import Settings
from medreminder.models.ephemeral_code import CodeKind
from medreminder.services.code_issuer import CodeIssuer
from medreminder.services.connection_registry import ConnectionRegistry
from medreminder.services.credential_store import CredentialStore
from medreminder.services.followup_scheduler import FollowUpScheduler
from medreminder.services.session_manager import SessionManager


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ServiceContainer:
    """All long-lived services of one API process."""

    settings: Settings
    engine: AsyncEngine
    store: CredentialStore
    sessions: SessionManager
    link_codes: CodeIssuer
    connect_tokens: CodeIssuer
    registry: ConnectionRegistry
    follow_ups: FollowUpScheduler

    @classmethod
    def build(
        cls,
        settings: Settings,
        engine: AsyncEngine,
        clock: Callable[[], datetime] = _utcnow,
    ) -> "ServiceContainer":
        session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        store = CredentialStore(session_maker)
        code_expiry = timedelta(minutes=settings.code_expire_minutes)
        registry = ConnectionRegistry()

        return cls(
            settings=settings,
            engine=engine,
            store=store,
            sessions=SessionManager(
                store,
                lifetime=timedelta(days=settings.session_expire_days),
                clock=clock,
            ),
            link_codes=CodeIssuer(
                store,
                CodeKind.LINK,
                expiry=code_expiry,
                single_outstanding=settings.single_outstanding_codes,
                link_code_length=settings.link_code_length,
                clock=clock,
            ),
            connect_tokens=CodeIssuer(
                store,
                CodeKind.CONNECT,
                expiry=code_expiry,
                single_outstanding=settings.single_outstanding_codes,
                clock=clock,
            ),
            registry=registry,
            follow_ups=FollowUpScheduler(
                registry,
                delay=timedelta(minutes=settings.follow_up_delay_minutes),
            ),
        )

    def start(self) -> None:
        self.follow_ups.start()

    def stop(self) -> None:
        self.follow_ups.stop()
