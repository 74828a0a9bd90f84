"""One-time link codes and connect tokens.

A link code is typed by a person (browser -> Discord ``/link``); a connect
token travels inside a URL (Discord ``/webconnect`` -> browser). Each kind
gets its own ``CodeIssuer`` instance and its own code space, so a value
issued for one purpose cannot be redeemed for the other.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from medreminder.core.errors import CodeGenerationError, NotFoundError
from medreminder.core.security import generate_connect_token, generate_link_code
from medreminder.logging_config import get_logger, mask_token
from medreminder.models.ephemeral_code import CodeKind
from medreminder.services.credential_store import CredentialStore

logger = get_logger(__name__)

CODE_EXPIRY_MINUTES = 10
LINK_CODE_LENGTH = 6
MAX_GENERATION_ATTEMPTS = 3


@dataclass(frozen=True)
class IssuedCode:
    """A freshly issued code and the moment it stops being redeemable."""

    code: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CodeIssuer:
    """Issues and redeems single-use codes of one kind.

    Args:
        store: Credential store holding the ephemeral_codes table.
        kind: Which code space this issuer owns.
        expiry: Lifetime of each code.
        single_outstanding: When True, issuing a code deletes the user's
            earlier unconsumed codes of the same kind.
        link_code_length: Length of generated link codes.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: CredentialStore,
        kind: CodeKind,
        expiry: timedelta = timedelta(minutes=CODE_EXPIRY_MINUTES),
        single_outstanding: bool = True,
        link_code_length: int = LINK_CODE_LENGTH,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._store = store
        self.kind = kind
        self._expiry = expiry
        self._single_outstanding = single_outstanding
        self._link_code_length = link_code_length
        self._clock = clock

    def _generate(self) -> str:
        if self.kind is CodeKind.LINK:
            return generate_link_code(self._link_code_length)
        return generate_connect_token()

    async def issue_code(self, uid: str) -> IssuedCode:
        """Issue a new code for ``uid``.

        Raises:
            NotFoundError: If the user does not exist.
            CodeGenerationError: If no unique code was found after retries.
        """
        now = self._clock()

        swept = await self._store.sweep_codes(self.kind, now)
        if swept:
            logger.debug("Expired codes swept", kind=self.kind.value, count=swept)

        if not await self._store.user_exists(uid):
            raise NotFoundError("User not found")

        expires_at = now + self._expiry
        store_code = (
            self._store.replace_code if self._single_outstanding else self._store.insert_code
        )

        # Retry on (kind, code) collision, only plausible for short link codes
        for _attempt in range(MAX_GENERATION_ATTEMPTS):
            code = self._generate()
            if await store_code(self.kind, code, uid, expires_at):
                break
        else:
            raise CodeGenerationError(f"Failed to generate unique {self.kind.value} code")

        logger.info(
            "Code issued",
            kind=self.kind.value,
            uid=uid,
            code=mask_token(code, visible=2),
            expires_at=expires_at.isoformat(),
        )
        return IssuedCode(code=code, expires_at=expires_at)

    async def validate_code(self, code: str | None) -> str | None:
        """Redeem a code: returns its owner and consumes it, or None.

        Unknown, already-used and expired codes all return None and leave
        the store untouched.
        """
        if not code:
            return None

        code = code.strip()
        if self.kind is CodeKind.LINK:
            code = code.upper()

        uid = await self._store.consume_code(self.kind, code, self._clock())
        if uid is None:
            logger.debug("Invalid or expired code", kind=self.kind.value)
            return None

        logger.info("Code redeemed", kind=self.kind.value, uid=uid)
        return uid
