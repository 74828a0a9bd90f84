"""Random identifier and credential generation.

All values come from the ``secrets`` CSPRNG.
"""

import hmac
import secrets

# 32 bytes -> 64 hex chars, 256 bits of entropy
SESSION_TOKEN_BYTES = 32
CONNECT_TOKEN_BYTES = 32
UID_BYTES = 8

# Link codes are typed by hand, so drop look-alikes (0/O, 1/I)
LINK_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_uid() -> str:
    """Generate a new user identifier, e.g. ``uid_3f9a0c1d2e4b5a67``."""
    return f"uid_{secrets.token_hex(UID_BYTES)}"


def generate_session_token() -> str:
    """Generate an opaque session token."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


def generate_link_code(length: int = 6) -> str:
    """Generate a short human-typeable link code."""
    return "".join(secrets.choice(LINK_CODE_ALPHABET) for _ in range(length))


def generate_connect_token() -> str:
    """Generate a long opaque one-time connect token."""
    return secrets.token_hex(CONNECT_TOKEN_BYTES)


def keys_match(presented: str | None, expected: str) -> bool:
    """Constant-time comparison of a presented shared key.

    An unset expected key never matches.
    """
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))
