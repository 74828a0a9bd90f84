"""Rate limiting for credential redemption endpoints, using slowapi.

Limits are applied per endpoint with ``@limiter.limit()``:
    Connect-token redemption: 10/minute
    Link-code redemption: 10/minute
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from medreminder.config import settings

REDEEM_LIMIT = "10/minute"


def _storage_uri() -> str:
    # In-process counters unless a Redis URL is configured; tests never use Redis
    if settings.testing or not settings.redis_url:
        return "memory://"
    return settings.redis_url


def client_ip(request: Request) -> str:
    """Real client IP, honouring X-Forwarded-For behind a reverse proxy."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(
    key_func=client_ip,
    storage_uri=_storage_uri(),
    enabled=not settings.testing,
)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Return a 429 JSON response when a rate limit is exceeded."""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )
