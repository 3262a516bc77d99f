"""Request rate limiting for the HTTP surface."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

SEND_LIMIT = "100/minute"
BULK_SEND_LIMIT = "5/minute"
TOKEN_REGISTRATION_LIMIT = "10/minute"
READ_LIMIT = "200/minute"
SYSTEM_LIMIT = "50/minute"

limiter = Limiter(
    key_func=get_remote_address,
)


async def rate_limit_handler(_request: Request, exc: Exception):
    """Return 429 with a fixed message when a limit is exceeded."""
    return JSONResponse(
        status_code=429,
        content={"message": "Rate limit exceeded"},
        headers={"Retry-After": "60"} if isinstance(exc, RateLimitExceeded) else None,
    )


def setup_rate_limiter(app: FastAPI):
    """Attach the shared limiter and its 429 handler to the application."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)


def get_limiter():
    """Return the shared limiter instance."""
    return limiter
