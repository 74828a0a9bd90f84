"""Middleware package for the medication reminder API."""

from medreminder.middleware.correlation import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from medreminder.middleware.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    "CORRELATION_ID_HEADER",
    "CorrelationIdMiddleware",
    "limiter",
    "rate_limit_exceeded_handler",
]
