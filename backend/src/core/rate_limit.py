"""
Shared slowapi limiter.

Routers decorate endpoints with ``@limiter.limit(...)``; ``main`` attaches
the limiter to the app and installs the 429 handler.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)


def checkout_limit() -> str:
    return get_settings().checkout_rate_limit
