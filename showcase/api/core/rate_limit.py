"""Rate limiting for credential-bearing endpoints.

One limiter keyed by client address. ``configure_limiter`` is called by
the app factory; limit strings are read at request time so they follow
the settings the running app was built with.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...core.config import ShowcaseSettings

limiter = Limiter(key_func=get_remote_address)

_active = {"settings": ShowcaseSettings()}


def configure_limiter(settings: ShowcaseSettings) -> Limiter:
    _active["settings"] = settings
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
    return limiter


def auth_rate_limit() -> str:
    """Login, invite acceptance and link password unlock."""
    return _active["settings"].effective_auth_rate_limit


def general_rate_limit() -> str:
    return _active["settings"].effective_general_rate_limit
