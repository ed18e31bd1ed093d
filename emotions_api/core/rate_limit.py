"""Rate limiting configuration using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from emotions_api.core.config import settings

# Rate limiter instance, keyed by remote address. The application limit is
# one budget per client shared by every route, enforced by SlowAPIMiddleware.
limiter = Limiter(
    key_func=get_remote_address,
    application_limits=[settings.general_rate_limit],
    enabled=settings.rate_limit_enabled,
)

# Stricter limit for routes that spend model tokens, on top of the general one
COMPLETION_RATE_LIMIT = settings.claude_api_rate_limit
