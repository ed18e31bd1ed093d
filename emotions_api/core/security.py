import hmac

from emotions_api.core.config import settings


def extract_api_key(x_api_key: str | None, authorization: str | None) -> str | None:
    """Return the key from ``X-API-Key`` or an ``Authorization: Bearer`` header."""
    if x_api_key:
        return x_api_key.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return None


def verify_api_key(candidate: str | None) -> bool:
    """Constant-time comparison against the configured API key."""
    if not candidate or not settings.api_key:
        return False
    return hmac.compare_digest(candidate.encode(), settings.api_key.encode())
