"""Sentry error tracking integration.

Enabled only when SENTRY_DSN is set. Request bodies and query strings are
stripped before events leave the process: they carry users' prompts.
"""

import logging

from emotions_api.core.config import settings

logger = logging.getLogger(__name__)

# Expected client/upstream failures, already answered with a proper status
_IGNORED_ERRORS = (
    "ValidationError",
    "CircuitOpenError",
    "TransientUpstreamError",
    "RequestTimeoutError",
    "RateLimitExceeded",
)


def scrub_event(event: dict, hint: dict) -> dict | None:
    exc_info = hint.get("exc_info")
    if exc_info and type(exc_info[1]).__name__ in _IGNORED_ERRORS:
        return None

    request = event.get("request")
    if request:
        request.pop("data", None)
        request.pop("query_string", None)
        headers = request.get("headers") or {}
        for name in list(headers):
            if name.lower() in ("x-api-key", "authorization"):
                headers[name] = "[Filtered]"
    return event


def init_sentry() -> bool:
    """Initialize Sentry if SENTRY_DSN is configured. Returns True when enabled."""
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        release="emotions-api@1.0.0",
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[FastApiIntegration(transaction_style="endpoint")],
    )
    logger.info("Sentry initialized (env=%s)", settings.app_env)
    return True
