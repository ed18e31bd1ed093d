"""Error taxonomy of the completion gateway.

Every failure that leaves ``CompletionGateway.complete`` is a ``GatewayError``
subclass with a stable ``kind`` and a message that is safe to show to API
clients. ``ProviderError`` is the transport-level failure and never crosses
the gateway boundary.
"""

from __future__ import annotations

import math
from typing import Any


class ProviderError(Exception):
    """Raised by a transport when the upstream exchange fails.

    ``status_code`` is the HTTP status (0 when no response was received) and
    ``error_code`` a network error code such as ``"connection_reset"``.
    """

    def __init__(self, message: str, status_code: int = 0, error_code: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class GatewayError(Exception):
    kind = "gateway_error"
    http_status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message, "statusCode": self.http_status}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(GatewayError):
    """Malformed or out-of-range input. Always the caller's fault."""

    kind = "validation_error"
    http_status = 400

    def __init__(self, field: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details={"field": field, **(details or {})})
        self.field = field


class CircuitOpenError(GatewayError):
    kind = "circuit_open"
    http_status = 503

    def __init__(self, retry_after: float):
        self.retry_after = max(retry_after, 0.0)
        seconds = math.ceil(self.retry_after)
        super().__init__(
            "The model service circuit breaker is open due to repeated failures. "
            f"Please try again in {seconds} seconds.",
            details={"retry_after": seconds},
        )


class TransientUpstreamError(GatewayError):
    """Upstream kept failing with retryable errors until the budget ran out."""

    kind = "upstream_unavailable"
    http_status = 503

    def __init__(self, message: str, retries: int, status_code: int = 0, error_code: str = ""):
        details: dict[str, Any] = {"retries": retries}
        if status_code:
            details["upstream_status"] = status_code
        if error_code:
            details["error_code"] = error_code
        super().__init__(message, details=details)
        self.retries = retries
        self.status_code = status_code
        self.error_code = error_code
        if status_code == 429:
            self.http_status = 429


class PermanentUpstreamError(GatewayError):
    kind = "upstream_error"
    http_status = 502

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message, details={"upstream_status": status_code} if status_code else None)
        self.status_code = status_code


class ConfigurationError(GatewayError):
    kind = "configuration_error"
    http_status = 500


class RequestTimeoutError(GatewayError):
    """The caller's overall deadline expired, possibly in the middle of retries."""

    kind = "request_timeout"
    http_status = 408

    def __init__(self, timeout: float):
        super().__init__(
            f"The request did not complete within {timeout:g} seconds.",
            details={"timeout_seconds": timeout},
        )
        self.timeout = timeout
