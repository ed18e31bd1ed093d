"""Anthropic transport: one request/response exchange with the Messages API.

The transport knows the wire protocol and nothing else: no retries, no
breaker, no accounting. Every failure is raised as ``ProviderError`` carrying
either the HTTP status or a network error code from the retryable vocabulary
in ``emotions_api.gateway.retry``.
"""

from __future__ import annotations

import errno
import logging
import socket
import time
from typing import Protocol

import httpx

from emotions_api.gateway.errors import ConfigurationError, ProviderError
from emotions_api.gateway.types import CompletionRequest, ProviderResponse

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """What the gateway needs from an upstream provider."""

    @property
    def is_configured(self) -> bool: ...

    async def send(self, request: CompletionRequest) -> ProviderResponse: ...


def _network_error_code(exc: BaseException) -> str:
    """Map an httpx transport failure to a network error code.

    The underlying OS error is usually buried in the ``__cause__`` /
    ``__context__`` chain (httpx -> httpcore -> socket).
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))

        if isinstance(current, ConnectionResetError):
            return "connection_reset"
        if isinstance(current, ConnectionRefusedError):
            return "connection_refused"
        if isinstance(current, BrokenPipeError):
            return "broken_pipe"
        if isinstance(current, socket.gaierror):
            if current.errno == socket.EAI_AGAIN:
                return "dns_temporary_failure"
            return "dns_failure"
        if isinstance(current, OSError) and current.errno in (errno.EHOSTUNREACH, errno.ENETUNREACH):
            return "host_unreachable"

        current = current.__cause__ or current.__context__

    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.ReadError, httpx.WriteError)):
        return "connection_reset"
    if isinstance(exc, httpx.ConnectError):
        return "connection_refused"
    return "network_error"


class AnthropicTransport:
    """Anthropic Messages API over ``httpx``."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.anthropic.com/v1/messages",
        api_version: str = "2023-06-01",
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.api_version = api_version
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _build_payload(self, request: CompletionRequest) -> dict:
        payload = {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system_prompt:
            payload["system"] = request.system_prompt
        return payload

    async def send(self, request: CompletionRequest) -> ProviderResponse:
        if not self.is_configured:
            raise ConfigurationError("ANTHROPIC_API_KEY is not configured")

        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url,
                    json=self._build_payload(request),
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": self.api_version,
                        "Content-Type": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            code = _network_error_code(e)
            logger.warning("Request %s: network error talking to Anthropic (%s): %r", request.request_id, code, e)
            raise ProviderError(f"Network error: {code}", error_code=code) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if resp.status_code >= 400:
            # Provider detail stays in the logs, never in the raised message
            logger.warning(
                "Request %s: Anthropic returned HTTP %d in %dms: %s",
                request.request_id,
                resp.status_code,
                elapsed_ms,
                resp.text[:500],
            )
            raise ProviderError(f"Upstream HTTP {resp.status_code}", status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError("Upstream returned a malformed body", error_code="invalid_response") from e

        if not isinstance(data, dict):
            raise ProviderError("Upstream returned a malformed body", error_code="invalid_response")

        usage = data.get("usage") or {}
        logger.debug("Request %s: Anthropic responded in %dms", request.request_id, elapsed_ms)

        return ProviderResponse(
            content_blocks=data.get("content") or [],
            model=data.get("model") or request.model,
            input_tokens=int(usage.get("input_tokens", 0)),
            output_tokens=int(usage.get("output_tokens", 0)),
            stop_reason=data.get("stop_reason"),
        )
