"""Completion Gateway: orchestrator integrating all gateway components.

One logical "send a prompt, get a completion" operation:
  1. Validates the raw input (no network, no shared state touched)
  2. Guards against a missing API key
  3. Asks the Circuit Breaker for permission
  4. Calls the transport, retrying transient failures with backoff
  5. Feeds every attempt's outcome to the Breaker and the Usage Tracker
  6. Translates the terminal failure into a stable, user-safe error

Steps 3-6 run under an overall deadline. Each attempt runs as its own task
behind ``asyncio.shield``: when the deadline fires the caller gets
``RequestTimeoutError`` right away while the abandoned attempt finishes in the
background and still reports its outcome to the Breaker and Tracker.

Usage:
    gateway = build_gateway(settings)

    result = await gateway.complete("Write an affirmation", max_tokens=200)
    print(result.text, result.total_tokens)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from emotions_api.core.metrics import COMPLETION_ATTEMPTS, COMPLETION_DURATION, COMPLETION_OUTCOMES
from emotions_api.gateway.circuit_breaker import CircuitBreaker
from emotions_api.gateway.errors import (
    ConfigurationError,
    GatewayError,
    PermanentUpstreamError,
    ProviderError,
    RequestTimeoutError,
    TransientUpstreamError,
)
from emotions_api.gateway.retry import RetryPolicy, is_retryable
from emotions_api.gateway.transport import AnthropicTransport, Transport
from emotions_api.gateway.types import (
    BreakerSnapshot,
    CircuitState,
    CompletionRequest,
    CompletionResult,
    GatewayConfig,
    ProviderResponse,
    RetryAttempt,
    StopReason,
    UsageSnapshot,
)
from emotions_api.gateway.usage import UsageTracker
from emotions_api.gateway.validator import validate_request

if TYPE_CHECKING:
    from emotions_api.core.config import Settings

logger = logging.getLogger(__name__)

_PERMANENT_MESSAGES = {
    400: "The model provider rejected the request as malformed.",
    401: "Authentication with the model provider failed. Please check ANTHROPIC_API_KEY.",
    403: "Access forbidden. Your API key may not have access to this model.",
    404: "The requested model was not found at the model provider.",
}


class CompletionGateway:
    """Main gateway orchestrator.

    Integrates:
      - validate_request: input checks and cost limits
      - CircuitBreaker: failure detection and recovery
      - RetryPolicy: backoff between transient failures
      - UsageTracker: token accounting and cost estimate
      - Transport: the actual HTTP exchange
    """

    def __init__(
        self,
        config: GatewayConfig,
        transport: Transport,
        breaker: CircuitBreaker | None = None,
        usage: UsageTracker | None = None,
        retry: RetryPolicy | None = None,
    ):
        """
        Args:
            config: Limits and resilience parameters
            transport: Upstream provider client
            breaker: Shared circuit breaker (built from config when omitted)
            usage: Shared usage tracker (built from config when omitted)
            retry: Retry policy (built from config when omitted)
        """
        self.config = config
        self.transport = transport
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=config.failure_threshold,
            reset_timeout=config.reset_timeout,
        )
        self.usage = usage or UsageTracker(window_seconds=config.usage_window)
        self.retry = retry or RetryPolicy(
            max_retries=config.max_retries,
            base_delay=config.base_retry_delay,
            multiplier=config.retry_multiplier,
            max_delay=config.max_retry_delay,
            jitter_factor=config.jitter_factor,
        )
        self._inflight: set[asyncio.Task] = set()

    async def complete(
        self,
        prompt: Any,
        *,
        system_prompt: Any = None,
        model: Any = None,
        max_tokens: Any = None,
        temperature: Any = None,
        request_id: str | None = None,
        timeout: float | None = None,
    ) -> CompletionResult:
        """Send one prompt and return the normalized completion.

        Raises:
            ValidationError: bad input, nothing was sent
            ConfigurationError: no API key, nothing was sent
            CircuitOpenError: breaker is open, nothing was sent
            TransientUpstreamError: retry budget exhausted
            PermanentUpstreamError: non-retryable provider failure
            RequestTimeoutError: overall deadline expired
        """
        start = time.perf_counter()
        try:
            request = validate_request(
                self.config,
                prompt=prompt,
                system_prompt=system_prompt,
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                request_id=request_id,
            )

            if not self.transport.is_configured:
                raise ConfigurationError(
                    "Anthropic API key is not configured. Set ANTHROPIC_API_KEY in your environment."
                )

            deadline = timeout if timeout is not None else self.config.request_timeout
            try:
                result = await asyncio.wait_for(self._execute(request), timeout=deadline)
            except asyncio.TimeoutError:
                logger.warning("Request %s: abandoned after %.1fs overall timeout", request.request_id, deadline)
                raise RequestTimeoutError(deadline) from None

        except GatewayError as e:
            COMPLETION_OUTCOMES.labels(outcome=e.kind).inc()
            raise

        COMPLETION_OUTCOMES.labels(outcome="success").inc()
        COMPLETION_DURATION.observe(time.perf_counter() - start)
        return result

    async def simple_prompt(self, prompt: Any, **options: Any) -> CompletionResult:
        return await self.complete(prompt, **options)

    async def prompt_with_system(self, system_prompt: Any, prompt: Any, **options: Any) -> CompletionResult:
        return await self.complete(prompt, system_prompt=system_prompt, **options)

    async def _execute(self, request: CompletionRequest) -> CompletionResult:
        is_trial = self.breaker.acquire()
        if is_trial:
            logger.info("Request %s: sending half-open trial request", request.request_id)

        last_error: ProviderError | None = None
        attempts = 0

        for index in range(self.retry.max_attempts):
            if index and self.breaker.state != CircuitState.CLOSED:
                # Opened by other callers while this one was backing off
                logger.warning(
                    "Request %s: circuit breaker is %s after backoff, giving up after %d attempt(s)",
                    request.request_id,
                    self.breaker.state.value,
                    attempts,
                )
                break

            attempts = index + 1
            try:
                response = await self._attempt(request, is_trial)
            except ProviderError as e:
                last_error = e
                if not self.retry.should_retry(index, e):
                    break
                if self.breaker.state != CircuitState.CLOSED:
                    logger.warning(
                        "Request %s: circuit breaker is %s, giving up after %d attempt(s)",
                        request.request_id,
                        self.breaker.state.value,
                        attempts,
                    )
                    break
                await self.retry.wait(RetryAttempt(index=index, delay=self.retry.compute_delay(index), error=e))
                continue

            if index:
                logger.info("Request %s: succeeded after %d retries", request.request_id, index)
            return self._to_result(request, response)

        raise self._translate(request, last_error, attempts)

    async def _attempt(self, request: CompletionRequest, is_trial: bool = False) -> ProviderResponse:
        task = asyncio.ensure_future(self._call_upstream(request, is_trial))
        self._inflight.add(task)
        task.add_done_callback(self._forget)
        return await asyncio.shield(task)

    def _forget(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled():
            # Retrieve so abandoned attempts don't log "exception was never retrieved"
            task.exception()

    async def _call_upstream(self, request: CompletionRequest, is_trial: bool = False) -> ProviderResponse:
        """One outbound call plus its bookkeeping."""
        try:
            response = await self.transport.send(request)
        except ProviderError:
            self.breaker.record_failure(is_trial)
            COMPLETION_ATTEMPTS.labels(result="failure").inc()
            raise
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception("Request %s: unexpected transport failure", request.request_id)
            self.breaker.record_failure(is_trial)
            COMPLETION_ATTEMPTS.labels(result="failure").inc()
            raise ProviderError("Unexpected transport failure") from e
        else:
            self.breaker.record_success(is_trial)
            self.usage.record(response.model or request.model, response.input_tokens, response.output_tokens)
            COMPLETION_ATTEMPTS.labels(result="success").inc()
        finally:
            if is_trial:
                # No-op once an outcome was recorded; frees the slot on any other exit
                self.breaker.release_trial()
        return response

    @staticmethod
    def _to_result(request: CompletionRequest, response: ProviderResponse) -> CompletionResult:
        return CompletionResult(
            text=response.text,
            model=response.model or request.model,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            stop_reason=StopReason.from_provider(response.stop_reason),
            request_id=request.request_id,
        )

    @staticmethod
    def _translate(request: CompletionRequest, error: ProviderError | None, attempts: int) -> GatewayError:
        """Map the last provider failure onto the public error taxonomy."""
        retries = attempts - 1
        if error is None:
            return PermanentUpstreamError("Failed to communicate with the model service.")

        logger.error(
            "Request %s: failed after %d attempt(s): %s (status=%s, code=%s)",
            request.request_id,
            attempts,
            error,
            error.status_code or "-",
            error.error_code or "-",
        )

        if is_retryable(error):
            if error.status_code == 429:
                message = f"Rate limit exceeded after {retries} retries. Please try again later."
            elif error.status_code:
                message = (
                    "The model service is temporarily unavailable. "
                    f"Retried {retries} times. Please try again later."
                )
            else:
                message = (
                    f"Unable to connect to the model service after {attempts} attempts. "
                    "Please try again later."
                )
            return TransientUpstreamError(
                message,
                retries=retries,
                status_code=error.status_code,
                error_code=error.error_code,
            )

        if error.status_code:
            message = _PERMANENT_MESSAGES.get(
                error.status_code,
                f"The model service returned an unexpected error (HTTP {error.status_code}).",
            )
            return PermanentUpstreamError(message, status_code=error.status_code)

        return PermanentUpstreamError("Failed to communicate with the model service.")

    def get_usage_stats(self) -> UsageSnapshot:
        return self.usage.get_stats()

    def get_breaker_state(self) -> BreakerSnapshot:
        return self.breaker.get_state()

    def reset_usage_stats(self) -> None:
        self.usage.reset()

    def reset_breaker(self) -> None:
        self.breaker.reset()

    def get_status(self) -> dict:
        """Get comprehensive gateway status."""
        return {
            "configured": self.transport.is_configured,
            "circuit_breaker": self.get_breaker_state().to_dict(),
            "usage": self.get_usage_stats().to_dict(),
            "inflight_attempts": len(self._inflight),
            "limits": {
                "default_model": self.config.default_model,
                "hard_max_tokens": self.config.hard_max_tokens,
                "max_prompt_length": self.config.max_prompt_length,
                "max_retries": self.config.max_retries,
                "request_timeout_seconds": self.config.request_timeout,
            },
        }

    async def drain(self) -> None:
        """Wait for abandoned attempts to finish so their bookkeeping lands."""
        if not self._inflight:
            return
        logger.info("Waiting for %d in-flight upstream attempt(s)", len(self._inflight))
        await asyncio.gather(*self._inflight, return_exceptions=True)


def build_gateway(settings: Settings) -> CompletionGateway:
    """Wire the production gateway from application settings."""
    config = GatewayConfig.from_settings(settings)
    transport = AnthropicTransport(
        api_key=settings.anthropic_api_key,
        api_url=settings.anthropic_api_url,
        api_version=settings.anthropic_version,
        timeout=config.upstream_timeout,
    )
    return CompletionGateway(config, transport)
