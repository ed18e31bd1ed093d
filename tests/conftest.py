import asyncio
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from emotions_api.core.config import settings

# Override settings for tests
settings.anthropic_api_key = "test-key"
settings.app_env = "development"
settings.require_api_key = False
settings.api_key = ""

from emotions_api.core.dependencies import get_gateway  # noqa: E402
from emotions_api.core.rate_limit import limiter  # noqa: E402
from emotions_api.gateway.circuit_breaker import CircuitBreaker  # noqa: E402
from emotions_api.gateway.errors import ProviderError  # noqa: E402
from emotions_api.gateway.gateway import CompletionGateway  # noqa: E402
from emotions_api.gateway.retry import RetryPolicy  # noqa: E402
from emotions_api.gateway.types import CompletionRequest, GatewayConfig, ProviderResponse  # noqa: E402
from emotions_api.gateway.usage import UsageTracker  # noqa: E402
from emotions_api.main import app  # noqa: E402

limiter.enabled = False


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


def ok_response(
    text: str = "hi",
    input_tokens: int = 3,
    output_tokens: int = 1,
    stop_reason: str = "end_turn",
    model: str = "claude-sonnet-4-20250514",
) -> ProviderResponse:
    return ProviderResponse(
        content_blocks=[{"type": "text", "text": text}],
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        stop_reason=stop_reason,
    )


def http_error(status_code: int) -> ProviderError:
    return ProviderError(f"Upstream HTTP {status_code}", status_code=status_code)


def network_error(code: str) -> ProviderError:
    return ProviderError(f"Network error: {code}", error_code=code)


class StubTransport:
    """Scripted transport that counts calls.

    Each outcome is a ProviderResponse to return, an exception to raise, or an
    async callable taking the request. Once the script runs out every call
    succeeds with ``ok_response()``.
    """

    def __init__(self, outcomes=None, configured: bool = True):
        self.outcomes = list(outcomes or [])
        self.calls: list[CompletionRequest] = []
        self.configured = configured

    @property
    def is_configured(self) -> bool:
        return self.configured

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def send(self, request: CompletionRequest) -> ProviderResponse:
        self.calls.append(request)
        outcome = self.outcomes.pop(0) if self.outcomes else ok_response()
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(request)
        return outcome


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep: records delays, yields once."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def make_gateway(clock: FakeClock, sleeps: RecordingSleep):
    """Build an isolated gateway with a fake clock and no real sleeping (jitter disabled)."""

    def _make(transport: StubTransport, **overrides) -> CompletionGateway:
        config = GatewayConfig(**overrides)
        return CompletionGateway(
            config,
            transport,
            breaker=CircuitBreaker(config.failure_threshold, config.reset_timeout, clock=clock),
            usage=UsageTracker(config.usage_window, clock=clock),
            retry=RetryPolicy(
                max_retries=config.max_retries,
                base_delay=config.base_retry_delay,
                multiplier=config.retry_multiplier,
                max_delay=config.max_retry_delay,
                jitter_factor=config.jitter_factor,
                sleep=sleeps,
                rand=lambda: 0.0,
            ),
        )

    return _make


@pytest.fixture
def gateway(make_gateway, transport: StubTransport) -> CompletionGateway:
    return make_gateway(transport)


@pytest.fixture
async def client(gateway: CompletionGateway) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_gateway] = lambda: gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_gateway, None)
