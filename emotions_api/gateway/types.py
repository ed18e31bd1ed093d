"""Core types and DTOs for the completion gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from emotions_api.core.config import Settings


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class StopReason(str, Enum):
    """Why the model stopped generating."""

    NORMAL = "normal-stop"
    MAX_TOKENS = "max-tokens-truncated"
    OTHER = "other"

    @classmethod
    def from_provider(cls, raw: str | None) -> StopReason:
        if raw in ("end_turn", "stop_sequence"):
            return cls.NORMAL
        if raw == "max_tokens":
            return cls.MAX_TOKENS
        return cls.OTHER


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Rejecting requests
    HALF_OPEN = "half_open"  # One trial request in flight


# ---------------------------------------------------------------------------
# Completion Request / Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompletionRequest:
    """A validated request, ready to be sent upstream.

    Only built by ``validate_request``; the gateway never sees raw input.
    """

    prompt: str
    model: str
    max_tokens: int
    temperature: float
    request_id: str
    system_prompt: str | None = None


@dataclass(frozen=True)
class CompletionResult:
    """Normalized result of one successful completion."""

    text: str
    model: str
    input_tokens: int
    output_tokens: int
    stop_reason: StopReason
    request_id: str

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def truncated(self) -> bool:
        return self.stop_reason == StopReason.MAX_TOKENS

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "model": self.model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "stop_reason": self.stop_reason.value,
            "truncated": self.truncated,
            "request_id": self.request_id,
        }


@dataclass
class ProviderResponse:
    """Raw answer from the transport, before normalization."""

    content_blocks: list[dict[str, Any]] = field(default_factory=list)
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str | None = None

    @property
    def text(self) -> str:
        """Text blocks joined by newlines; non-text blocks are skipped."""
        return "\n".join(
            block.get("text", "") for block in self.content_blocks if block.get("type") == "text"
        )


@dataclass(frozen=True)
class RetryAttempt:
    """One failed attempt inside a single gateway call."""

    index: int  # 0-based
    delay: float  # seconds to wait before the next attempt
    error: Exception


# ---------------------------------------------------------------------------
# Snapshots (read-only views of shared state)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BreakerSnapshot:
    state: CircuitState
    failures: int
    last_failure_time: datetime | None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "failures": self.failures,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
        }


@dataclass(frozen=True)
class UsageSnapshot:
    input_tokens: int
    output_tokens: int
    request_count: int
    window_start: datetime
    window_seconds: float
    estimated_cost_usd: float
    by_model: dict[str, dict[str, int]] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
            "request_count": self.request_count,
            "window_start": self.window_start.isoformat(),
            "window_seconds": self.window_seconds,
            "estimated_cost_usd": self.estimated_cost_usd,
            "estimated_cost": f"${self.estimated_cost_usd:.4f}",
            "by_model": self.by_model,
        }


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------

# USD per 1M tokens
MODEL_PRICING: dict[str, dict[str, float]] = {
    "claude-opus-4-5-20251101": {"input": 5.00, "output": 25.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
    "claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
    "claude-3-opus-20240229": {"input": 15.00, "output": 75.00},
    "claude-3-sonnet-20240229": {"input": 3.00, "output": 15.00},
    "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
}

# Sonnet tier, used for models missing from MODEL_PRICING
DEFAULT_PRICING: dict[str, float] = {"input": 3.00, "output": 15.00}


# ---------------------------------------------------------------------------
# Gateway config
# ---------------------------------------------------------------------------

DEFAULT_VALID_MODELS: tuple[str, ...] = tuple(MODEL_PRICING)


@dataclass
class GatewayConfig:
    """Limits, retry and breaker parameters for the gateway.

    Durations are in seconds.
    """

    valid_models: tuple[str, ...] = DEFAULT_VALID_MODELS
    default_model: str = "claude-sonnet-4-20250514"
    default_max_tokens: int = 1024
    hard_max_tokens: int = 4096
    max_prompt_length: int = 50_000
    max_system_prompt_length: int = 10_000
    default_temperature: float = 0.7

    max_retries: int = 3  # so up to 4 attempts in total
    base_retry_delay: float = 1.0
    retry_multiplier: float = 2.0
    max_retry_delay: float = 10.0
    jitter_factor: float = 0.1

    failure_threshold: int = 5
    reset_timeout: float = 30.0

    usage_window: float = 3600.0

    request_timeout: float = 60.0
    upstream_timeout: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> GatewayConfig:
        return cls(
            valid_models=tuple(settings.valid_models),
            default_model=settings.default_model,
            default_max_tokens=min(settings.default_max_tokens, settings.hard_max_tokens),
            hard_max_tokens=settings.hard_max_tokens,
            max_prompt_length=settings.max_prompt_length,
            max_system_prompt_length=settings.max_system_prompt_length,
            default_temperature=settings.default_temperature,
            max_retries=settings.api_max_retries,
            base_retry_delay=settings.api_retry_base_delay_ms / 1000,
            retry_multiplier=settings.api_retry_backoff_multiplier,
            max_retry_delay=settings.api_retry_max_delay_ms / 1000,
            jitter_factor=settings.api_retry_jitter_factor,
            failure_threshold=settings.circuit_breaker_threshold,
            reset_timeout=settings.circuit_breaker_reset_ms / 1000,
            usage_window=settings.usage_window_minutes * 60.0,
            request_timeout=settings.request_timeout_ms / 1000,
            upstream_timeout=settings.upstream_timeout_ms / 1000,
        )
