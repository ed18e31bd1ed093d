"""Usage Tracker: token accounting over a fixed, lazily rolled window."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from emotions_api.core.metrics import TOKENS_USED
from emotions_api.gateway.types import DEFAULT_PRICING, MODEL_PRICING, UsageSnapshot

logger = logging.getLogger(__name__)


class UsageTracker:
    """Accumulates token usage and estimates cost.

    The window is not driven by a timer: it rolls over on the first
    ``record()`` that happens after ``window_start + window_seconds``.
    """

    def __init__(
        self,
        window_seconds: float = 3600.0,
        pricing: dict[str, dict[str, float]] | None = None,
        default_pricing: dict[str, float] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.window_seconds = window_seconds
        self.pricing = pricing if pricing is not None else MODEL_PRICING
        self.default_pricing = default_pricing if default_pricing is not None else DEFAULT_PRICING
        self._clock = clock
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._input_tokens = 0
        self._output_tokens = 0
        self._request_count = 0
        self._by_model: dict[str, dict[str, int]] = {}
        self._window_start = self._clock()

    def record(self, model: str, input_tokens: int, output_tokens: int) -> None:
        """Add one successful completion to the current window."""
        if self._clock() > self._window_start + self.window_seconds:
            logger.info(
                "Usage window elapsed, resetting counters (previous: %d requests, %d tokens)",
                self._request_count,
                self._input_tokens + self._output_tokens,
            )
            self._reset_counters()

        self._input_tokens += input_tokens
        self._output_tokens += output_tokens
        self._request_count += 1

        per_model = self._by_model.setdefault(model, {"input_tokens": 0, "output_tokens": 0, "requests": 0})
        per_model["input_tokens"] += input_tokens
        per_model["output_tokens"] += output_tokens
        per_model["requests"] += 1

        TOKENS_USED.labels(direction="input", model=model).inc(input_tokens)
        TOKENS_USED.labels(direction="output", model=model).inc(output_tokens)

    def estimate_cost(self) -> float:
        """Estimated USD cost of the current window."""
        total = 0.0
        for model, counts in self._by_model.items():
            prices = self.pricing.get(model, self.default_pricing)
            total += counts["input_tokens"] / 1_000_000 * prices["input"]
            total += counts["output_tokens"] / 1_000_000 * prices["output"]
        return round(total, 6)

    def get_stats(self) -> UsageSnapshot:
        return UsageSnapshot(
            input_tokens=self._input_tokens,
            output_tokens=self._output_tokens,
            request_count=self._request_count,
            window_start=datetime.fromtimestamp(self._window_start, tz=timezone.utc),
            window_seconds=self.window_seconds,
            estimated_cost_usd=self.estimate_cost(),
            by_model={model: dict(counts) for model, counts in self._by_model.items()},
        )

    def reset(self) -> None:
        self._reset_counters()
        logger.info("Usage statistics manually RESET")
