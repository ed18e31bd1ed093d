"""Circuit Breaker guarding outbound calls to the model provider.

One breaker is shared by every concurrent gateway call:
  - CLOSED: normal operation, requests pass through
  - OPEN: too many consecutive failures, requests are rejected immediately
  - HALF_OPEN: cooldown elapsed, a single trial request tests recovery

All state changes happen synchronously between awaits, so on one event loop
the OPEN -> HALF_OPEN swap in ``acquire()`` is atomic and only the first
caller past the cooldown becomes the trial.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from emotions_api.core.metrics import CIRCUIT_STATE
from emotions_api.gateway.errors import CircuitOpenError
from emotions_api.gateway.types import BreakerSnapshot, CircuitState

logger = logging.getLogger(__name__)

_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitBreaker:
    """Three-state circuit breaker.

    Usage:
        breaker = CircuitBreaker(failure_threshold=5, reset_timeout=30.0)

        is_trial = breaker.acquire()  # raises CircuitOpenError when open
        try:
            ...
        except ProviderError:
            breaker.record_failure(is_trial)
        else:
            breaker.record_success(is_trial)
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            failure_threshold: Consecutive failures that open the circuit
            reset_timeout: Seconds after the last failure before a trial is allowed
            clock: Monotonic time source (injectable for tests)
        """
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure: float | None = None  # clock() value
        self._last_failure_at: datetime | None = None  # wall-clock, for reporting
        self._trial_in_flight = False

        CIRCUIT_STATE.set(_STATE_GAUGE[self._state])

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def acquire(self) -> bool:
        """Ask permission for one outbound call.

        Returns:
            True when the caller is the half-open trial, False otherwise.

        Raises:
            CircuitOpenError: with the remaining cooldown in seconds.
        """
        if self._state == CircuitState.CLOSED:
            return False

        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - (self._last_failure or 0.0)
            if elapsed < self.reset_timeout:
                raise CircuitOpenError(retry_after=self.reset_timeout - elapsed)
            self._transition(CircuitState.HALF_OPEN)
            self._trial_in_flight = True
            return True

        # HALF_OPEN
        if self._trial_in_flight:
            raise CircuitOpenError(retry_after=0)
        self._trial_in_flight = True
        return True

    def record_success(self, is_trial: bool = False) -> None:
        """Record a successful call.

        Only closes the circuit from CLOSED (resetting the counter) or from
        HALF_OPEN when the success belongs to the admitted trial. Late
        successes from calls started before the circuit opened are ignored.
        """
        if is_trial:
            self._trial_in_flight = False

        if self._state == CircuitState.OPEN or (self._state == CircuitState.HALF_OPEN and not is_trial):
            logger.debug("Ignoring success outside the trial while circuit is %s", self._state.value)
            return

        self._failures = 0
        if self._state != CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)

    def record_failure(self, is_trial: bool = False) -> None:
        """Record a failed call and open the circuit when appropriate."""
        self._failures += 1
        self._last_failure = self._clock()
        self._last_failure_at = datetime.now(timezone.utc)
        if is_trial:
            self._trial_in_flight = False

        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED and self._failures >= self.failure_threshold:
            self._transition(CircuitState.OPEN)

    def release_trial(self) -> None:
        """Free the trial slot when the trial ended without a provider outcome."""
        if self._trial_in_flight:
            logger.info("Half-open trial ended without an upstream outcome, releasing slot")
            self._trial_in_flight = False

    def get_state(self) -> BreakerSnapshot:
        return BreakerSnapshot(
            state=self._state,
            failures=self._failures,
            last_failure_time=self._last_failure_at,
        )

    def reset(self) -> None:
        """Manually reset the circuit to CLOSED."""
        self._failures = 0
        self._last_failure = None
        self._last_failure_at = None
        self._trial_in_flight = False
        if self._state != CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)
        logger.info("Circuit breaker manually RESET")

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        CIRCUIT_STATE.set(_STATE_GAUGE[new_state])

        if new_state == CircuitState.OPEN:
            logger.warning(
                "Circuit breaker OPENED (%s -> open) after %d consecutive failures",
                old_state.value,
                self._failures,
            )
        elif new_state == CircuitState.HALF_OPEN:
            logger.info("Circuit breaker transitioning to HALF_OPEN, admitting one trial request")
        else:
            logger.info("Circuit breaker CLOSED (recovered from %s)", old_state.value)
