"""Per-provider circuit breaker for the vision classifiers."""
import logging
import threading
import time
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Opens after `failure_threshold` consecutive provider failures.

    While open, callers skip the provider and go straight to the next classifier
    or the failure policy. After `cooldown_seconds` a single trial call is let
    through; its result closes or re-opens the circuit.
    """

    def __init__(self, name: str, failure_threshold: int = 5, cooldown_seconds: float = 10.0):
        self.name = name
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_seconds = cooldown_seconds

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def can_proceed(self) -> bool:
        with self._lock:
            if self._state == CircuitState.CLOSED:
                return True
            if self._state == CircuitState.OPEN:
                if time.monotonic() - self._opened_at < self.cooldown_seconds:
                    return False
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.info(f"Circuit '{self.name}' half-open, trying provider again")
            # Half-open: one trial call at a time
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def record_success(self):
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.info(f"Circuit '{self.name}' closed, provider recovered")
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._trial_in_flight = False

    def record_error(self):
        with self._lock:
            self._consecutive_failures += 1
            self._trial_in_flight = False
            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED
                and self._consecutive_failures >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                logger.warning(
                    f"Circuit '{self.name}' open after {self._consecutive_failures} consecutive failures, "
                    f"skipping provider for {self.cooldown_seconds:.0f}s"
                )

    def record_not_attempted(self):
        """The call never reached the provider; frees the half-open trial slot without judging it."""
        with self._lock:
            self._trial_in_flight = False

    def reset(self):
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._opened_at = None
            self._trial_in_flight = False
