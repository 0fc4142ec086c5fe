"""
Circuit breaker guarding one upstream.

CLOSED    -> OPEN after `failure_threshold` consecutive failures.
OPEN      -> HALF_OPEN once the cooldown has elapsed; one probe is admitted.
HALF_OPEN -> CLOSED after `success_threshold` successful probes,
             back to OPEN on any failure.

State lives in memory only and resets with the process.
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from loguru import logger


class BreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class BreakerOptions:
    failure_threshold: int = 5
    success_threshold: int = 2
    cooldown_period_ms: int = 30_000
    # Probes allowed in flight at once while HALF_OPEN
    half_open_max_calls: int = 1

    def __post_init__(self):
        if self.failure_threshold <= 0:
            raise ValueError("failure_threshold must be greater than 0")
        if self.success_threshold <= 0:
            raise ValueError("success_threshold must be greater than 0")
        if self.cooldown_period_ms < 0:
            raise ValueError("cooldown_period_ms must not be negative")
        if self.half_open_max_calls <= 0:
            raise ValueError("half_open_max_calls must be greater than 0")


class CircuitBreaker:
    """
    Thread-safe breaker state machine.

    Callers must call allow_request() once before each upstream call and
    then exactly one of record_success(), record_failure() or release().
    """

    def __init__(
        self,
        options: Optional[BreakerOptions] = None,
        name: str = "upstream",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.options = options or BreakerOptions()
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()

        self._state = BreakerState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._next_try_at = 0.0
        self._probes_in_flight = 0

    @property
    def state(self) -> BreakerState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def success_count(self) -> int:
        return self._success_count

    def allow_request(self) -> bool:
        with self._lock:
            if self._state is BreakerState.CLOSED:
                return True

            if self._state is BreakerState.OPEN:
                if self._clock() < self._next_try_at:
                    return False
                self._state = BreakerState.HALF_OPEN
                self._probes_in_flight = 0
                logger.info("Circuit '{}' half-open, admitting probe", self.name)

            if self._probes_in_flight >= self.options.half_open_max_calls:
                return False
            self._probes_in_flight += 1
            return True

    def record_success(self) -> None:
        with self._lock:
            if self._state is BreakerState.HALF_OPEN:
                self._release_probe()
                self._success_count += 1
                if self._success_count >= self.options.success_threshold:
                    self._close()
            elif self._state is BreakerState.CLOSED:
                self._reset_counts()

    def record_failure(self) -> None:
        with self._lock:
            if self._state is BreakerState.HALF_OPEN:
                self._open()
            elif self._state is BreakerState.CLOSED:
                self._failure_count += 1
                if self._failure_count >= self.options.failure_threshold:
                    self._open()
            # Late results from calls dispatched before opening are ignored

    def release(self) -> None:
        """Give back a probe slot whose call never settled (cancelled)."""
        with self._lock:
            if self._state is BreakerState.HALF_OPEN:
                self._release_probe()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            retry_in_ms = 0
            if self._state is BreakerState.OPEN:
                retry_in_ms = max(0, round((self._next_try_at - self._clock()) * 1000))
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "retry_in_ms": retry_in_ms,
            }

    # Transitions, called with the lock held

    def _open(self) -> None:
        self._state = BreakerState.OPEN
        self._next_try_at = self._clock() + self.options.cooldown_period_ms / 1000
        self._probes_in_flight = 0
        self._reset_counts()
        logger.warning(
            "Circuit '{}' opened, blocking calls for {} ms",
            self.name,
            self.options.cooldown_period_ms,
        )

    def _close(self) -> None:
        self._state = BreakerState.CLOSED
        self._probes_in_flight = 0
        self._reset_counts()
        logger.info("Circuit '{}' closed, upstream recovered", self.name)

    def _release_probe(self) -> None:
        if self._probes_in_flight > 0:
            self._probes_in_flight -= 1

    def _reset_counts(self) -> None:
        self._failure_count = 0
        self._success_count = 0
