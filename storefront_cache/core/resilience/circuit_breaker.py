"""
Circuit Breaker and Retry Helpers for the Key-Value Store.

MECHANISM OF ACTION:
-------------------
1.  **Process-Local State**:
    The breaker lives in the process that talks to the KV store. Every
    instance judges the store from its own calls; nothing is shared, because
    the shared store is exactly what may be down.

2.  **State Transitions**:
    - **CLOSED**: The store is healthy. KV calls are allowed.
      - On Failure: the consecutive failure counter increments.
      - On Success: the counter resets to 0.
      - Threshold Reached: failures >= CB_FAILURE_THRESHOLD opens the circuit.

    - **OPEN**: The store is considered down. KV calls are skipped, reads are
      served from origin as misses and write-backs are dropped.
      - Recovery: after CB_RECOVERY_TIMEOUT seconds the next call becomes a probe.

    - **HALF-OPEN**: Probing mode.
      - Behavior: allows ONE probe call through.
      - On Success: the store recovered, state returns to CLOSED.
      - On Failure: state returns to OPEN and the recovery timer restarts.

3.  **Retries**:
    `create_retry_decorator` wraps connection establishment with exponential
    jitter backoff (Tenacity). Per-request KV reads are never retried: the
    bounded wait already caps their latency and a miss is cheap.
"""

import logging
import time
from collections.abc import Callable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from storefront_cache.core.config.constants import CircuitState, Stage
from storefront_cache.core.config.settings import get_settings
from storefront_cache.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class KVCircuitBreaker:
    """
    A lightweight, in-process circuit breaker for the shared KV store.

    Designed for:
    1. Cooperative asyncio execution (no locks: transitions never await).
    2. Bounding tail latency during a KV outage: once open, requests go
       straight to origin instead of each paying the read timeout.
    """

    def __init__(
        self,
        name: str = "kv",
        failure_threshold: int | None = None,
        recovery_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Callable[[str, CircuitState], None] | None = None,
    ):
        settings = get_settings()
        self.name = name
        self._max_failures = failure_threshold or settings.circuit_breaker.CB_FAILURE_THRESHOLD
        self._reset_timeout = (
            recovery_timeout
            if recovery_timeout is not None
            else settings.circuit_breaker.CB_RECOVERY_TIMEOUT
        )
        self._clock = clock
        self._on_state_change = on_state_change

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._opened_at: float | None = None
        self._probe_started_at: float | None = None

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    def _set_state(self, state: CircuitState) -> None:
        if state == self._state:
            return
        self._state = state
        log_stage(
            logger,
            Stage.CIRCUIT_BREAKER,
            f"Circuit '{self.name}' changed state to {state.value}",
            level="warning" if state == CircuitState.OPEN else "info",
            failures=self._failures,
        )
        if self._on_state_change is not None:
            self._on_state_change(self.name, state)

    def allow_request(self) -> bool:
        """
        Decide whether the next KV call may proceed.

        Logic:
        1. CLOSED -> allow.
        2. OPEN and the recovery timeout elapsed -> become HALF_OPEN, allow one probe.
        3. HALF_OPEN with a probe in flight -> block, unless that probe has
           been outstanding longer than the recovery timeout.
        """
        if self._state == CircuitState.CLOSED:
            return True

        now = self._clock()

        if self._state == CircuitState.OPEN:
            if self._opened_at is not None and now - self._opened_at >= self._reset_timeout:
                self._set_state(CircuitState.HALF_OPEN)
                self._probe_started_at = now
                return True
            return False

        # HALF_OPEN
        if self._probe_started_at is None or now - self._probe_started_at >= self._reset_timeout:
            self._probe_started_at = now
            return True
        return False

    def record_success(self) -> None:
        """A KV call succeeded: close the circuit and reset the counter."""
        if self._state != CircuitState.CLOSED:
            logger.info(f"Circuit '{self.name}' recovered, resetting to CLOSED")
        self._failures = 0
        self._opened_at = None
        self._probe_started_at = None
        self._set_state(CircuitState.CLOSED)

    def record_failure(self) -> None:
        """A KV call failed or timed out."""
        self._failures += 1

        if self._state == CircuitState.HALF_OPEN:
            self._open()
            return

        if self._state == CircuitState.CLOSED and self._failures >= self._max_failures:
            logger.error(f"Circuit '{self.name}' tripped after {self._failures} failures")
            self._open()

    def _open(self) -> None:
        self._opened_at = self._clock()
        self._probe_started_at = None
        self._set_state(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the circuit closed (tests and operator tooling)."""
        self.record_success()

    def stats(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "failures": self._failures,
            "failure_threshold": self._max_failures,
            "recovery_timeout": self._reset_timeout,
        }


# ============================================================================
# Retry Decorator
# ============================================================================


def create_retry_decorator(
    max_attempts: int = 3,
    base_delay: float = 0.2,
    max_delay: float = 2.0,
    retry_exceptions: tuple = (TimeoutError, ConnectionError, OSError),
):
    std_logger = logging.getLogger(__name__)  # Tenacity needs std lib logger

    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential_jitter(initial=base_delay, max=max_delay),
        retry=retry_if_exception_type(retry_exceptions),
        before_sleep=before_sleep_log(std_logger, logging.WARNING),
        reraise=True,
    )
