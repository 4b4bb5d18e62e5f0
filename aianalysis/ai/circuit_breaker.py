"""
Circuit Breaker
===============

Per-provider three state breaker with a rolling error-rate window.

    CLOSED    --[error rate > threshold]-->  OPEN
    OPEN      --[reset_timeout elapsed]--->  HALF_OPEN
    HALF_OPEN --[trial succeeds]---------->  CLOSED
    HALF_OPEN --[trial fails]------------->  OPEN

Each breaker wraps exactly one provider and is never shared.
"""

import asyncio
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional

from .providers.base import AIProvider, AnalysisResponse
from ..config.settings import CircuitBreakerOptions
from ..utils.exceptions import CircuitOpenError, ErrorCode, ProviderError
from ..utils.logging import get_logger_for_component


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"          # Normal operation
    OPEN = "open"              # Failing, requests rejected
    HALF_OPEN = "half_open"    # One trial call allowed


@dataclass
class _Sample:
    timestamp: float
    success: bool


@dataclass(frozen=True)
class _Permit:
    """Admission ticket for one call, bound to the state generation that admitted it."""
    generation: int
    trial: bool = False


class CircuitBreaker:
    """Circuit breaker guarding a single provider's ``analyze`` call."""

    def __init__(
        self,
        provider: AIProvider,
        options: Optional[CircuitBreakerOptions] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            provider: Provider whose calls are guarded
            options: Timeout, threshold and reset options
            clock: Monotonic time source in seconds
        """
        self.provider = provider
        self.service_id = provider.service_id.value
        self.options = options or CircuitBreakerOptions()
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._samples: Deque[_Sample] = deque()
        self._opened_at: Optional[float] = None
        self._trial_in_flight = False
        self._generation = 0
        self.last_transition_time = self._clock()
        self.rejected_calls = 0

        self.logger = get_logger_for_component("circuit_breaker", service_id=self.service_id)

    @property
    def state(self) -> CircuitState:
        """Current state, applying the OPEN -> HALF_OPEN timeout."""
        with self._lock:
            self._refresh_state()
            return self._state

    def _refresh_state(self) -> None:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.options.reset_timeout:
                self._transition(CircuitState.HALF_OPEN)

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._generation += 1
        self.last_transition_time = self._clock()

        if new_state == CircuitState.OPEN:
            self._opened_at = self.last_transition_time
            self.logger.warning(f"Circuit breaker {old_state.value} -> open")
        elif new_state == CircuitState.HALF_OPEN:
            self._trial_in_flight = False
            self.logger.info("Circuit breaker open -> half_open, allowing one trial call")
        else:
            self._opened_at = None
            self._samples.clear()
            self.logger.info(f"Circuit breaker {old_state.value} -> closed")

    def _prune(self, now: float) -> None:
        horizon = now - self.options.rolling_window
        while self._samples and self._samples[0].timestamp < horizon:
            self._samples.popleft()

    def _error_percentage(self) -> float:
        if not self._samples:
            return 0.0
        failures = sum(1 for s in self._samples if not s.success)
        return failures / len(self._samples) * 100

    def _acquire_permission(self) -> Optional[_Permit]:
        """Admit a call, or return None to reject it. Reserves the HALF_OPEN trial."""
        with self._lock:
            self._refresh_state()

            if self._state == CircuitState.CLOSED:
                return _Permit(self._generation)

            if self._state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return _Permit(self._generation, trial=True)

            self.rejected_calls += 1
            return None

    def _is_current(self, permit: _Permit) -> bool:
        # Calls admitted before the last transition no longer affect the state
        if permit.generation != self._generation:
            self.logger.debug("Ignoring outcome of a call admitted before the last state change")
            return False
        return True

    def record_success(self, permit: _Permit) -> None:
        """Record a successful call."""
        with self._lock:
            if not self._is_current(permit):
                return

            if permit.trial:
                self._transition(CircuitState.CLOSED)
                return

            now = self._clock()
            self._samples.append(_Sample(now, True))
            self._prune(now)

    def record_failure(self, permit: _Permit) -> None:
        """Record a failed call and open the circuit when warranted."""
        with self._lock:
            if not self._is_current(permit):
                return

            if permit.trial:
                self._transition(CircuitState.OPEN)
                return

            now = self._clock()
            self._samples.append(_Sample(now, False))
            self._prune(now)

            if len(self._samples) < self.options.volume_threshold:
                return

            error_percentage = self._error_percentage()
            if error_percentage > self.options.error_threshold_percentage:
                self.logger.warning(
                    f"Error rate {error_percentage:.1f}% exceeds "
                    f"{self.options.error_threshold_percentage:.1f}% over {len(self._samples)} calls"
                )
                self._transition(CircuitState.OPEN)

    def _time_until_half_open(self) -> float:
        if self._opened_at is None:
            return 0.0
        elapsed = self._clock() - self._opened_at
        return max(0.0, self.options.reset_timeout - elapsed)

    async def fire(self, content: str, content_type: str) -> AnalysisResponse:
        """Call the provider through the breaker.

        Args:
            content: Content to analyze
            content_type: MIME-like content type

        Returns:
            Successful analysis response

        Raises:
            CircuitOpenError: If the circuit rejects the call without contacting the provider
            ProviderError: If the provider failed, timed out or reported no success
        """
        permit = self._acquire_permission()
        if permit is None:
            with self._lock:
                retry_in = self._time_until_half_open()
            raise CircuitOpenError(self.service_id, retry_in=retry_in)

        try:
            response = await asyncio.wait_for(
                self.provider.analyze(content, content_type),
                timeout=self.options.timeout,
            )
        except asyncio.CancelledError:
            if permit.trial:
                with self._lock:
                    if permit.generation == self._generation:
                        self._trial_in_flight = False
            raise
        except asyncio.TimeoutError as e:
            self.record_failure(permit)
            raise ProviderError(
                f"{self.service_id} timed out after {self.options.timeout:.1f}s",
                service_id=self.service_id,
                error_code=ErrorCode.AI_TIMEOUT,
                retryable=True,
            ) from e
        except ProviderError:
            self.record_failure(permit)
            raise
        except Exception as e:
            self.record_failure(permit)
            raise ProviderError(
                f"Unexpected error from {self.service_id}: {e}",
                service_id=self.service_id,
                error_code=ErrorCode.AI_PROCESSING_ERROR,
            ) from e

        if not response.success:
            self.record_failure(permit)
            raise ProviderError(
                response.error or f"{self.service_id} returned an unsuccessful response",
                service_id=self.service_id,
                error_code=ErrorCode.AI_INVALID_RESPONSE,
            )

        self.record_success(permit)
        return response

    def reset(self) -> None:
        """Force the circuit closed and drop statistics."""
        with self._lock:
            self._transition(CircuitState.CLOSED)

    def get_state_info(self) -> Dict[str, Any]:
        """Get current circuit breaker state information."""
        with self._lock:
            self._refresh_state()
            return {
                "state": self._state.value,
                "window_calls": len(self._samples),
                "error_percentage": round(self._error_percentage(), 1),
                "rejected_calls": self.rejected_calls,
                "last_transition_time": self.last_transition_time,
            }
