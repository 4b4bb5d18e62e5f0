"""
Metrics Collector
=================

Manager-level request counters for one service. Every dispatch attempt is
counted, including attempts rejected by an open circuit breaker.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from .providers.base import ServiceMetrics
from .circuit_breaker import CircuitState


class MetricsCollector:
    """Thread-safe counters for a single service."""

    # A health check result overrides breaker-derived health for this long
    HEALTH_OVERRIDE_TTL = 60.0

    def __init__(self, service_id: str, clock: Callable[[], float] = time.monotonic):
        self.service_id = service_id
        self._clock = clock
        self._lock = threading.Lock()

        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._average_response_time = 0.0
        self._last_request_time: Optional[datetime] = None

        self._health_result: Optional[bool] = None
        self._health_checked_at: Optional[float] = None

    def record_attempt(self) -> None:
        """Count a dispatch attempt before it is made."""
        with self._lock:
            self._total_requests += 1
            self._last_request_time = datetime.now(timezone.utc)

    def record_success(self, response_time_ms: float) -> None:
        """Count a success and fold its latency into the running mean."""
        with self._lock:
            self._successful_requests += 1
            self._average_response_time += (
                response_time_ms - self._average_response_time
            ) / self._successful_requests
            self._last_request_time = datetime.now(timezone.utc)

    def record_failure(self) -> None:
        with self._lock:
            self._failed_requests += 1
            self._last_request_time = datetime.now(timezone.utc)

    def record_health_check(self, healthy: bool) -> None:
        """Remember an explicit health check result."""
        with self._lock:
            self._health_result = healthy
            self._health_checked_at = self._clock()

    def _recent_health_result(self) -> Optional[bool]:
        if self._health_checked_at is None:
            return None
        if self._clock() - self._health_checked_at > self.HEALTH_OVERRIDE_TTL:
            return None
        return self._health_result

    def snapshot(self, breaker_state: CircuitState) -> ServiceMetrics:
        """Copy of the current counters.

        Args:
            breaker_state: Current state of the service's circuit breaker

        Returns:
            Detached ServiceMetrics value
        """
        with self._lock:
            health = self._recent_health_result()
            if health is None:
                health = breaker_state != CircuitState.OPEN

            return ServiceMetrics(
                service_id=self.service_id,
                total_requests=self._total_requests,
                successful_requests=self._successful_requests,
                failed_requests=self._failed_requests,
                average_response_time=self._average_response_time,
                last_request_time=self._last_request_time,
                is_healthy=health,
                circuit_breaker_state=breaker_state.value,
            )

    def reset(self) -> None:
        with self._lock:
            self._total_requests = 0
            self._successful_requests = 0
            self._failed_requests = 0
            self._average_response_time = 0.0
            self._last_request_time = None
            self._health_result = None
            self._health_checked_at = None
