"""
AI Service Manager - Multi-Provider Orchestration
================================================

Routes analysis requests across the enabled AI services, trying the
preferred, default and fallback services in order behind per-service
circuit breakers. Owns the service registry and its lifecycle.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Union

from .circuit_breaker import CircuitBreaker, CircuitState
from .metrics import MetricsCollector
from .providers.base import AnalysisResponse, ServiceMetrics
from .providers.factory import ProviderFactory, default_provider_factory
from .registry import ServiceEntry, ServiceRegistry
from ..config.settings import (
    AIAnalysisSettings, AIServiceType, ServiceManagerConfig, get_settings,
)
from ..utils.exceptions import (
    AIAnalysisError, AllServicesFailedError, ConfigurationError, ErrorCode,
    ProviderError, ServiceNotFoundError, UnsupportedServiceTypeError, ValidationError,
)
from ..utils.logging import get_logger_for_component


ServiceId = Union[AIServiceType, str]


class AIServiceManager:
    """Multi-provider analysis orchestrator with circuit-breaker fallback."""

    def __init__(
        self,
        config: ServiceManagerConfig,
        provider_factory: Optional[ProviderFactory] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize service manager. No provider is built until ``initialize()``.

        Args:
            config: Services, routing policy and breaker options
            provider_factory: Builds providers per service type (default: SDK providers)
            clock: Monotonic time source shared by breakers and metrics
        """
        self.config = config
        self.provider_factory = provider_factory or default_provider_factory()
        self._clock = clock

        self.registry = ServiceRegistry()
        self._init_lock = asyncio.Lock()
        self._initialized = False

        self.logger = get_logger_for_component("service_manager")

        for warning in self.config.validate_configuration():
            self.logger.warning(warning)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AIAnalysisSettings] = None,
        provider_factory: Optional[ProviderFactory] = None,
    ) -> "AIServiceManager":
        """Build a manager from environment-driven settings."""
        settings = settings or get_settings()
        return cls(settings.ai.build_manager_config(), provider_factory=provider_factory)

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # Lifecycle

    async def initialize(self) -> None:
        """Register provider, breaker and metrics for every enabled service.

        Safe to call repeatedly and concurrently; only the first call does work.

        Raises:
            UnsupportedServiceTypeError: If some service could not be built. The
                services that were built remain registered and usable.
        """
        async with self._init_lock:
            if self._initialized:
                self.logger.debug("Service manager already initialized")
                return

            async with self.registry.lock.write():
                failures = self._register_services(self.config.enabled_services)
                self._initialized = True

        self.logger.info(
            f"Service manager initialized with services: "
            f"{[s.value for s in self.registry._keys()]}"
        )
        self._raise_first_failure(failures)

    def _register_services(
        self, service_ids: List[AIServiceType]
    ) -> Dict[AIServiceType, AIAnalysisError]:
        """Build and register services. Caller holds the registry write lock."""
        failures: Dict[AIServiceType, AIAnalysisError] = {}

        for service_id in service_ids:
            if self.registry._contains(service_id):
                continue

            try:
                self.registry._add(self._build_entry(service_id))
                self.logger.info(f"Initialized AI service: {service_id.value}")
            except AIAnalysisError as e:
                failures[service_id] = e
                self.logger.error(f"Failed to initialize {service_id.value}: {e}")
            except Exception as e:
                failures[service_id] = UnsupportedServiceTypeError(
                    service_id.value,
                    message=f"Failed to construct client for {service_id.value}: {e}",
                )
                self.logger.error(f"Failed to initialize {service_id.value}: {e}", exc_info=True)

        return failures

    def _build_entry(self, service_id: AIServiceType) -> ServiceEntry:
        provider_config = self.config.get_provider_config(service_id)
        if provider_config is None:
            raise ConfigurationError(
                f"Configuration not found for service: {service_id.value}",
                config_key="services",
            )

        provider = self.provider_factory.create(provider_config)
        return ServiceEntry(
            service_id=service_id,
            provider=provider,
            breaker=CircuitBreaker(provider, self.config.circuit_breaker_options, clock=self._clock),
            metrics=MetricsCollector(service_id.value, clock=self._clock),
        )

    async def _ensure_initialized(self) -> None:
        """Initialize on first use, keeping whatever services could be built."""
        if self._initialized:
            return

        try:
            await self.initialize()
        except UnsupportedServiceTypeError as e:
            self.logger.warning(f"Continuing with partially initialized services: {e}")

    @staticmethod
    def _raise_first_failure(failures: Dict[AIServiceType, AIAnalysisError]) -> None:
        if failures:
            raise next(iter(failures.values()))

    async def update_configuration(self, updates: Dict[str, Any]) -> None:
        """Merge configuration fields and bring the registry in line.

        Services dropped from ``enabled_services`` are disposed immediately;
        newly enabled services are initialized. Afterwards
        ``get_enabled_services()`` equals the new ``enabled_services``.

        Args:
            updates: Subset of ``ServiceManagerConfig`` fields

        Raises:
            ConfigurationError: If the merged configuration is invalid
            UnsupportedServiceTypeError: If a newly enabled service could not be built
        """
        async with self._init_lock:
            new_config = self.config.merged(updates)

            async with self.registry.lock.write():
                for service_id in self.registry._keys():
                    if service_id in new_config.enabled_services:
                        self._warn_on_provider_change(service_id, new_config)
                        continue

                    entry = self.registry._pop(service_id)
                    await self._dispose(entry)
                    self.logger.info(f"Disabled AI service: {service_id.value}")

                self.config = new_config
                failures = self._register_services(new_config.enabled_services)
                self.registry._reorder(new_config.enabled_services)
                self._initialized = True

        for warning in new_config.validate_configuration():
            self.logger.warning(warning)

        self.logger.info(
            f"Configuration updated, enabled services: "
            f"{[s.value for s in new_config.enabled_services]}"
        )
        self._raise_first_failure(failures)

    def _warn_on_provider_change(self, service_id: AIServiceType, new_config: ServiceManagerConfig) -> None:
        old = self.config.get_provider_config(service_id)
        new = new_config.get_provider_config(service_id)
        if old != new:
            self.logger.warning(
                f"Provider settings for {service_id.value} changed but the service is live; "
                f"changes apply after cleanup() and re-initialization"
            )

    async def cleanup(self) -> None:
        """Dispose every service and empty ``enabled_services``.

        Safe to call in any state, including before ``initialize()``.
        """
        async with self._init_lock:
            async with self.registry.lock.write():
                entries = self.registry._pop_all()
                for entry in entries:
                    await self._dispose(entry)

                self.config = self.config.model_copy(update={"enabled_services": []})
                self._initialized = False

        self.logger.info(f"Service manager cleaned up ({len(entries)} services disposed)")

    async def _dispose(self, entry: ServiceEntry) -> None:
        try:
            await entry.provider.close()
        except Exception as e:
            self.logger.warning(f"Error closing {entry.service_id.value} client: {e}")
        entry.breaker.reset()
        entry.metrics.reset()

    # Analysis

    async def analyze_content(
        self,
        content: str,
        content_type: str,
        preferred_service: Optional[ServiceId] = None,
    ) -> AnalysisResponse:
        """Analyze content with the first service in the fallback chain that succeeds.

        Args:
            content: Content to analyze
            content_type: MIME-like content type
            preferred_service: Service to try first, if enabled

        Returns:
            Response of the first successful service

        Raises:
            ValidationError: If ``preferred_service`` is not a known service id
            AllServicesFailedError: If every candidate failed
        """
        preferred = None
        if preferred_service is not None:
            preferred = self._coerce_service_id(preferred_service)
            if preferred is None:
                raise ValidationError(
                    f"Unknown AI service: {preferred_service}",
                    field_name="preferred_service",
                    error_code=ErrorCode.VALIDATION_UNKNOWN_SERVICE,
                )

        await self._ensure_initialized()

        entries = await self.registry.snapshot()
        candidates = self._build_candidate_order(preferred, list(entries))

        errors: Dict[str, Exception] = {}

        for service_id in candidates:
            entry = entries[service_id]
            entry.metrics.record_attempt()
            start_time = self._clock()

            try:
                self.logger.debug(f"Trying AI service: {service_id.value}")
                response = await entry.breaker.fire(content, content_type)
            except ProviderError as e:
                entry.metrics.record_failure()
                errors[service_id.value] = e
                self.logger.warning(f"AI service {service_id.value} failed: {e}")
                continue

            entry.metrics.record_success((self._clock() - start_time) * 1000)
            self.logger.info(
                f"Analysis completed by {service_id.value} "
                f"(confidence={response.confidence:.2f}, time={response.processing_time}ms)"
            )
            return response

        error = AllServicesFailedError(errors)
        self.logger.error(error.message)
        raise error

    def _build_candidate_order(
        self,
        preferred: Optional[AIServiceType],
        enabled: List[AIServiceType],
    ) -> List[AIServiceType]:
        """Preferred, then default, then fallback order; de-duplicated, enabled only."""
        candidates: List[AIServiceType] = []

        if preferred is not None and preferred in enabled:
            candidates.append(preferred)

        if self.config.default_service not in candidates:
            candidates.append(self.config.default_service)

        for service_id in self.config.fallback_order:
            if service_id not in candidates:
                candidates.append(service_id)

        return [s for s in candidates if s in enabled]

    @staticmethod
    def _coerce_service_id(service_id: ServiceId) -> Optional[AIServiceType]:
        try:
            return AIServiceType(service_id)
        except ValueError:
            return None

    async def _get_entry(self, service_id: ServiceId) -> ServiceEntry:
        resolved = self._coerce_service_id(service_id)
        entry = await self.registry.get(resolved) if resolved is not None else None
        if entry is None:
            raise ServiceNotFoundError(str(getattr(service_id, "value", service_id)))
        return entry

    # Health and metrics

    async def get_service_health(
        self, service_id: Optional[ServiceId] = None
    ) -> Union[bool, Dict[AIServiceType, bool]]:
        """Check one service, or every live service when no id is given.

        Raises:
            ServiceNotFoundError: If ``service_id`` is not in the registry
        """
        await self._ensure_initialized()

        if service_id is not None:
            entry = await self._get_entry(service_id)
            return await self._check_health(entry)

        entries = await self.registry.snapshot()
        results = await asyncio.gather(*(self._check_health(entry) for entry in entries.values()))
        return dict(zip(entries, results))

    async def _check_health(self, entry: ServiceEntry) -> bool:
        # Health checks bypass the breaker and never feed its statistics
        try:
            healthy = await asyncio.wait_for(
                entry.provider.health_check(),
                timeout=self.config.circuit_breaker_options.timeout,
            )
        except asyncio.TimeoutError:
            self.logger.warning(f"Health check for {entry.service_id.value} timed out")
            healthy = False
        except Exception as e:
            self.logger.warning(f"Health check for {entry.service_id.value} failed: {e}")
            healthy = False

        entry.metrics.record_health_check(bool(healthy))
        return bool(healthy)

    async def get_service_metrics(
        self, service_id: Optional[ServiceId] = None
    ) -> Union[ServiceMetrics, Dict[AIServiceType, ServiceMetrics]]:
        """Current counters for one service, or for every live service.

        Raises:
            ServiceNotFoundError: If ``service_id`` is not in the registry
        """
        await self._ensure_initialized()

        if service_id is not None:
            entry = await self._get_entry(service_id)
            return entry.metrics.snapshot(entry.breaker.state)

        entries = await self.registry.snapshot()
        return {
            sid: entry.metrics.snapshot(entry.breaker.state)
            for sid, entry in entries.items()
        }

    async def get_enabled_services(self) -> List[AIServiceType]:
        """Live registry keys, in enabled order."""
        return await self.registry.keys()

    async def get_circuit_breaker_status(self) -> Dict[str, Dict[str, Any]]:
        entries = await self.registry.snapshot()
        return {sid.value: entry.breaker.get_state_info() for sid, entry in entries.items()}

    def __str__(self) -> str:
        return f"AIServiceManager(default={self.config.default_service.value}, services={len(self.registry)})"

    def __repr__(self) -> str:
        open_count = sum(
            1 for entry in self.registry._values()
            if entry.breaker.state == CircuitState.OPEN
        )
        return (f"AIServiceManager(default={self.config.default_service.value}, "
                f"services={len(self.registry)}, open_circuits={open_count})")
