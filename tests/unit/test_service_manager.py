"""
AI Service Manager Tests
=======================

Fallback dispatch, health and metrics reporting, and lifecycle operations
of the service manager, using fake providers injected through the factory.
"""

import asyncio

import pytest

from aianalysis.ai.circuit_breaker import CircuitState
from aianalysis.ai.service_manager import AIServiceManager
from aianalysis.config.settings import AIServiceType, ProviderConfig, ServiceManagerConfig
from aianalysis.utils.exceptions import (
    AllServicesFailedError,
    ConfigurationError,
    ProviderError,
    ServiceNotFoundError,
    UnsupportedServiceTypeError,
    ValidationError,
)

GPT4 = AIServiceType.GPT4
CLAUDE = AIServiceType.CLAUDE
GEMINI = AIServiceType.GEMINI


class TestAnalyzeContent:
    """Sequential fallback through the candidate list."""

    @pytest.mark.asyncio
    async def test_default_service_answers(self, manager, provider_factory):
        response = await manager.analyze_content("hello", "text/plain")

        assert response.success is True
        assert response.metadata.service_id == "gpt4"
        assert provider_factory.instances[GPT4].analyze_calls == 1
        assert provider_factory.instances[CLAUDE].analyze_calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_when_default_fails(self, manager, provider_factory):
        provider_factory.instances[GPT4].fail_with = RuntimeError("gpt4 down")

        response = await manager.analyze_content("hello", "text/plain")

        assert response.metadata.service_id == "claude"
        assert provider_factory.instances[GPT4].analyze_calls == 1
        assert provider_factory.instances[CLAUDE].analyze_calls == 1

    @pytest.mark.asyncio
    async def test_preferred_service_is_tried_first(self, manager, provider_factory):
        response = await manager.analyze_content("hello", "text/plain", CLAUDE)

        assert response.metadata.service_id == "claude"
        assert provider_factory.instances[GPT4].analyze_calls == 0

    @pytest.mark.asyncio
    async def test_preferred_service_accepts_string_id(self, manager, provider_factory):
        response = await manager.analyze_content("hello", "text/plain", "claude")

        assert response.metadata.service_id == "claude"
        assert provider_factory.instances[GPT4].analyze_calls == 0

    @pytest.mark.asyncio
    async def test_invalid_preferred_service_is_validation_error(self, manager, provider_factory):
        with pytest.raises(ValidationError):
            await manager.analyze_content("hello", "text/plain", "gpt5")

        assert provider_factory.instances[GPT4].analyze_calls == 0
        assert provider_factory.instances[CLAUDE].analyze_calls == 0

    @pytest.mark.asyncio
    async def test_preferred_service_not_enabled_is_skipped(self, manager, provider_factory):
        response = await manager.analyze_content("hello", "text/plain", GEMINI)

        assert response.metadata.service_id == "gpt4"
        assert GEMINI not in provider_factory.instances

    @pytest.mark.asyncio
    async def test_all_services_failing_raises_aggregate_error(self, manager, provider_factory):
        provider_factory.instances[GPT4].fail_with = RuntimeError("gpt4 down")
        provider_factory.instances[CLAUDE].fail_with = RuntimeError("claude down")

        with pytest.raises(AllServicesFailedError) as exc_info:
            await manager.analyze_content("hello", "text/plain")

        error = exc_info.value
        assert "All AI services failed" in str(error)
        assert "gpt4 down" in str(error)
        assert "claude down" in str(error)
        assert list(error.errors) == ["gpt4", "claude"]
        assert all(isinstance(e, ProviderError) for e in error.errors.values())

    @pytest.mark.asyncio
    async def test_open_breaker_skips_provider(self, manager, provider_factory):
        gpt4 = provider_factory.instances[GPT4]
        gpt4.fail_with = RuntimeError("gpt4 down")
        await manager.analyze_content("first", "text/plain")
        assert gpt4.analyze_calls == 1

        response = await manager.analyze_content("second", "text/plain")

        assert response.metadata.service_id == "claude"
        assert gpt4.analyze_calls == 1
        metrics = await manager.get_service_metrics(GPT4)
        assert metrics.total_requests == 2
        assert metrics.failed_requests == 2
        assert metrics.circuit_breaker_state == "open"
        assert metrics.is_healthy is False

    @pytest.mark.asyncio
    async def test_recovers_after_reset_timeout(self, manager, provider_factory, fake_clock):
        gpt4 = provider_factory.instances[GPT4]
        gpt4.fail_with = RuntimeError("gpt4 down")
        await manager.analyze_content("first", "text/plain")

        gpt4.fail_with = None
        fake_clock.advance(30.0)
        response = await manager.analyze_content("second", "text/plain")

        assert response.metadata.service_id == "gpt4"
        status = await manager.get_circuit_breaker_status()
        assert status["gpt4"]["state"] == CircuitState.CLOSED.value

    @pytest.mark.asyncio
    async def test_metrics_updated_on_success(self, manager):
        await manager.analyze_content("hello", "text/plain")

        metrics = await manager.get_service_metrics("gpt4")
        assert metrics.total_requests == 1
        assert metrics.successful_requests == 1
        assert metrics.failed_requests == 0
        assert metrics.last_request_time is not None

    @pytest.mark.asyncio
    async def test_latency_measured_with_manager_clock(self, manager, provider_factory, fake_clock):
        gpt4 = provider_factory.instances[GPT4]
        analyze = gpt4.analyze

        async def slow_analyze(content, content_type):
            fake_clock.advance(0.25)
            return await analyze(content, content_type)

        gpt4.analyze = slow_analyze

        await manager.analyze_content("hello", "text/plain")

        metrics = await manager.get_service_metrics(GPT4)
        assert metrics.average_response_time == pytest.approx(250.0)

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_all_counted(self, manager, provider_factory):
        provider_factory.instances[GPT4].delay = 0.01

        await asyncio.gather(*(manager.analyze_content(f"c{i}", "text/plain") for i in range(10)))

        metrics = await manager.get_service_metrics(GPT4)
        assert metrics.total_requests == 10
        assert metrics.successful_requests == 10

    @pytest.mark.asyncio
    async def test_lazily_initializes(self, manager_config, provider_factory):
        fresh = AIServiceManager(manager_config, provider_factory=provider_factory)

        response = await fresh.analyze_content("hello", "text/plain")

        assert response.metadata.service_id == "gpt4"
        assert fresh.is_initialized
        await fresh.cleanup()


class TestCandidateOrder:
    """Candidate list construction."""

    def _manager(self, provider_configs, default, fallback, factory_cls):
        config = ServiceManagerConfig(
            services=provider_configs,
            enabled_services=[GPT4, CLAUDE, GEMINI],
            fallback_order=fallback,
            default_service=default,
        )
        return AIServiceManager(config, provider_factory=factory_cls())

    def test_preferred_then_default_then_fallback(self, provider_configs, fake_factory_cls):
        manager = self._manager(provider_configs, CLAUDE, [GEMINI, GPT4, CLAUDE], fake_factory_cls)

        order = manager._build_candidate_order(GPT4, [GPT4, CLAUDE, GEMINI])

        assert order == [GPT4, CLAUDE, GEMINI]

    def test_no_preferred_starts_with_default(self, provider_configs, fake_factory_cls):
        manager = self._manager(provider_configs, GEMINI, [GPT4, CLAUDE], fake_factory_cls)

        order = manager._build_candidate_order(None, [GPT4, CLAUDE, GEMINI])

        assert order == [GEMINI, GPT4, CLAUDE]

    def test_duplicates_removed(self, provider_configs, fake_factory_cls):
        manager = self._manager(provider_configs, GPT4, [GPT4, GPT4, CLAUDE], fake_factory_cls)

        order = manager._build_candidate_order(GPT4, [GPT4, CLAUDE, GEMINI])

        assert order == [GPT4, CLAUDE]

    def test_filtered_to_enabled(self, provider_configs, fake_factory_cls):
        manager = self._manager(provider_configs, GEMINI, [GPT4, CLAUDE, GEMINI], fake_factory_cls)

        order = manager._build_candidate_order(CLAUDE, [GPT4])

        assert order == [GPT4]

    def test_empty_when_nothing_enabled(self, provider_configs, fake_factory_cls):
        manager = self._manager(provider_configs, GPT4, [GPT4, CLAUDE], fake_factory_cls)

        assert manager._build_candidate_order(GPT4, []) == []


class TestHealthAndMetrics:
    """Health checks and metric snapshots."""

    @pytest.mark.asyncio
    async def test_health_map_keyed_like_enabled_services(self, manager):
        health = await manager.get_service_health()

        assert list(health) == await manager.get_enabled_services()
        assert all(value is True for value in health.values())

    @pytest.mark.asyncio
    async def test_single_service_health(self, manager, provider_factory):
        provider_factory.instances[CLAUDE].healthy = False

        assert await manager.get_service_health(GPT4) is True
        assert await manager.get_service_health("claude") is False

    @pytest.mark.asyncio
    async def test_health_check_exception_reports_unhealthy(self, manager, provider_factory):
        provider_factory.instances[GPT4].health_error = RuntimeError("health endpoint down")

        assert await manager.get_service_health(GPT4) is False

    @pytest.mark.asyncio
    async def test_health_check_does_not_feed_breaker(self, manager, provider_factory):
        provider_factory.instances[GPT4].healthy = False

        await manager.get_service_health(GPT4)

        status = await manager.get_circuit_breaker_status()
        assert status["gpt4"]["state"] == "closed"
        assert status["gpt4"]["window_calls"] == 0

    @pytest.mark.asyncio
    async def test_health_result_reflected_in_metrics(self, manager, provider_factory):
        provider_factory.instances[GPT4].healthy = False

        await manager.get_service_health(GPT4)

        metrics = await manager.get_service_metrics(GPT4)
        assert metrics.is_healthy is False
        assert metrics.circuit_breaker_state == "closed"

    @pytest.mark.asyncio
    async def test_health_lazily_initializes(self, manager_config, provider_factory):
        fresh = AIServiceManager(manager_config, provider_factory=provider_factory)

        assert await fresh.get_service_health("gpt4") is True
        assert fresh.is_initialized
        await fresh.cleanup()

    @pytest.mark.asyncio
    async def test_metrics_lazily_initialize(self, manager_config, provider_factory):
        fresh = AIServiceManager(manager_config, provider_factory=provider_factory)

        metrics = await fresh.get_service_metrics()

        assert list(metrics) == [GPT4, CLAUDE]
        assert fresh.is_initialized
        await fresh.cleanup()

    @pytest.mark.asyncio
    async def test_health_of_unknown_service(self, manager):
        with pytest.raises(ServiceNotFoundError):
            await manager.get_service_health(GEMINI)

        with pytest.raises(ServiceNotFoundError):
            await manager.get_service_health("not-a-service")

    @pytest.mark.asyncio
    async def test_metrics_map_keyed_like_enabled_services(self, manager):
        metrics = await manager.get_service_metrics()

        assert list(metrics) == [GPT4, CLAUDE]
        assert metrics[GPT4].total_requests == 0

    @pytest.mark.asyncio
    async def test_metrics_of_unknown_service(self, manager):
        with pytest.raises(ServiceNotFoundError) as exc_info:
            await manager.get_service_metrics(GEMINI)

        assert "gemini" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_metrics_read_has_no_side_effects(self, manager):
        await manager.get_service_metrics(GPT4)
        await manager.get_service_metrics()

        metrics = await manager.get_service_metrics(GPT4)
        assert metrics.total_requests == 0


class TestLifecycle:
    """initialize, update_configuration and cleanup."""

    @pytest.mark.asyncio
    async def test_initialize_registers_enabled_services(self, manager):
        assert await manager.get_enabled_services() == [GPT4, CLAUDE]

    @pytest.mark.asyncio
    async def test_initialize_twice_is_noop(self, manager, provider_factory):
        await manager.initialize()

        assert provider_factory.build_count == 2
        assert await manager.get_enabled_services() == [GPT4, CLAUDE]

    @pytest.mark.asyncio
    async def test_concurrent_initialize_builds_once(self, manager_config, provider_factory):
        fresh = AIServiceManager(manager_config, provider_factory=provider_factory)

        await asyncio.gather(*(fresh.initialize() for _ in range(5)))

        assert provider_factory.build_count == 2
        assert await fresh.get_enabled_services() == [GPT4, CLAUDE]
        await fresh.cleanup()

    @pytest.mark.asyncio
    async def test_unsupported_service_keeps_others(self, manager_config, fake_factory_cls):
        factory = fake_factory_cls(services=[GPT4])
        fresh = AIServiceManager(manager_config, provider_factory=factory)

        with pytest.raises(UnsupportedServiceTypeError) as exc_info:
            await fresh.initialize()

        assert exc_info.value.service_id == "claude"
        assert await fresh.get_enabled_services() == [GPT4]

        response = await fresh.analyze_content("hello", "text/plain", CLAUDE)
        assert response.metadata.service_id == "gpt4"

        # Already initialized, so a second call does not raise again
        await fresh.initialize()
        await fresh.cleanup()

    @pytest.mark.asyncio
    async def test_update_enabled_services(self, manager, provider_factory):
        old_gpt4 = provider_factory.instances[GPT4]

        await manager.update_configuration({
            "enabled_services": [CLAUDE, GEMINI],
            "default_service": CLAUDE,
        })

        assert await manager.get_enabled_services() == [CLAUDE, GEMINI]
        assert old_gpt4.closed is True
        assert GEMINI in provider_factory.instances

        assert manager.config.fallback_order == [CLAUDE]
        response = await manager.analyze_content("hello", "text/plain")
        assert response.metadata.service_id == "claude"

    @pytest.mark.asyncio
    async def test_update_enabled_services_order_is_exact(self, manager):
        await manager.update_configuration({"enabled_services": [GEMINI, CLAUDE, GPT4]})

        assert await manager.get_enabled_services() == [GEMINI, CLAUDE, GPT4]

    @pytest.mark.asyncio
    async def test_update_keeps_existing_services_intact(self, manager, provider_factory):
        claude = provider_factory.instances[CLAUDE]

        await manager.update_configuration({
            "enabled_services": [CLAUDE, GEMINI],
            "default_service": CLAUDE,
        })

        assert provider_factory.instances[CLAUDE] is claude
        assert claude.closed is False

    @pytest.mark.asyncio
    async def test_update_routing_only(self, manager):
        await manager.update_configuration({
            "default_service": "claude",
            "fallback_order": ["claude", "gpt4"],
        })

        response = await manager.analyze_content("hello", "text/plain")
        assert response.metadata.service_id == "claude"
        assert await manager.get_enabled_services() == [GPT4, CLAUDE]

    @pytest.mark.asyncio
    async def test_update_with_unconfigured_service_is_rejected(self, fake_clock, fake_factory_cls):
        config = ServiceManagerConfig(
            services=[
                ProviderConfig(service_id=GPT4, api_key="k1"),
                ProviderConfig(service_id=CLAUDE, api_key="k2"),
            ],
            enabled_services=[GPT4],
            fallback_order=[GPT4],
        )
        manager = AIServiceManager(config, provider_factory=fake_factory_cls(), clock=fake_clock)
        await manager.initialize()

        with pytest.raises(ConfigurationError):
            await manager.update_configuration({"enabled_services": [GPT4, GEMINI]})

        assert await manager.get_enabled_services() == [GPT4]
        assert manager.config.enabled_services == [GPT4]
        await manager.cleanup()

    @pytest.mark.asyncio
    async def test_update_leaving_default_disabled_is_rejected(self, manager, provider_factory):
        with pytest.raises(ConfigurationError, match="Default service gpt4"):
            await manager.update_configuration({"enabled_services": [CLAUDE]})

        assert await manager.get_enabled_services() == [GPT4, CLAUDE]
        assert manager.config.default_service == GPT4
        assert provider_factory.instances[GPT4].closed is False

    @pytest.mark.asyncio
    async def test_update_with_unknown_field_is_rejected(self, manager):
        with pytest.raises(ConfigurationError):
            await manager.update_configuration({"primary_provider": "gpt4"})

    @pytest.mark.asyncio
    async def test_cleanup_empties_registry(self, manager, provider_factory):
        await manager.cleanup()

        assert await manager.get_enabled_services() == []
        assert manager.config.enabled_services == []
        assert provider_factory.instances[GPT4].closed is True
        assert provider_factory.instances[CLAUDE].closed is True

    @pytest.mark.asyncio
    async def test_analyze_after_cleanup_fails_immediately(self, manager):
        await manager.cleanup()

        with pytest.raises(AllServicesFailedError) as exc_info:
            await asyncio.wait_for(manager.analyze_content("hello", "text/plain"), timeout=1.0)

        assert exc_info.value.errors == {}
        assert "no enabled services available" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cleanup_before_initialize_is_safe(self, manager_config, provider_factory):
        fresh = AIServiceManager(manager_config, provider_factory=provider_factory)

        await fresh.cleanup()
        await fresh.cleanup()

        assert await fresh.get_enabled_services() == []
        assert provider_factory.build_count == 0

    @pytest.mark.asyncio
    async def test_services_can_be_reenabled_after_cleanup(self, manager):
        await manager.cleanup()

        await manager.update_configuration({"enabled_services": [CLAUDE], "default_service": CLAUDE})

        assert await manager.get_enabled_services() == [CLAUDE]
        response = await manager.analyze_content("hello", "text/plain")
        assert response.metadata.service_id == "claude"

    def test_repr(self, manager_config, provider_factory):
        fresh = AIServiceManager(manager_config, provider_factory=provider_factory)

        assert "default=gpt4" in repr(fresh)
        assert "services=0" in str(fresh)
