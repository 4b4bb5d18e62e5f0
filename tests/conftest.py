"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and test doubles for AI Analysis tests.

Provider doubles are real ``AIProvider`` subclasses built through a
``ProviderFactory``, so the manager is exercised through its public
construction path.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, Optional

import pytest
import pytest_asyncio

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Keep a developer's .env or shell from leaking into tests
for _key in list(os.environ):
    if _key.startswith("AIANALYSIS_"):
        del os.environ[_key]

from aianalysis.ai.providers.base import AIProvider, Completion
from aianalysis.ai.providers.factory import ProviderFactory
from aianalysis.ai.service_manager import AIServiceManager
from aianalysis.config.settings import (
    AIServiceType,
    CircuitBreakerOptions,
    ProviderConfig,
    ServiceManagerConfig,
)


STRUCTURED_REPLY = """ANALYSIS:
Clear explanation of {service} concepts with good examples.

CONFIDENCE: 90

REASONING:
Content is well structured.

SUGGESTIONS:
- Add a summary
- Include exercises

CATEGORIES:
science, beginner

SENTIMENT: 0.5

COMPLEXITY: Medium"""


class FakeProvider(AIProvider):
    """Scriptable in-memory provider.

    Attributes set by tests:
        fail_with: exception raised by every call while set
        delay: seconds to sleep before answering
        healthy: result of ``health_check``
    """

    DEFAULT_MODEL = "fake-model"

    def __init__(self, config: ProviderConfig):
        super().__init__(config, config.service_id)
        self.fail_with: Optional[Exception] = None
        self.delay = 0.0
        self.healthy = True
        self.health_error: Optional[Exception] = None

        self.analyze_calls = 0
        self.complete_calls = 0
        self.health_checks = 0
        self.closed = False

    async def analyze(self, content, content_type):
        self.analyze_calls += 1
        return await super().analyze(content, content_type)

    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        self.complete_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return Completion(
            text=STRUCTURED_REPLY.format(service=self.service_id.value),
            input_tokens=10,
            output_tokens=20,
        )

    async def health_check(self) -> bool:
        self.health_checks += 1
        if self.health_error is not None:
            raise self.health_error
        return self.healthy

    async def close(self) -> None:
        self.closed = True


class FakeProviderFactory(ProviderFactory):
    """Factory that builds ``FakeProvider`` instances and keeps the latest per service."""

    def __init__(self, services=tuple(AIServiceType)):
        super().__init__()
        self.instances: Dict[AIServiceType, FakeProvider] = {}
        self.build_count = 0
        for service_id in services:
            self.register(service_id, self._build)

    def _build(self, config: ProviderConfig) -> FakeProvider:
        self.build_count += 1
        provider = FakeProvider(config)
        self.instances[config.service_id] = provider
        return provider


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def provider_configs():
    """Provider configurations for every service type."""
    return [
        ProviderConfig(service_id=service_id, api_key=f"test-{service_id.value}-key")
        for service_id in AIServiceType
    ]


@pytest.fixture
def breaker_options():
    return CircuitBreakerOptions(
        timeout=1.0,
        error_threshold_percentage=50.0,
        reset_timeout=30.0,
        rolling_window=10.0,
    )


@pytest.fixture
def manager_config(provider_configs, breaker_options):
    """Two-service configuration: gpt4 default, claude fallback."""
    return ServiceManagerConfig(
        services=provider_configs,
        enabled_services=[AIServiceType.GPT4, AIServiceType.CLAUDE],
        fallback_order=[AIServiceType.GPT4, AIServiceType.CLAUDE],
        default_service=AIServiceType.GPT4,
        circuit_breaker_options=breaker_options,
    )


# ============================================================================
# Manager Fixtures
# ============================================================================


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def provider_factory():
    return FakeProviderFactory()


@pytest_asyncio.fixture
async def manager(manager_config, provider_factory, fake_clock):
    """Initialized manager backed by fake providers."""
    service_manager = AIServiceManager(
        manager_config, provider_factory=provider_factory, clock=fake_clock
    )
    await service_manager.initialize()
    yield service_manager
    await service_manager.cleanup()


@pytest.fixture
def make_provider():
    """Build a standalone fake provider for a service."""
    def _make(service_id: AIServiceType = AIServiceType.GPT4, **config_overrides) -> FakeProvider:
        config = ProviderConfig(service_id=service_id, api_key="test-key", **config_overrides)
        return FakeProvider(config)
    return _make


@pytest.fixture
def fake_factory_cls():
    """The fake factory class, for tests that need a custom service set."""
    return FakeProviderFactory
