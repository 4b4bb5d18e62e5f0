"""
Provider Factory
================

Maps service types to provider constructors. The manager only ever builds
providers through a factory, so tests and embedders can register their own.
"""

from typing import Callable, Dict, List

from .base import AIProvider
from ...config.settings import AIServiceType, ProviderConfig
from ...utils.exceptions import UnsupportedServiceTypeError


ProviderBuilder = Callable[[ProviderConfig], AIProvider]


class ProviderFactory:
    """Registry of provider builders keyed by service type."""

    def __init__(self):
        self._builders: Dict[AIServiceType, ProviderBuilder] = {}

    def register(self, service_type: AIServiceType, builder: ProviderBuilder) -> None:
        """Register (or replace) the builder for a service type."""
        self._builders[AIServiceType(service_type)] = builder

    def supports(self, service_type: AIServiceType) -> bool:
        return service_type in self._builders

    def supported_services(self) -> List[AIServiceType]:
        return list(self._builders)

    def create(self, config: ProviderConfig) -> AIProvider:
        """Build a provider for ``config.service_id``.

        Raises:
            UnsupportedServiceTypeError: If no builder is registered for the type
        """
        builder = self._builders.get(config.service_id)
        if builder is None:
            raise UnsupportedServiceTypeError(config.service_id.value)
        return builder(config)


def default_provider_factory() -> ProviderFactory:
    """Factory with every built-in SDK provider registered."""
    from .gpt4_provider import GPT4Provider
    from .claude_provider import ClaudeProvider
    from .gemini_provider import GeminiProvider
    from .openrouter_provider import OpenRouterProvider

    factory = ProviderFactory()
    factory.register(AIServiceType.GPT4, GPT4Provider)
    factory.register(AIServiceType.CLAUDE, ClaudeProvider)
    factory.register(AIServiceType.GEMINI, GeminiProvider)
    factory.register(AIServiceType.OPENROUTER, OpenRouterProvider)
    return factory
