"""
AI Orchestration Module
=======================

Service manager, circuit breakers, metrics and the service registry that
route analysis requests across provider adapters.
"""

from .providers.base import AIProvider, AnalysisResponse, ServiceMetrics
from .providers.factory import ProviderFactory, default_provider_factory
from .circuit_breaker import CircuitBreaker, CircuitState
from .metrics import MetricsCollector
from .registry import ServiceRegistry, ServiceEntry
from .service_manager import AIServiceManager

__all__ = [
    "AIProvider",
    "AnalysisResponse",
    "ServiceMetrics",
    "ProviderFactory",
    "default_provider_factory",
    "CircuitBreaker",
    "CircuitState",
    "MetricsCollector",
    "ServiceRegistry",
    "ServiceEntry",
    "AIServiceManager",
]
