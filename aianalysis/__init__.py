"""
AI Analysis - Multi-Provider Analysis Orchestration
===================================================

Routes content analysis requests across interchangeable AI providers with
circuit breakers and deterministic fallback.

Main Components:
- Service Manager: lifecycle, fallback routing, health and metrics
- Circuit Breaker: per-provider CLOSED/OPEN/HALF_OPEN protection
- Providers: GPT-4, Claude, Gemini and OpenRouter adapters
- Configuration: environment variables with Pydantic validation
"""

__version__ = "1.0.0"
__author__ = "AI Analysis Development Team"
__description__ = "Multi-provider AI analysis orchestration"

# Core imports for easy access
from .config.settings import get_settings, AIServiceType, ServiceManagerConfig
from .ai.service_manager import AIServiceManager
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import AIAnalysisError, AllServicesFailedError

__all__ = [
    "get_settings",
    "AIServiceType",
    "ServiceManagerConfig",
    "AIServiceManager",
    "configure_application_logging",
    "get_logger_for_component",
    "AIAnalysisError",
    "AllServicesFailedError",
]
