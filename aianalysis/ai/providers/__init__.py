"""
AI Providers Module
==================

Provider adapters for the supported AI services.
"""

from .base import AIProvider, AnalysisResponse, AnalysisMetadata, ServiceMetrics, Completion
from .factory import ProviderFactory, default_provider_factory
from .gpt4_provider import GPT4Provider
from .claude_provider import ClaudeProvider
from .gemini_provider import GeminiProvider
from .openrouter_provider import OpenRouterProvider

__all__ = [
    'AIProvider',
    'AnalysisResponse',
    'AnalysisMetadata',
    'ServiceMetrics',
    'Completion',
    'ProviderFactory',
    'default_provider_factory',
    'GPT4Provider',
    'ClaudeProvider',
    'GeminiProvider',
    'OpenRouterProvider',
]
