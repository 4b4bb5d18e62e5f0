"""
OpenRouter AI Provider Implementation
====================================

OpenRouter exposes an OpenAI-compatible API, so the provider reuses the
OpenAI client pointed at the OpenRouter base URL.
"""

from .gpt4_provider import GPT4Provider
from ...config.settings import AIServiceType, ProviderConfig


class OpenRouterProvider(GPT4Provider):
    """OpenRouter provider with unified access to hosted models."""

    DEFAULT_MODEL = "openai/gpt-4o"
    DISPLAY_NAME = "OpenRouter"
    BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(self, config: ProviderConfig):
        super().__init__(config, AIServiceType.OPENROUTER)
