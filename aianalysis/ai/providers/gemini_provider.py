"""
Gemini AI Provider Implementation
================================

Google Gemini provider using the ``google.generativeai`` SDK.
"""

import google.generativeai as genai

from .base import AIProvider, Completion
from ...config.settings import AIServiceType, ProviderConfig
from ...utils.exceptions import ProviderError, ErrorCode


class GeminiProvider(AIProvider):
    """Google Gemini provider."""

    DEFAULT_MODEL = "gemini-pro"
    DISPLAY_NAME = "Google Gemini"

    def __init__(self, config: ProviderConfig):
        super().__init__(config, AIServiceType.GEMINI)

        genai.configure(api_key=config.api_key)
        self.model = genai.GenerativeModel(
            model_name=self.model_name,
            system_instruction=self.SYSTEM_PROMPT,
        )
        self.generation_config = genai.types.GenerationConfig(
            temperature=0.3,
            max_output_tokens=2000,
            top_p=0.9,
        )

        self.logger.info(f"Gemini provider initialized with model {self.model_name}")

    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        # system_prompt is bound to the model at construction time
        try:
            response = await self.model.generate_content_async(
                prompt,
                generation_config=self.generation_config,
                request_options={"timeout": self.config.timeout},
            )
        except Exception as e:
            message = str(e).lower()
            if "quota" in message or "rate limit" in message or "429" in message:
                raise ProviderError(
                    f"Gemini rate limit: {e}",
                    service_id=self.service_id.value,
                    error_code=ErrorCode.AI_RATE_LIMIT,
                    rate_limited=True,
                    retryable=True,
                ) from e
            if "api key" in message or "authentication" in message:
                raise ProviderError(
                    "Invalid Gemini API key",
                    service_id=self.service_id.value,
                    error_code=ErrorCode.AI_AUTHENTICATION,
                ) from e
            raise ProviderError(
                f"Gemini API error: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_API_ERROR,
                retryable=True,
            ) from e

        # response.text raises ValueError when safety filters blocked the candidate
        try:
            text = response.text
        except ValueError as e:
            raise ProviderError(
                f"Gemini response blocked or empty: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_CONTENT_REJECTED,
            ) from e

        usage = getattr(response, "usage_metadata", None)
        return Completion(
            text=text,
            input_tokens=getattr(usage, "prompt_token_count", None) if usage else None,
            output_tokens=getattr(usage, "candidates_token_count", None) if usage else None,
        )
