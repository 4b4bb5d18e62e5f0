"""
GPT-4 AI Provider Implementation
===============================

OpenAI chat completions provider used for the ``gpt4`` service.
"""

from typing import Optional

import openai

from .base import AIProvider, Completion
from ...config.settings import AIServiceType, ProviderConfig
from ...utils.exceptions import ProviderError, ErrorCode


class GPT4Provider(AIProvider):
    """OpenAI GPT-4 provider."""

    DEFAULT_MODEL = "gpt-4"
    DISPLAY_NAME = "OpenAI GPT-4"
    BASE_URL: Optional[str] = None

    TEMPERATURE = 0.3
    MAX_TOKENS = 2000

    def __init__(self, config: ProviderConfig, service_type: AIServiceType = AIServiceType.GPT4):
        """Initialize OpenAI provider.

        Args:
            config: Provider connection settings
            service_type: Service id the provider is registered under
        """
        super().__init__(config, service_type)

        self.client = openai.AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.endpoint or self.BASE_URL,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

        self.logger.info(f"{self.DISPLAY_NAME} provider initialized with model {self.model_name}")

    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        try:
            response = await self.client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.TEMPERATURE,
                max_tokens=self.MAX_TOKENS,
            )
        except openai.RateLimitError as e:
            raise ProviderError(
                f"{self.DISPLAY_NAME} rate limit: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_RATE_LIMIT,
                rate_limited=True,
                retryable=True,
            ) from e
        except openai.AuthenticationError as e:
            raise ProviderError(
                f"{self.DISPLAY_NAME} authentication failed: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_AUTHENTICATION,
            ) from e
        except openai.APITimeoutError as e:
            raise ProviderError(
                f"{self.DISPLAY_NAME} request timed out: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_TIMEOUT,
                retryable=True,
            ) from e
        except openai.APIConnectionError as e:
            raise ProviderError(
                f"{self.DISPLAY_NAME} connection error: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_CONNECTION_ERROR,
                retryable=True,
            ) from e
        except openai.APIError as e:
            raise ProviderError(
                f"{self.DISPLAY_NAME} API error: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_API_ERROR,
            ) from e

        if not response.choices:
            raise ProviderError(
                f"No response from {self.DISPLAY_NAME}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_INVALID_RESPONSE,
            )

        usage = response.usage
        return Completion(
            text=response.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else None,
            output_tokens=usage.completion_tokens if usage else None,
        )

    async def close(self) -> None:
        await self.client.close()
