"""
Claude AI Provider Implementation
================================

Anthropic messages API provider used for the ``claude`` service.
"""

import anthropic

from .base import AIProvider, Completion
from ...config.settings import AIServiceType, ProviderConfig
from ...utils.exceptions import ProviderError, ErrorCode


class ClaudeProvider(AIProvider):
    """Anthropic Claude provider."""

    DEFAULT_MODEL = "claude-3-sonnet-20240229"
    DISPLAY_NAME = "Anthropic Claude"
    MAX_TOKENS = 2000

    def __init__(self, config: ProviderConfig):
        super().__init__(config, AIServiceType.CLAUDE)

        client_kwargs = {
            "api_key": config.api_key,
            "timeout": config.timeout,
            "max_retries": config.max_retries,
        }
        if config.endpoint:
            client_kwargs["base_url"] = config.endpoint
        self.client = anthropic.AsyncAnthropic(**client_kwargs)

        self.logger.info(f"Claude provider initialized with model {self.model_name}")

    async def _complete(self, system_prompt: str, prompt: str) -> Completion:
        try:
            response = await self.client.messages.create(
                model=self.model_name,
                max_tokens=self.MAX_TOKENS,
                system=system_prompt,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.RateLimitError as e:
            raise ProviderError(
                f"Claude rate limit: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_RATE_LIMIT,
                rate_limited=True,
                retryable=True,
            ) from e
        except anthropic.AuthenticationError as e:
            raise ProviderError(
                f"Claude authentication failed: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_AUTHENTICATION,
            ) from e
        except anthropic.APITimeoutError as e:
            raise ProviderError(
                f"Claude request timed out: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_TIMEOUT,
                retryable=True,
            ) from e
        except anthropic.APIConnectionError as e:
            raise ProviderError(
                f"Claude connection error: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_CONNECTION_ERROR,
                retryable=True,
            ) from e
        except anthropic.APIError as e:
            raise ProviderError(
                f"Claude API error: {e}",
                service_id=self.service_id.value,
                error_code=ErrorCode.AI_API_ERROR,
            ) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        return Completion(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    async def close(self) -> None:
        await self.client.close()
