"""OpenAI provider for GPT model access."""

import logging
from typing import Dict, Any, List, Optional
import tiktoken
from openai import AsyncOpenAI, RateLimitError as OpenAIRateLimitError, APIError as OpenAIAPIError

from ..base import BaseLLM, RateLimitError, APIError
from ...models.llm_models import ModelConfig

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLM):
    """
    OpenAI provider for GPT model access.

    PATTERN: Official OpenAI SDK with async client
    GOTCHA: JSON mode requires the word "JSON" somewhere in the messages
    """

    def __init__(self, config: ModelConfig, api_key: str):
        """
        Initialize OpenAI provider.

        Args:
            config: Model configuration
            api_key: OpenAI API key
        """
        super().__init__(config)
        self.client = AsyncOpenAI(api_key=api_key)

        try:
            self.tokenizer = tiktoken.encoding_for_model(config.model_name)
        except KeyError:
            # Fallback to cl100k_base for newer models
            self.tokenizer = tiktoken.get_encoding("cl100k_base")

    async def agenerate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> str:
        """
        Generate a JSON response using the OpenAI API.

        Args:
            messages: Chat messages in OpenAI format
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0-2)
            **kwargs: Additional parameters

        Returns:
            Generated response text

        Raises:
            RateLimitError: When rate limited
            APIError: On API failures
        """
        await self.validate_request(messages, max_tokens)

        try:
            response = await self.client.chat.completions.create(
                model=self.config.model_name,
                messages=messages,
                max_tokens=max_tokens or self.config.max_tokens,
                temperature=temperature,
                response_format={"type": "json_object"},
                **kwargs,
            )
            return response.choices[0].message.content or ""

        except OpenAIRateLimitError as e:
            self.logger.warning(f"Rate limited: {e}")
            raise RateLimitError(f"OpenAI rate limit: {str(e)}")
        except OpenAIAPIError as e:
            self.logger.error(f"OpenAI API error: {e}")
            raise APIError(f"OpenAI API error: {str(e)}")
        except Exception as e:
            self.logger.error(f"Unexpected error: {e}")
            raise APIError(f"Unexpected error: {str(e)}")

    def get_num_tokens(self, text: str) -> int:
        """
        Count tokens using tiktoken.

        Args:
            text: Text to count tokens for

        Returns:
            Exact token count
        """
        try:
            return len(self.tokenizer.encode(text))
        except Exception as e:
            self.logger.warning(f"Token counting failed, using estimate: {e}")
            return int(len(text.split()) * 1.3)

    async def close(self) -> None:
        """Close OpenAI client."""
        await self.client.close()
