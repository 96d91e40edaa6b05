"""Base LLM provider abstraction."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional
from ..models.llm_models import ModelConfig

logger = logging.getLogger(__name__)


class BaseLLM(ABC):
    """
    Abstract base class for generative providers.

    Providers translate their library errors into APIError / RateLimitError
    so callers only handle one error family.
    """

    def __init__(self, config: ModelConfig):
        """
        Initialize LLM provider.

        Args:
            config: Model configuration
        """
        self.config = config
        self.logger = logging.getLogger(f"{__name__}.{config.model_name}")

    @abstractmethod
    async def agenerate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> str:
        """
        Generate a response asynchronously.

        Args:
            messages: Chat messages in OpenAI format
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0-2)
            **kwargs: Additional provider-specific parameters

        Returns:
            Generated text response

        Raises:
            RateLimitError: When rate limited
            APIError: On API failures
        """
        pass

    @abstractmethod
    def get_num_tokens(self, text: str) -> int:
        """
        Count tokens in text.

        Args:
            text: Text to count tokens for

        Returns:
            Number of tokens
        """
        pass

    async def validate_request(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
    ) -> None:
        """
        Validate request before sending to API.

        Args:
            messages: Chat messages
            max_tokens: Maximum tokens

        Raises:
            ValueError: When the request would overflow the context window
        """
        total_tokens = sum(
            self.get_num_tokens(msg.get("content", ""))
            for msg in messages
        )

        if max_tokens:
            total_tokens += max_tokens

        if total_tokens > self.config.context_window:
            raise ValueError(
                f"Request exceeds context window: {total_tokens} > "
                f"{self.config.context_window}"
            )

        self.logger.debug(f"Request validated: {total_tokens} tokens")

    async def close(self) -> None:
        """Release provider resources."""
        pass


class RateLimitError(Exception):
    """Raised when rate limited by provider."""

    pass


class APIError(Exception):
    """Raised on API failures."""

    pass
