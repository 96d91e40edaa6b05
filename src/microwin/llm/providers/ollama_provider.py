"""Ollama provider for local model integration."""

import logging
from typing import Dict, Any, List, Optional
import httpx

from ..base import BaseLLM, APIError
from ...models.llm_models import ModelConfig

logger = logging.getLogger(__name__)


class OllamaProvider(BaseLLM):
    """
    Ollama provider for local model access.

    PATTERN: HTTP-based API communication with async httpx
    GOTCHA: Models must be pulled before use with ollama pull
    """

    def __init__(self, config: ModelConfig, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize Ollama provider.

        Args:
            config: Model configuration
            client: Optional preconfigured HTTP client
        """
        super().__init__(config)
        self.client = client or httpx.AsyncClient(timeout=300.0)
        self.base_url = config.api_endpoint or "http://localhost:11434"

    async def agenerate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: float = 0.7,
        **kwargs: Any,
    ) -> str:
        """
        Generate a JSON response using Ollama's /api/chat endpoint.

        Args:
            messages: Chat messages
            max_tokens: Maximum tokens
            temperature: Sampling temperature
            **kwargs: Additional parameters

        Returns:
            Generated response text

        Raises:
            APIError: On API failures
        """
        await self.validate_request(messages, max_tokens)

        payload = {
            "model": self.config.model_name,
            "messages": messages,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": temperature,
            },
        }

        if max_tokens:
            payload["options"]["num_predict"] = max_tokens

        try:
            response = await self.client.post(
                f"{self.base_url}/api/chat",
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
            return data["message"]["content"]

        except httpx.TimeoutException as e:
            self.logger.error(f"Ollama request timeout (model may be loading): {e}")
            raise APIError(f"Ollama request timeout: {str(e)}")
        except httpx.HTTPError as e:
            self.logger.error(f"Ollama API error: {e}")
            raise APIError(f"Ollama API error: {str(e)}")
        except (KeyError, ValueError) as e:
            self.logger.error(f"Malformed Ollama response: {e}")
            raise APIError(f"Malformed Ollama response: {str(e)}")

    def get_num_tokens(self, text: str) -> int:
        """
        Estimate token count for Ollama models.

        GOTCHA: Word-based approximation, Ollama exposes no tokenizer

        Args:
            text: Text to count tokens for

        Returns:
            Estimated token count
        """
        return int(len(text.split()) * 1.3)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
