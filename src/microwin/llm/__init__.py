"""Generative provider layer used by the decomposition client."""

import logging

from .base import BaseLLM, APIError, RateLimitError
from .providers import OpenAIProvider, OllamaProvider
from ..config.llm_config import LLMConfig
from ..models.llm_models import ModelProvider

logger = logging.getLogger(__name__)


def create_llm(config: LLMConfig) -> BaseLLM:
    """
    Build the provider selected by configuration.

    Args:
        config: LLM configuration

    Returns:
        Ready-to-use provider

    Raises:
        ValueError: If the OpenAI provider is selected without an API key
    """
    model_config = config.get_model_config()

    if model_config.provider == ModelProvider.OLLAMA:
        logger.info(f"Using Ollama model {model_config.model_name}")
        return OllamaProvider(model_config)

    if not config.openai_api_key:
        raise ValueError("OPENAI_API_KEY is not set")

    logger.info(f"Using OpenAI model {model_config.model_name}")
    return OpenAIProvider(model_config, api_key=config.openai_api_key)


__all__ = [
    "BaseLLM",
    "APIError",
    "RateLimitError",
    "OpenAIProvider",
    "OllamaProvider",
    "create_llm",
]
