"""Concrete generative providers."""

from .openai_provider import OpenAIProvider
from .ollama_provider import OllamaProvider

__all__ = ["OpenAIProvider", "OllamaProvider"]
