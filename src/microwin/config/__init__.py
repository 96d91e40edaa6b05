"""Environment-driven configuration."""

from .llm_config import LLMConfig
from .store_config import StoreConfig

__all__ = ["LLMConfig", "StoreConfig"]
