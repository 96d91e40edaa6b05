"""LLM-related data models."""

from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class ModelProvider(str, Enum):
    """Supported model providers."""

    OPENAI = "openai"
    OLLAMA = "ollama"


class ModelConfig(BaseModel):
    """Configuration for a specific model."""

    provider: ModelProvider
    model_name: str = Field(description="Model identifier")
    api_endpoint: Optional[str] = Field(default=None, description="API endpoint")
    max_tokens: int = Field(default=1024, description="Max token limit")
    context_window: int = Field(default=8192, description="Context window size")
    is_local: bool = Field(default=False, description="Is local model")

    class Config:
        """Pydantic configuration."""

        use_enum_values = True
