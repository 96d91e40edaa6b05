"""LLM configuration with environment variable loading."""

import os
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
from ..models.llm_models import ModelProvider, ModelConfig

# Load environment variables from .env file
load_dotenv()


class LLMConfig(BaseModel):
    """Configuration for the generative service behind decomposition."""

    provider: ModelProvider = Field(
        default_factory=lambda: os.getenv("MICROWIN_LLM_PROVIDER", "openai"),
        description="Generative provider: openai or ollama",
    )

    # OpenAI Configuration
    openai_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY"),
        description="OpenAI API key",
    )
    openai_default_model: str = Field(
        default_factory=lambda: os.getenv("OPENAI_DEFAULT_MODEL", "gpt-4o-mini"),
        description="Default OpenAI model",
    )

    # Ollama Configuration
    ollama_host: str = Field(
        default_factory=lambda: os.getenv("OLLAMA_HOST", "http://localhost:11434"),
        description="Ollama API endpoint",
    )
    ollama_model: str = Field(
        default_factory=lambda: os.getenv("OLLAMA_MODEL", "llama3.1:8b"),
        description="Ollama model name",
    )

    # Generation parameters
    temperature: float = Field(
        default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.4")),
        ge=0,
        le=2,
        description="Sampling temperature",
    )
    max_tokens: int = Field(
        default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "1024")),
        description="Maximum tokens per response",
    )

    def get_model_config(self) -> ModelConfig:
        """
        Build the model configuration for the selected provider.

        Returns:
            ModelConfig for the active provider
        """
        if self.provider == ModelProvider.OLLAMA:
            return ModelConfig(
                provider=ModelProvider.OLLAMA,
                model_name=self.ollama_model,
                api_endpoint=self.ollama_host,
                max_tokens=self.max_tokens,
                context_window=8192,
                is_local=True,
            )

        return ModelConfig(
            provider=ModelProvider.OPENAI,
            model_name=self.openai_default_model,
            max_tokens=self.max_tokens,
            context_window=128000,
        )
