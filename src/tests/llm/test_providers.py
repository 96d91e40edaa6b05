"""Tests for generative providers and provider selection."""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from microwin.config.llm_config import LLMConfig
from microwin.llm import create_llm
from microwin.llm.base import APIError
from microwin.llm.providers import OllamaProvider, OpenAIProvider
from microwin.models.llm_models import ModelConfig, ModelProvider


MESSAGES = [
    {"role": "system", "content": "Answer in JSON."},
    {"role": "user", "content": "Break down: water the plants"},
]


@pytest.fixture
def ollama_config():
    """Create Ollama model config."""
    return ModelConfig(
        provider=ModelProvider.OLLAMA,
        model_name="llama3.1:8b",
        api_endpoint="http://ollama:11434",
        context_window=8192,
        is_local=True,
    )


@pytest.fixture
def openai_config():
    """Create OpenAI model config."""
    return ModelConfig(
        provider=ModelProvider.OPENAI,
        model_name="gpt-4o-mini",
        max_tokens=1024,
        context_window=128000,
    )


def _ollama(config, handler) -> OllamaProvider:
    return OllamaProvider(
        config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


@pytest.mark.asyncio
class TestOllamaProvider:
    """Test suite for OllamaProvider."""

    async def test_agenerate(self, ollama_config):
        """Posts a JSON-mode chat request and returns the message content."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"content": '{"steps": []}'}})

        provider = _ollama(ollama_config, handler)
        result = await provider.agenerate(MESSAGES, max_tokens=256, temperature=0.3)

        assert result == '{"steps": []}'
        assert seen["url"] == "http://ollama:11434/api/chat"
        assert seen["body"]["format"] == "json"
        assert seen["body"]["stream"] is False
        assert seen["body"]["options"] == {"temperature": 0.3, "num_predict": 256}
        await provider.close()

    async def test_http_error(self, ollama_config):
        """Server errors become APIError."""
        provider = _ollama(ollama_config, lambda request: httpx.Response(500))
        with pytest.raises(APIError):
            await provider.agenerate(MESSAGES)
        await provider.close()

    async def test_malformed_body(self, ollama_config):
        """Responses without a message become APIError."""
        provider = _ollama(ollama_config, lambda request: httpx.Response(200, json={}))
        with pytest.raises(APIError):
            await provider.agenerate(MESSAGES)
        await provider.close()

    async def test_context_overflow(self, ollama_config):
        """Requests too large for the context window are rejected before sending."""
        handler = MagicMock()
        provider = _ollama(ollama_config, handler)

        with pytest.raises(ValueError):
            await provider.agenerate(MESSAGES, max_tokens=9000)
        handler.assert_not_called()
        await provider.close()


@pytest.mark.asyncio
class TestOpenAIProvider:
    """Test suite for OpenAIProvider."""

    @patch("microwin.llm.providers.openai_provider.tiktoken")
    @patch("microwin.llm.providers.openai_provider.AsyncOpenAI")
    async def test_agenerate(self, mock_openai_class, mock_tiktoken, openai_config):
        """Requests JSON mode and returns the first choice."""
        mock_tiktoken.encoding_for_model.return_value.encode.return_value = [1, 2, 3]
        response = MagicMock()
        response.choices[0].message.content = '{"steps": []}'
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=response)
        mock_client.close = AsyncMock()
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(openai_config, api_key="sk-test")
        result = await provider.agenerate(MESSAGES, temperature=0.4)

        assert result == '{"steps": []}'
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == 1024
        assert kwargs["response_format"] == {"type": "json_object"}
        mock_openai_class.assert_called_once_with(api_key="sk-test")

        await provider.close()
        mock_client.close.assert_awaited_once()

    @patch("microwin.llm.providers.openai_provider.tiktoken")
    @patch("microwin.llm.providers.openai_provider.AsyncOpenAI")
    async def test_unexpected_error(self, mock_openai_class, mock_tiktoken, openai_config):
        """Unknown client failures become APIError."""
        mock_tiktoken.encoding_for_model.return_value.encode.return_value = [1]
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=RuntimeError("boom"))
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(openai_config, api_key="sk-test")
        with pytest.raises(APIError):
            await provider.agenerate(MESSAGES)

    @patch("microwin.llm.providers.openai_provider.tiktoken")
    @patch("microwin.llm.providers.openai_provider.AsyncOpenAI")
    async def test_unknown_model_tokenizer(self, mock_openai_class, mock_tiktoken, openai_config):
        """Unknown models fall back to cl100k_base."""
        mock_tiktoken.encoding_for_model.side_effect = KeyError("gpt-4o-mini")

        OpenAIProvider(openai_config, api_key="sk-test")

        mock_tiktoken.get_encoding.assert_called_once_with("cl100k_base")


class TestCreateLLM:
    """Provider selection from configuration."""

    def test_ollama(self):
        """Ollama needs no API key."""
        config = LLMConfig(provider=ModelProvider.OLLAMA, ollama_host="http://box:11434")
        provider = create_llm(config)
        assert isinstance(provider, OllamaProvider)
        assert provider.base_url == "http://box:11434"

    def test_openai_without_key(self):
        """OpenAI without a key is a configuration error."""
        with pytest.raises(ValueError):
            create_llm(LLMConfig(provider=ModelProvider.OPENAI, openai_api_key=None))

    @patch("microwin.llm.providers.openai_provider.tiktoken")
    @patch("microwin.llm.providers.openai_provider.AsyncOpenAI")
    def test_openai(self, mock_openai_class, mock_tiktoken):
        """OpenAI provider uses the configured model."""
        config = LLMConfig(
            provider=ModelProvider.OPENAI,
            openai_api_key="sk-test",
            openai_default_model="gpt-4o",
        )
        provider = create_llm(config)
        assert isinstance(provider, OpenAIProvider)
        assert provider.config.model_name == "gpt-4o"
