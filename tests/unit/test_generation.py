"""Unit tests for the chat completion wrapper."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest
from memory_recall.errors import GenerationError
from memory_recall.generation import TextGenerator


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ValueError, match="OpenAI API key required"):
        TextGenerator()


@pytest.mark.asyncio
class TestTextGenerator:
    async def test_generate(self):
        with patch("memory_recall.generation.AsyncOpenAI") as client_class:
            client = client_class.return_value
            client.chat.completions.create = AsyncMock(return_value=completion("Hello!"))
            generator = TextGenerator(model="gpt-4o-mini", api_key="test-key")

            result = await generator.generate("Say hello")

        assert result.success
        assert result.value == "Hello!"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"] == [{"role": "user", "content": "Say hello"}]

    async def test_empty_content(self):
        with patch("memory_recall.generation.AsyncOpenAI") as client_class:
            client_class.return_value.chat.completions.create = AsyncMock(return_value=completion(None))
            generator = TextGenerator(api_key="test-key")

            result = await generator.generate("Say nothing")

        assert result.value == ""

    async def test_api_error_becomes_failure(self):
        error = openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        with patch("memory_recall.generation.AsyncOpenAI") as client_class:
            client_class.return_value.chat.completions.create = AsyncMock(side_effect=error)
            generator = TextGenerator(api_key="test-key")

            result = await generator.generate("Say hello")

        assert result.success is False
        assert isinstance(result.error, GenerationError)
