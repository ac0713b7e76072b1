"""
Tests for OllamaCompletionService

Request shape and explicit conversation-context threading, over a mocked
aiohttp session.
"""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from hybridshop.llm import (
    CompletionOptions,
    ConversationContext,
    LLMConfig,
    LLMError,
    OllamaCompletionService,
)


def mock_session(*bodies, status=200):
    """Session whose successive post() calls return the given JSON bodies."""
    contexts = []
    for body in bodies:
        response = MagicMock()
        response.status = status
        response.json = AsyncMock(return_value=body)
        response.text = AsyncMock(return_value=str(body))
        ctx = MagicMock()
        ctx.__aenter__ = AsyncMock(return_value=response)
        ctx.__aexit__ = AsyncMock(return_value=False)
        contexts.append(ctx)

    session = MagicMock()
    session.closed = False
    session.post = MagicMock(side_effect=contexts)
    return session


@pytest.fixture
def llm():
    return OllamaCompletionService(LLMConfig(base_url="http://ollama:11434", model="llama3.1:8b", timeout_s=5))


class TestComplete:

    @pytest.mark.asyncio
    async def test_request_payload(self, llm):
        """Test model, prompt and sampling options are sent."""
        llm.session = mock_session({"response": "ok", "context": [1, 2]})

        result = await llm.complete(
            "List colours", CompletionOptions(temperature=0.3, max_tokens=50, stop=["\n\n"]),
            system_prompt="Be brief",
        )

        url = llm.session.post.call_args.args[0]
        payload = llm.session.post.call_args.kwargs["json"]
        assert url == "http://ollama:11434/api/generate"
        assert payload["model"] == "llama3.1:8b"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.3, "num_predict": 50, "stop": ["\n\n"]}
        assert payload["system"] == "Be brief"
        assert "context" not in payload
        assert result.text == "ok"
        assert result.context == ConversationContext(tokens=(1, 2))

    @pytest.mark.asyncio
    async def test_context_is_threaded_explicitly(self, llm):
        """Test a follow-up call sends the context returned by the previous one."""
        llm.session = mock_session(
            {"response": "red, green", "context": [5, 6]},
            {"response": "blue", "context": [5, 6, 7]},
        )

        first = await llm.complete("List colours")
        second = await llm.complete("One more", context=first.context)

        sent = [c.kwargs["json"] for c in llm.session.post.call_args_list]
        assert "context" not in sent[0]
        assert sent[1]["context"] == [5, 6]
        assert second.context.tokens == (5, 6, 7)
        assert first.context.tokens == (5, 6)

    @pytest.mark.asyncio
    async def test_http_error(self, llm):
        """Test non-200 responses raise LLMError."""
        llm.session = mock_session({"error": "model not found"}, status=404)

        with pytest.raises(LLMError, match="404"):
            await llm.complete("hello")

    @pytest.mark.asyncio
    async def test_malformed_body(self, llm):
        """Test a body without ``response`` raises LLMError."""
        llm.session = mock_session({"done": True})

        with pytest.raises(LLMError, match="Invalid response"):
            await llm.complete("hello")

    @pytest.mark.asyncio
    async def test_transport_error(self, llm):
        """Test connection errors are wrapped."""
        llm.session = mock_session()
        llm.session.post.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(LLMError, match="refused"):
            await llm.complete("hello")

    @pytest.mark.asyncio
    async def test_health_check(self, llm):
        """Test health check reports failures as False."""
        llm.session = mock_session({"error": "busy"}, status=503)
        assert await llm.health_check() is False


class TestConversationContext:

    def test_empty_context(self):
        """Test the default context is empty."""
        assert ConversationContext().is_empty

    def test_context_is_immutable(self):
        """Test contexts cannot be mutated in place."""
        context = ConversationContext(tokens=(1,))
        with pytest.raises(AttributeError):
            context.tokens = (2,)
