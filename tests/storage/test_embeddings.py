"""
Tests for OllamaEmbeddingProvider

HTTP is replaced by a mocked aiohttp session.
"""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from hybridshop.storage.errors import EmbeddingError
from hybridshop.storage.vectors import EmbeddingConfig, OllamaEmbeddingProvider


def mock_session(status=200, json_data=None, text=""):
    """aiohttp-like session whose post() yields one canned response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data)
    response.text = AsyncMock(return_value=text)

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.post = MagicMock(return_value=ctx)
    return session


@pytest.fixture
def provider():
    return OllamaEmbeddingProvider(EmbeddingConfig(base_url="http://ollama:11434", model="nomic-embed-text:latest", dimension=4))


class TestEmbed:

    @pytest.mark.asyncio
    async def test_empty_text_returns_zero_vector(self, provider):
        """Test empty text short-circuits without a request."""
        provider.session = mock_session()

        assert await provider.embed("   ") == [0.0, 0.0, 0.0, 0.0]
        provider.session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_embed_posts_model_and_prompt(self, provider):
        """Test request payload and parsed embedding."""
        provider.session = mock_session(json_data={"embedding": [0.1, 0.2, 0.3, 0.4]})

        vector = await provider.embed("red wallet")

        assert vector == [0.1, 0.2, 0.3, 0.4]
        url = provider.session.post.call_args.args[0]
        payload = provider.session.post.call_args.kwargs["json"]
        assert url == "http://ollama:11434/api/embeddings"
        assert payload == {"model": "nomic-embed-text:latest", "prompt": "red wallet"}

    @pytest.mark.asyncio
    async def test_http_error(self, provider):
        """Test non-200 responses raise EmbeddingError."""
        provider.session = mock_session(status=500, text="model not loaded")

        with pytest.raises(EmbeddingError, match="500"):
            await provider.embed("red wallet")

    @pytest.mark.asyncio
    async def test_missing_embedding(self, provider):
        """Test a body without an embedding raises EmbeddingError."""
        provider.session = mock_session(json_data={"error": "oops"})

        with pytest.raises(EmbeddingError, match="no embedding"):
            await provider.embed("red wallet")

    @pytest.mark.asyncio
    async def test_transport_error(self, provider):
        """Test connection errors are wrapped."""
        provider.session = mock_session()
        provider.session.post.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(EmbeddingError, match="refused"):
            await provider.embed("red wallet")

    @pytest.mark.asyncio
    async def test_health_check(self, provider):
        """Test health check reports provider failures as False."""
        provider.session = mock_session(status=503, text="busy")
        assert await provider.health_check() is False
