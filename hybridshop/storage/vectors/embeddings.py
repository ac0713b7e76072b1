"""
Embedding Provider
==================

Text-to-vector client for an Ollama server (``POST /api/embeddings``).

Key behaviour:
- Empty or whitespace-only text returns a zero vector without a request
- Transport errors, non-200 responses and malformed bodies raise EmbeddingError
- Output dimension is not checked here; callers validate with validate_vector()

The zero-vector fallback on failure is the caller's decision (see
HybridProductRepository), not the provider's.
"""

import aiohttp
import structlog
from typing import List, Optional

from hybridshop.storage.errors import EmbeddingError
from hybridshop.storage.vectors.config import EmbeddingConfig

log = structlog.get_logger()


class OllamaEmbeddingProvider:
    """
    Async embedding client.

    Usage:
        provider = OllamaEmbeddingProvider()
        vector = await provider.embed("red leather wallet")
        await provider.close()
    """

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self.session: Optional[aiohttp.ClientSession] = None

        log.info(
            f"OllamaEmbeddingProvider configured - "
            f"model={self.config.model}, dimension={self.config.dimension}"
        )

    @property
    def dimension(self) -> int:
        return self.config.dimension

    def zero_vector(self) -> List[float]:
        return [0.0] * self.config.dimension

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_s)
            )
        return self.session

    async def close(self):
        """Close the aiohttp session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def embed(self, text: str) -> List[float]:
        """
        Embed ``text``.

        Raises:
            EmbeddingError: provider unreachable, non-200, or malformed response
        """
        if not text or not text.strip():
            return self.zero_vector()

        url = f"{self.config.base_url.rstrip('/')}/api/embeddings"
        payload = {"model": self.config.model, "prompt": text}

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                if response.status != 200:
                    body = await response.text()
                    raise EmbeddingError(f"Ollama returned {response.status}: {body[:200]}", store="embedding")
                data = await response.json()
        except EmbeddingError:
            raise
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            raise EmbeddingError(f"Embedding request failed: {e}", store="embedding") from e

        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            raise EmbeddingError("Ollama response has no embedding", store="embedding")

        log.debug(f"Embedded {len(text)} chars -> {len(embedding)} dims")
        return list(embedding)

    async def health_check(self) -> bool:
        try:
            await self.embed("health check")
            return True
        except EmbeddingError as e:
            log.error(f"Embedding health check failed: {e}")
            return False
