"""
LLM Completion Service
======================

Text completion over an Ollama server (``POST /api/generate``).

Ollama returns an opaque ``context`` token list that lets a follow-up call
continue the same conversation. It is carried in an explicit
ConversationContext value: each call takes the caller's context and returns
a new one, so concurrent requests never share continuity state.

The service is only used by the knowledge graph service and is never on a
read path.
"""

import aiohttp
import os
import structlog
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

log = structlog.get_logger()


class LLMError(Exception):
    """Completion request failed."""


@dataclass
class LLMConfig:
    """Ollama completion settings (env: OLLAMA_BASE_URL, LLM_MODEL, LLM_TIMEOUT_S)."""
    base_url: str = field(default_factory=lambda: os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434"))
    model: str = field(default_factory=lambda: os.environ.get("LLM_MODEL", "llama3.1:8b"))
    timeout_s: int = field(default_factory=lambda: int(os.environ.get("LLM_TIMEOUT_S", 60)))


@dataclass
class CompletionOptions:
    temperature: float = 0.7
    max_tokens: int = 1000
    stop: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConversationContext:
    """
    Continuity state returned by the model.

    Immutable: a call that extends the conversation returns a new context.
    """
    tokens: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.tokens


@dataclass
class CompletionResult:
    text: str
    context: ConversationContext


class OllamaCompletionService:
    """
    Async completion client.

    Example:
        llm = OllamaCompletionService()
        result = await llm.complete("List three colours", CompletionOptions(temperature=0.3))
        follow_up = await llm.complete("And three more", context=result.context)
        await llm.close()
    """

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or LLMConfig()
        self.session: Optional[aiohttp.ClientSession] = None

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

    async def complete(
        self,
        prompt: str,
        options: Optional[CompletionOptions] = None,
        context: Optional[ConversationContext] = None,
        system_prompt: Optional[str] = None,
    ) -> CompletionResult:
        """
        Generate a completion.

        Args:
            prompt: User prompt
            options: Sampling options
            context: Conversation to continue (None starts a new one)
            system_prompt: Optional system prompt

        Returns:
            CompletionResult with the text and the continued context

        Raises:
            LLMError: If the request fails or the response is malformed
        """
        options = options or CompletionOptions()
        payload = {
            "model": self.config.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        if options.stop:
            payload["options"]["stop"] = list(options.stop)
        if system_prompt:
            payload["system"] = system_prompt
        if context is not None and not context.is_empty:
            payload["context"] = list(context.tokens)

        url = f"{self.config.base_url.rstrip('/')}/api/generate"

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise LLMError(f"Ollama API error {response.status}: {error_text[:200]}")
                data = await response.json()
        except LLMError:
            raise
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            log.error(f"LLM request failed: {e}")
            raise LLMError(f"LLM request failed: {e}") from e

        if not isinstance(data, dict) or "response" not in data:
            raise LLMError("Invalid response format from Ollama")

        new_context = ConversationContext(tokens=tuple(data.get("context") or ()))
        log.debug(
            "LLM completion",
            model=self.config.model,
            prompt_chars=len(prompt),
            response_chars=len(data["response"]),
        )
        return CompletionResult(text=data["response"], context=new_context)

    async def health_check(self) -> bool:
        try:
            await self.complete("Health check", CompletionOptions(temperature=0.1, max_tokens=5))
            return True
        except LLMError as e:
            log.error(f"LLM health check failed: {e}")
            return False
