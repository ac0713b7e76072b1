"""
LLM completion client.
"""

from hybridshop.llm.ai_service import (
    CompletionOptions,
    CompletionResult,
    ConversationContext,
    LLMConfig,
    LLMError,
    OllamaCompletionService,
)

__all__ = [
    "CompletionOptions",
    "CompletionResult",
    "ConversationContext",
    "LLMConfig",
    "LLMError",
    "OllamaCompletionService",
]
