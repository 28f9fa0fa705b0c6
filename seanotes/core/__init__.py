"""
SeaNotes Core - Core Module

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

LLM interfaces and provider implementations.
"""

from .llm import (
    LLMResponse,
    LLMProvider,
    EmbeddingProvider,
    MockLLMProvider,
    MockEmbeddingProvider,
)

from .providers import (
    OpenAIProvider,
    OpenAIEmbeddingProvider,
    AnthropicProvider,
    create_provider,
    create_embedding_provider,
    get_available_providers,
    is_ai_configured,
)

__all__ = [
    "LLMResponse",
    "LLMProvider",
    "EmbeddingProvider",
    "MockLLMProvider",
    "MockEmbeddingProvider",
    "OpenAIProvider",
    "OpenAIEmbeddingProvider",
    "AnthropicProvider",
    "create_provider",
    "create_embedding_provider",
    "get_available_providers",
    "is_ai_configured",
]
