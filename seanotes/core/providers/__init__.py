"""
SeaNotes Core - LLM Providers Package v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Concrete chat and embedding provider implementations.
"""

from .openai_provider import OpenAIProvider, OpenAIEmbeddingProvider
from .anthropic_provider import AnthropicProvider
from .factory import (
    AIInferenceStatus,
    create_embedding_provider,
    create_provider,
    get_available_providers,
    is_ai_configured,
    is_embedding_configured,
)

__all__ = [
    "OpenAIProvider",
    "OpenAIEmbeddingProvider",
    "AnthropicProvider",
    "AIInferenceStatus",
    "create_provider",
    "create_embedding_provider",
    "get_available_providers",
    "is_ai_configured",
    "is_embedding_configured",
]
