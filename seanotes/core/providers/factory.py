"""
SeaNotes Core - LLM Provider Factory v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Factory functions for creating chat and embedding providers from Settings.
"""

import logging
from typing import List, Optional

from ...errors import LLMNotConfiguredError, ValidationError
from ...status import ConfigurableService, ServiceStatus
from ..llm import (
    EmbeddingProvider,
    LLMProvider,
    MockEmbeddingProvider,
    MockLLMProvider,
)
from .anthropic_provider import AnthropicProvider
from .openai_provider import OpenAIEmbeddingProvider, OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_NAMES = ("inference", "openai", "anthropic", "mock")


def get_available_providers(settings) -> List[str]:
    """
    Get list of chat providers that have API keys configured.

    "mock" is listed only when explicitly selected.
    """
    available = []
    if settings.inference_api_key:
        available.append("inference")
    if settings.openai_api_key:
        available.append("openai")
    if settings.anthropic_api_key:
        available.append("anthropic")
    if settings.ai_provider == "mock":
        available.append("mock")
    return available


def is_ai_configured(settings) -> bool:
    """True when a chat provider and an embedding provider can be built."""
    available = get_available_providers(settings)
    return bool(available) and is_embedding_configured(settings)


def is_embedding_configured(settings) -> bool:
    return bool(
        settings.inference_api_key
        or settings.openai_api_key
        or settings.ai_provider == "mock"
    )


def create_provider(settings, provider_name: Optional[str] = None) -> LLMProvider:
    """
    Create a chat provider.

    Provider selection order:
    1. Explicit provider_name parameter
    2. settings.ai_provider
    3. First available configured provider

    Raises:
        LLMNotConfiguredError: nothing is configured
        ValidationError: unknown provider name, or its key is missing
    """
    name = (provider_name or settings.ai_provider or "").lower()

    if not name:
        available = get_available_providers(settings)
        if not available:
            raise LLMNotConfiguredError()
        name = available[0]
        logger.info(f"Auto-selected provider: {name}")

    if name not in PROVIDER_NAMES:
        raise ValidationError("ai_provider", f"unknown provider '{name}'")

    if name == "mock":
        return MockLLMProvider()

    if name == "inference":
        if not settings.inference_api_key:
            raise LLMNotConfiguredError()
        return OpenAIProvider(
            api_key=settings.inference_api_key,
            model=settings.chat_model,
            base_url=settings.inference_base_url,
            provider_name="inference",
        )

    if name == "openai":
        if not settings.openai_api_key:
            raise LLMNotConfiguredError()
        return OpenAIProvider(api_key=settings.openai_api_key, model=settings.openai_model)

    if not settings.anthropic_api_key:
        raise LLMNotConfiguredError()
    return AnthropicProvider(api_key=settings.anthropic_api_key, model=settings.anthropic_model)


def create_embedding_provider(settings) -> EmbeddingProvider:
    """
    Create the embedding provider.

    The inference endpoint is preferred, then OpenAI. Anthropic has no
    embeddings API.
    """
    if settings.ai_provider == "mock":
        return MockEmbeddingProvider()

    if settings.inference_api_key:
        return OpenAIEmbeddingProvider(
            api_key=settings.inference_api_key,
            model=settings.embedding_model,
            base_url=settings.inference_base_url,
            provider_name="inference",
        )

    if settings.openai_api_key:
        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
        )

    raise LLMNotConfiguredError()


class AIInferenceStatus(ConfigurableService):
    """Status entry for the AI features. Optional: notes work without it."""

    service_name = "AI Inference Service"
    description = "Generates note titles and summaries and answers questions about notes"

    def __init__(self, settings):
        self.settings = settings

    def is_required(self) -> bool:
        return False

    def check_configuration(self) -> ServiceStatus:
        if not is_ai_configured(self.settings):
            return ServiceStatus(
                name=self.service_name,
                configured=False,
                connected=None,
                config_to_review=["SEANOTES_INFERENCE_API_KEY", "SEANOTES_OPENAI_API_KEY"],
                error="Configuration missing",
                description=self.description,
            )

        provider = create_provider(self.settings)
        if not provider.is_available():
            return ServiceStatus(
                name=self.service_name,
                configured=True,
                connected=False,
                config_to_review=["SEANOTES_AI_PROVIDER"],
                error=f"Provider {provider.name} unavailable",
                description=self.description,
            )

        return ServiceStatus(
            name=self.service_name,
            configured=True,
            connected=True,
            description=f"{self.description} ({provider.name}: {provider.model})",
        )


__all__ = [
    "PROVIDER_NAMES",
    "get_available_providers",
    "is_ai_configured",
    "is_embedding_configured",
    "create_provider",
    "create_embedding_provider",
    "AIInferenceStatus",
]
