"""
SeaNotes Core - Anthropic Provider v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Anthropic Claude API integration for titles, summaries and answers.
Chat only: embeddings always come from an OpenAI-compatible endpoint.
"""

import logging
from typing import Optional

from ..llm import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """Anthropic messages API provider."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._client = None

        logger.info(f"Anthropic provider initialised with model: {model}")

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self):
        """Lazy initialisation of Anthropic client."""
        if self._client is None:
            try:
                import anthropic
            except ImportError:
                raise RuntimeError(
                    "Anthropic package not installed. Run: pip install anthropic"
                )

            kwargs = {"api_key": self._api_key}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            self._client = anthropic.Anthropic(**kwargs)
        return self._client

    def is_available(self) -> bool:
        if not self._api_key:
            return False

        try:
            self._get_client()
            return True
        except RuntimeError as e:
            logger.warning(f"Anthropic provider unavailable: {e}")
            return False

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> LLMResponse:
        try:
            client = self._get_client()

            kwargs = {
                "model": self._model,
                "max_tokens": max_tokens,
                "messages": [{"role": "user", "content": prompt}],
                # Anthropic accepts 0.0-1.0
                "temperature": max(0.0, min(1.0, temperature)),
            }
            if system_prompt:
                kwargs["system"] = system_prompt

            response = client.messages.create(**kwargs)

            content = "".join(
                block.text for block in response.content if hasattr(block, "text")
            )

            usage = None
            if response.usage:
                usage = {
                    "prompt_tokens": response.usage.input_tokens,
                    "completion_tokens": response.usage.output_tokens,
                    "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
                }

            return LLMResponse.success_response(
                content=content,
                model=response.model,
                usage=usage,
            )

        except Exception as e:
            logger.error(f"Anthropic API error: {e}")
            return LLMResponse.error_response(str(e))


__all__ = ["AnthropicProvider"]
