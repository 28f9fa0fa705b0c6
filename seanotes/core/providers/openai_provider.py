"""
SeaNotes Core - OpenAI Provider v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

OpenAI SDK integration for chat completions and embeddings. Also drives
OpenAI-compatible inference endpoints through base_url.
"""

import logging
from typing import Optional, List
from tenacity import retry, stop_after_attempt, wait_exponential

from ...errors import EmbeddingError
from ..llm import EmbeddingProvider, LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


def _build_client(api_key: str, base_url: Optional[str]):
    try:
        import openai
    except ImportError:
        raise RuntimeError(
            "OpenAI package not installed. Run: pip install openai"
        )

    kwargs = {"api_key": api_key}
    if base_url:
        kwargs["base_url"] = base_url
    return openai.OpenAI(**kwargs)


class OpenAIProvider(LLMProvider):
    """
    Chat completions through the OpenAI Python SDK.

    With base_url set this talks to any OpenAI-compatible endpoint; the
    "inference" provider is this class pointed at the hosted inference API.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        provider_name: str = "openai",
    ):
        """
        Args:
            api_key: API key for the endpoint
            model: Model identifier
            base_url: Optional custom API endpoint
            provider_name: Name reported in logs and status
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._name = provider_name
        self._client = None

        logger.info(f"{provider_name} chat provider initialised with model: {model}")

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self):
        """Lazy initialisation of OpenAI client."""
        if self._client is None:
            self._client = _build_client(self._api_key, self._base_url)
        return self._client

    def is_available(self) -> bool:
        """Check if provider is configured and the SDK client can be built."""
        if not self._api_key:
            return False

        try:
            self._get_client()
            return True
        except RuntimeError as e:
            logger.warning(f"{self._name} provider unavailable: {e}")
            return False

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ) -> LLMResponse:
        """
        Generate a response using the chat completions API.

        Returns:
            LLMResponse with content or error
        """
        try:
            client = self._get_client()

            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            response = client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )

            content = response.choices[0].message.content if response.choices else ""
            content = content or ""

            usage = None
            if response.usage:
                usage = {
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                }

            logger.debug(
                f"{self._name} response: {len(content)} chars, "
                f"{usage.get('total_tokens', 0) if usage else 0} tokens"
            )

            return LLMResponse.success_response(
                content=content,
                model=response.model,
                usage=usage,
            )

        except Exception as e:
            logger.error(f"{self._name} API error: {e}")
            return LLMResponse.error_response(str(e))


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings through the OpenAI SDK (or a compatible endpoint)."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: Optional[str] = None,
        provider_name: str = "openai",
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url
        self._name = provider_name
        self._client = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self):
        if self._client is None:
            self._client = _build_client(self._api_key, self._base_url)
        return self._client

    def is_available(self) -> bool:
        return bool(self._api_key)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _create_embeddings(self, batch: List[str]):
        """Embeddings API call, retried once on failure."""
        return self._get_client().embeddings.create(model=self._model, input=batch)

    def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        try:
            response = self._create_embeddings(batch)
        except Exception as e:
            logger.error(f"{self._name} embedding error: {e}")
            raise EmbeddingError(str(e)) from e

        items = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in items]


__all__ = ["OpenAIProvider", "OpenAIEmbeddingProvider"]
