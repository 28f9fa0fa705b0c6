"""
SeaNotes Core - LLM Interface v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Abstract chat and embedding interfaces. Implementations wrap specific
providers (OpenAI-compatible inference endpoints, Anthropic).
"""

import hashlib
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, List, Sequence

from ..errors import EmbeddingError

EMBEDDING_BATCH_SIZE = 16


@dataclass
class LLMResponse:
    """Response from an LLM call."""
    success: bool
    content: str = ""
    error: Optional[str] = None
    usage: Optional[Dict[str, int]] = None  # tokens used
    model: Optional[str] = None

    @classmethod
    def success_response(cls, content: str, model: str = None,
                         usage: Dict[str, int] = None) -> "LLMResponse":
        """Create a successful response."""
        return cls(success=True, content=content, model=model, usage=usage)

    @classmethod
    def error_response(cls, error: str) -> "LLMResponse":
        """Create an error response."""
        return cls(success=False, error=error)


class LLMProvider(ABC):
    """
    Abstract base class for chat providers.

    Implement this to connect SeaNotes to your LLM of choice.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'inference', 'anthropic')."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier."""
        pass

    @abstractmethod
    def generate(self,
                 prompt: str,
                 system_prompt: Optional[str] = None,
                 temperature: float = 0.3,
                 max_tokens: int = 500) -> LLMResponse:
        """
        Generate a response from the LLM.

        Args:
            prompt: User prompt / main content
            system_prompt: System instructions (optional)
            temperature: Randomness
            max_tokens: Maximum response length

        Returns:
            LLMResponse with success/content or error
        """
        pass

    def is_available(self) -> bool:
        """Check if provider is configured and available."""
        return True


class EmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Subclasses implement _embed_batch; batching and input cleanup live here.
    """

    batch_size = EMBEDDING_BATCH_SIZE

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        pass

    @abstractmethod
    def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        """Embed one batch. Must return one vector per input, in order."""
        pass

    def embed_texts(self, inputs: Sequence[str]) -> List[List[float]]:
        """
        Embed many texts.

        Inputs are stripped and blank ones dropped, so the result lines up
        with the non-blank inputs only.
        """
        cleaned = [text.strip() for text in inputs if text and text.strip()]
        if not cleaned:
            return []

        vectors: List[List[float]] = []
        for start in range(0, len(cleaned), self.batch_size):
            batch = cleaned[start:start + self.batch_size]
            vectors.extend(self._embed_batch(batch))
        return vectors

    def embed_text(self, text: str) -> List[float]:
        vectors = self.embed_texts([text])
        if not vectors:
            raise EmbeddingError("Embedding service returned no vectors")
        return vectors[0]

    def is_available(self) -> bool:
        return True


class MockLLMProvider(LLMProvider):
    """
    Mock LLM provider for testing.

    Returns canned responses without making API calls.
    """

    def __init__(self, responses: Dict[str, str] = None, default_response: str = "Mock answer"):
        """
        Args:
            responses: Map of prompt substrings to responses.
                       If prompt contains key, return value.
            default_response: Returned when no key matches
        """
        self._responses = responses or {}
        self._default_response = default_response
        self._failure: Optional[str] = None
        self._calls = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return "mock-model"

    def generate(self,
                 prompt: str,
                 system_prompt: Optional[str] = None,
                 temperature: float = 0.3,
                 max_tokens: int = 500) -> LLMResponse:
        """Return mock response."""
        self._calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })

        if self._failure is not None:
            return LLMResponse.error_response(self._failure)

        for key, response in self._responses.items():
            if key in prompt:
                return LLMResponse.success_response(response, self.model)

        return LLMResponse.success_response(self._default_response, self.model)

    def set_response(self, key: str, response: str) -> None:
        """Set a canned response for prompts containing key."""
        self._responses[key] = response

    def set_default_response(self, response: str) -> None:
        """Set default response when no key matches."""
        self._default_response = response

    def fail_with(self, error: Optional[str]) -> None:
        """Make every call fail with error (None restores normal behaviour)."""
        self._failure = error

    def get_calls(self):
        """Get list of all calls made."""
        return self._calls


_TOKEN = re.compile(r"\w+")


class MockEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic embeddings for tests.

    Hashed bag of lowercase words, L2-normalised, so texts sharing words
    score higher under cosine similarity.
    """

    def __init__(self, dimensions: int = 64):
        self.dimensions = dimensions
        self._fail_on: Optional[str] = None
        self.calls: List[List[str]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def model(self) -> str:
        return "mock-embedding"

    def fail_when_contains(self, marker: Optional[str]) -> None:
        """Raise EmbeddingError for any batch containing marker."""
        self._fail_on = marker

    def vector_for(self, text: str) -> List[float]:
        vector = [0.0] * self.dimensions
        for word in _TOKEN.findall(text.lower()):
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self.dimensions] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]

    def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        self.calls.append(list(batch))
        if self._fail_on and any(self._fail_on in text for text in batch):
            raise EmbeddingError(f"mock failure on {self._fail_on!r}")
        return [self.vector_for(text) for text in batch]


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "LLMResponse",
    "LLMProvider",
    "EmbeddingProvider",
    "MockLLMProvider",
    "MockEmbeddingProvider",
    "EMBEDDING_BATCH_SIZE",
]
