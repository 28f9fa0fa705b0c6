"""
SeaNotes - AI Inference Service v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Titles and summaries for notes, on top of any LLMProvider.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from .cache import PREFIX_SUMMARY, TTLCache, hash_content
from .core.llm import LLMProvider
from .errors import LLMProviderError
from .models import utcnow

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 80
MAX_TITLE_WORDS = 8
MAX_PROMPT_CHARS = 4000

TITLE_SYSTEM_PROMPT = (
    "You write short, descriptive titles for personal notes. "
    "Reply with the title only, without quotes."
)

SUMMARY_SYSTEM_PROMPT = (
    "You summarize personal notes. Reply with a clear summary of two to three "
    "sentences that captures the key points and any action items."
)

_QUOTES = "\"'“”‘’`"
_TRAILING_PUNCTUATION = re.compile(r"[\s.!?,;:]+$")


def generate_timestamp_title(now: Optional[datetime] = None) -> str:
    """Fallback title such as "Note – Oct 19, 2026 14:05"."""
    now = now or utcnow()
    return f"Note – {now.strftime('%b %d, %Y %H:%M')}"


def clean_title(raw: str) -> str:
    """First line of raw, without wrapping quotes, trailing punctuation or a Title: label."""
    lines = [line.strip() for line in (raw or "").splitlines() if line.strip()]
    if not lines:
        return ""

    title = lines[0]
    if title.lower().startswith("title:"):
        title = title[len("title:"):].strip()
    title = title.strip(_QUOTES).strip()
    title = _TRAILING_PUNCTUATION.sub("", title)
    title = title.strip(_QUOTES).strip()

    if len(title) > MAX_TITLE_LENGTH:
        title = title[:MAX_TITLE_LENGTH].rstrip()
    return title


class InferenceService:
    """
    Title and summary generation.

    Summaries are cached by content hash so re-requesting a summary for
    unchanged content costs nothing.
    """

    def __init__(self, provider: LLMProvider, cache: Optional[TTLCache] = None):
        self.provider = provider
        self.cache = cache

    def generate_title(self, content: str) -> str:
        prompt = (
            f"Write a title of at most {MAX_TITLE_WORDS} words for this note.\n\n"
            f"{content.strip()[:MAX_PROMPT_CHARS]}"
        )
        response = self.provider.generate(
            prompt,
            system_prompt=TITLE_SYSTEM_PROMPT,
            temperature=0.3,
            max_tokens=30,
        )
        if not response.success:
            raise LLMProviderError(self.provider.name, response.error or "unknown error")

        title = clean_title(response.content)
        if not title:
            raise LLMProviderError(self.provider.name, "empty title")
        return title

    def generate_title_with_fallback(self, content: str, now: Optional[datetime] = None) -> str:
        try:
            return self.generate_title(content)
        except LLMProviderError as e:
            logger.warning(f"Title generation failed, using timestamp: {e}")
            return generate_timestamp_title(now)

    def generate_summary(self, content: str) -> str:
        key = f"{PREFIX_SUMMARY}:{hash_content(content)}"
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Summary cache hit")
                return cached

        response = self.provider.generate(
            f"Summarize this note:\n\n{content.strip()[:MAX_PROMPT_CHARS]}",
            system_prompt=SUMMARY_SYSTEM_PROMPT,
            temperature=0.3,
            max_tokens=200,
        )
        if not response.success:
            raise LLMProviderError(self.provider.name, response.error or "unknown error")

        summary = (response.content or "").strip()
        if not summary:
            raise LLMProviderError(self.provider.name, "empty summary")

        if self.cache is not None:
            self.cache.set(key, summary)
        return summary


__all__ = [
    "InferenceService",
    "generate_timestamp_title",
    "clean_title",
    "MAX_TITLE_LENGTH",
]
