"""
SeaNotes - Note Search v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Fuzzy in-memory search over notes with date filters and sorting.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from .errors import ValidationError
from .models import Note

T = TypeVar("T", bound=Note)

MIN_RELEVANCE = 0.3

SORT_FIELDS = ("relevance", "date", "title")
SORT_ORDERS = ("asc", "desc")


@dataclass
class SearchFilters:
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    sort_by: str = "relevance"
    sort_order: str = "desc"

    def __post_init__(self):
        if self.sort_by not in SORT_FIELDS:
            raise ValidationError("sortBy", f"must be one of {', '.join(SORT_FIELDS)}")
        if self.sort_order not in SORT_ORDERS:
            raise ValidationError("sortOrder", "must be asc or desc")


@dataclass
class SearchResult(Generic[T]):
    item: T
    score: float
    matches: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item.to_dict(),
            "score": self.score,
            "matches": list(self.matches),
        }


def calculate_score(query: str, text: str) -> float:
    """
    1.0 for a case-insensitive substring match, otherwise the fraction of
    query characters found in order within text.
    """
    query_lower = query.lower()
    text_lower = (text or "").lower()

    if query_lower in text_lower:
        return 1.0

    matched = 0
    for char in text_lower:
        if matched == len(query_lower):
            break
        if char == query_lower[matched]:
            matched += 1

    return matched / len(query_lower)


class SearchService:
    def search(
        self,
        items: Sequence[T],
        query: str,
        filters: Optional[SearchFilters] = None,
    ) -> List[SearchResult[T]]:
        filters = filters or SearchFilters()

        candidates = list(items)
        if filters.start is not None:
            candidates = [item for item in candidates if item.created_at >= filters.start]
        if filters.end is not None:
            candidates = [item for item in candidates if item.created_at <= filters.end]

        results = []
        for item in candidates:
            title_score = calculate_score(query, item.title)
            content_score = calculate_score(query, item.content)
            best = max(title_score, content_score)
            if best <= MIN_RELEVANCE:
                continue

            matches = []
            if title_score > MIN_RELEVANCE:
                matches.append("title")
            if content_score > MIN_RELEVANCE:
                matches.append("content")
            results.append(SearchResult(item=item, score=best, matches=matches))

        descending = filters.sort_order != "asc"
        if filters.sort_by == "date":
            results.sort(key=lambda r: r.item.created_at, reverse=descending)
        elif filters.sort_by == "title":
            results.sort(key=lambda r: (r.item.title or "").casefold(), reverse=descending)
        else:
            results.sort(key=lambda r: r.score, reverse=True)

        return results

    @staticmethod
    def highlight_matches(text: str, query: str) -> str:
        if not query:
            return text
        pattern = re.compile(f"({re.escape(query)})", re.IGNORECASE)
        return pattern.sub(r"<mark>\1</mark>", text)


search_service = SearchService()


__all__ = [
    "SearchService",
    "SearchFilters",
    "SearchResult",
    "calculate_score",
    "search_service",
    "MIN_RELEVANCE",
]
