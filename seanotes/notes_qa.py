"""
SeaNotes - Ephemeral Notes Q&A v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Question answering that builds its vector index in memory for each
request and throws it away afterwards. Nothing is persisted, and only the
requesting user's notes are read.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .core.llm import EmbeddingProvider, LLMProvider
from .errors import EmbeddingError, LLMNotConfiguredError, LLMProviderError
from .note_intelligence import cosine_similarity
from .note_store import NoteStore

logger = logging.getLogger(__name__)

EMPTY_INDEX_ANSWER = "No notes available to answer this question."

SYSTEM_PROMPT = (
    "You are an assistant that answers user questions using only the provided user "
    "notes. If the answer is not contained in the notes, say you don't know. Be "
    "concise and reference the notes when appropriate."
)


@dataclass
class IndexedChunk:
    id: str
    content: str
    embedding: List[float] = field(default_factory=list)


def chunk_note_content(content: str, size: int = 800) -> List[str]:
    """Fixed-size slices of content."""
    return [content[i:i + size] for i in range(0, len(content), size)]


class NotesQAService:
    def __init__(
        self,
        notes: NoteStore,
        provider: Optional[LLMProvider],
        embeddings: Optional[EmbeddingProvider],
    ):
        self.notes = notes
        self.provider = provider
        self.embeddings = embeddings

    def build_index_for_user(self, user_id: str) -> List[IndexedChunk]:
        """Chunk and embed every note of user_id; chunks that fail to embed are dropped."""
        chunks = []
        for note in self.notes.find_by_user_id(user_id):
            pieces = chunk_note_content(note.content or note.title or "")
            for i, piece in enumerate(pieces):
                chunks.append(IndexedChunk(id=f"{note.id}::{i}", content=piece))

        # Serial on purpose; providers rate-limit bursts
        for chunk in chunks:
            try:
                chunk.embedding = self.embeddings.embed_text(chunk.content)
            except EmbeddingError as e:
                logger.warning(f"Embedding failed for chunk {chunk.id}, skipping: {e}")
                chunk.embedding = []

        return [chunk for chunk in chunks if chunk.embedding]

    def retrieve_relevant_chunks(
        self,
        chunks: List[IndexedChunk],
        query: str,
        k: int = 5,
    ) -> List[IndexedChunk]:
        query_vector = self.embeddings.embed_text(query)
        scored = [
            (chunk, cosine_similarity(query_vector, chunk.embedding) if chunk.embedding else -1)
            for chunk in chunks
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [chunk for chunk, score in scored[:k] if score > 0]

    def answer_query_with_notes(self, user_id: str, query: str) -> str:
        if self.provider is None or self.embeddings is None:
            raise LLMNotConfiguredError()

        index = self.build_index_for_user(user_id)
        if not index:
            return EMPTY_INDEX_ANSWER

        relevant = self.retrieve_relevant_chunks(index, query, 6)
        context = "\n".join(f"- {chunk.content}" for chunk in relevant)

        response = self.provider.generate(
            f"User question: {query}\n\nUser notes context:\n{context}",
            system_prompt=SYSTEM_PROMPT,
            temperature=0.2,
            max_tokens=400,
        )
        if not response.success:
            raise LLMProviderError(self.provider.name, response.error or "unknown error")
        return response.content


__all__ = [
    "NotesQAService",
    "IndexedChunk",
    "chunk_note_content",
    "EMPTY_INDEX_ANSWER",
]
