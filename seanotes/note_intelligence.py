"""
SeaNotes - Note Intelligence v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Retrieval question answering over a user's notes.

Notes are split into overlapping chunks, embedded and stored in
note_chunks. A question is embedded, chunks are ranked by cosine
similarity and the best ones go to the chat model as numbered sources.
When no chunk qualifies, notes containing the question text are used
instead (keyword fallback).
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .core.llm import EmbeddingProvider, LLMProvider
from .errors import EmbeddingError, LLMNotConfiguredError, LLMProviderError, ValidationError
from .logging_utils import Timer
from .models import Note, NoteChunk, to_iso
from .note_store import NoteChunkStore, NoteStore

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CHUNK_SIZE = 800
CHUNK_OVERLAP = 120

DEFAULT_MAX_CONTEXT_CHUNKS = 6
DEFAULT_MAX_CONTEXT_CHARS = 6000
DEFAULT_MIN_SIMILARITY = 0.12

SNIPPET_LENGTH = 400

NO_NOTES_ANSWER = "I could not find any saved notes to answer that question."
NO_ANSWER_FALLBACK = "I could not generate an answer from the available notes."

QA_SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions strictly using the provided "
    "user notes. If the notes do not contain the answer, say so. Include specific "
    "actionable steps when summarizing tasks. Reference sources using [Source X]."
)

QA_INSTRUCTIONS = (
    "Respond with a concise, factual answer derived from the notes. If multiple tasks "
    "are found, return them as a bullet list."
)


# =============================================================================
# TYPES
# =============================================================================

@dataclass
class NoteSource:
    """A note passage the answer was drawn from."""
    note_id: str
    title: str
    snippet: str
    score: float
    chunk_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "noteId": self.note_id,
            "title": self.title,
            "snippet": self.snippet,
            "score": self.score,
            "chunkId": self.chunk_id,
        }


@dataclass
class NoteAnswer:
    answer: str
    sources: List[NoteSource] = field(default_factory=list)
    used_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [s.to_dict() for s in self.sources],
            "usedFallback": self.used_fallback,
        }


# =============================================================================
# PURE HELPERS
# =============================================================================

_LINE_BREAKS = re.compile(r"\n+")


def chunk_content(content: str) -> List[str]:
    """
    Split note content into overlapping chunks suitable for embedding.

    Lines are packed greedily into chunks of at most CHUNK_SIZE characters.
    A single line longer than that is cut into CHUNK_SIZE slices starting
    every CHUNK_SIZE - CHUNK_OVERLAP characters. Every chunk after the first
    then gets the last CHUNK_OVERLAP characters of its predecessor prepended,
    capped at CHUNK_SIZE + CHUNK_OVERLAP.
    """
    normalized = (content or "").replace("\r\n", "\n").strip()
    if not normalized:
        return []

    lines = [line.strip() for line in _LINE_BREAKS.split(normalized)]
    lines = [line for line in lines if line]

    chunks: List[str] = []
    current = ""

    for line in lines:
        if len((current + "\n" + line).strip()) <= CHUNK_SIZE:
            current = f"{current}\n{line}" if current else line
            continue

        if current.strip():
            chunks.append(current.strip())
        current = ""

        if len(line) <= CHUNK_SIZE:
            current = line
            continue

        for index in range(0, len(line), CHUNK_SIZE - CHUNK_OVERLAP):
            piece = line[index:index + CHUNK_SIZE].strip()
            if piece:
                chunks.append(piece)

    if current.strip():
        chunks.append(current.strip())

    overlapped = []
    for index, chunk in enumerate(chunks):
        if index == 0:
            overlapped.append(chunk)
            continue
        overlap = chunks[index - 1][-CHUNK_OVERLAP:]
        overlapped.append(f"{overlap}\n{chunk}"[:CHUNK_SIZE + CHUNK_OVERLAP].strip())

    return [chunk for chunk in overlapped if chunk]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between a and b; 0 for empty, mismatched or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for val_a, val_b in zip(a, b):
        dot += val_a * val_b
        norm_a += val_a * val_a
        norm_b += val_b * val_b

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


def select_chunks(
    scored: List[Tuple[NoteChunk, float]],
    max_chunks: int,
    max_chars: int,
    min_similarity: float,
) -> List[Tuple[NoteChunk, float]]:
    """
    Greedy context selection over chunks sorted by descending score.

    Non-positive scores never qualify. Once something is selected, a chunk
    that would push the context past max_chars is skipped, and once more
    than two are selected, scores below min_similarity are skipped. If
    nothing qualifies the top-scored chunk is used alone.
    """
    selected: List[Tuple[NoteChunk, float]] = []
    accumulated = 0

    for chunk, score in scored:
        if score <= 0:
            continue
        if len(selected) >= max_chunks:
            break

        length = len(chunk.content)
        if accumulated + length > max_chars and selected:
            continue
        if score < min_similarity and len(selected) > 2:
            continue

        selected.append((chunk, score))
        accumulated += length

    if not selected and scored:
        selected.append(scored[0])

    return selected


def format_source_block(index: int, title: Optional[str], created_at, body: str) -> str:
    return f"Source {index} | Note: {title or 'Untitled'} | Created: {to_iso(created_at)}\n{body.strip()}"


def build_user_prompt(question: str, context_blocks: List[str]) -> str:
    if context_blocks:
        context = "User notes context:\n" + "\n\n".join(context_blocks)
    else:
        context = "No relevant notes were supplied."
    return "\n\n".join([f"Question: {question}", context, QA_INSTRUCTIONS])


# =============================================================================
# SERVICE
# =============================================================================

class NoteIntelligenceService:
    """
    Embedding sync and question answering over stored chunks.

    Without both a chat and an embedding provider the service is
    "not configured": syncs are skipped and questions raise
    LLMNotConfiguredError.
    """

    def __init__(
        self,
        notes: NoteStore,
        chunks: NoteChunkStore,
        provider: Optional[LLMProvider] = None,
        embeddings: Optional[EmbeddingProvider] = None,
        max_context_chunks: int = DEFAULT_MAX_CONTEXT_CHUNKS,
        max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
    ):
        self.notes = notes
        self.chunks = chunks
        self.provider = provider
        self.embeddings = embeddings
        self.max_context_chunks = max_context_chunks
        self.max_context_chars = max_context_chars
        self.min_similarity = min_similarity

    @property
    def configured(self) -> bool:
        return self.provider is not None and self.embeddings is not None

    # =========================================================================
    # EMBEDDING SYNC
    # =========================================================================

    def sync_note_embeddings(self, note: Note) -> int:
        """
        Re-chunk and re-embed a note, replacing its stored chunks.

        Returns:
            Number of chunks now stored for the note (unchanged on failure)
        """
        if not self.configured:
            return 0

        content = (note.content or "").strip()
        pieces = chunk_content(content) if content else []
        if not pieces:
            self.chunks.delete_for_note(note.id)
            return 0

        try:
            with Timer(logger, f"embed note {note.id}"):
                vectors = self.embeddings.embed_texts(pieces)
        except EmbeddingError as e:
            logger.error(f"Failed to generate embeddings for note {note.id}: {e}",
                         extra={"note_id": note.id})
            return self.chunks.count_for_note(note.id)

        written = self.chunks.replace_for_note(note, pieces, vectors)
        if written is None:
            logger.info(f"Note {note.id} changed during embedding; keeping newer chunks",
                        extra={"note_id": note.id})
            return self.chunks.count_for_note(note.id)
        return written

    def delete_note_embeddings(self, note_id: str) -> int:
        return self.chunks.delete_for_note(note_id)

    def ensure_embeddings_for_user(self, user_id: str) -> int:
        """
        Backfill chunks for a user who has notes but no chunks at all.

        Returns:
            Number of notes processed
        """
        if not self.configured:
            return 0

        if self.chunks.count_for_user(user_id) > 0:
            return 0
        notes = self.notes.find_by_user_id(user_id)
        if not notes:
            return 0

        logger.info(f"Backfilling embeddings for {len(notes)} notes", extra={"user_id": user_id})
        processed = 0
        for note in notes:
            try:
                self.sync_note_embeddings(note)
                processed += 1
            except Exception:
                logger.exception(f"Failed to backfill embeddings for note {note.id}",
                                 extra={"note_id": note.id})
        return processed

    # =========================================================================
    # QUESTION ANSWERING
    # =========================================================================

    def answer_question(self, user_id: str, question: str) -> NoteAnswer:
        if not self.configured:
            raise LLMNotConfiguredError()

        question = (question or "").strip()
        if not question:
            raise ValidationError("question", "A question is required")

        self.ensure_embeddings_for_user(user_id)

        question_vector = self.embeddings.embed_text(question)
        stored = self.chunks.find_for_user(user_id)

        if not stored:
            return NoteAnswer(answer=NO_NOTES_ANSWER, sources=[], used_fallback=False)

        scored = []
        for chunk in stored:
            score = cosine_similarity(question_vector, chunk.embedding)
            if not math.isnan(score):
                scored.append((chunk, score))
        scored.sort(key=lambda item: item[1], reverse=True)

        selected = select_chunks(
            scored,
            self.max_context_chunks,
            self.max_context_chars,
            self.min_similarity,
        )

        sources = [
            NoteSource(
                note_id=chunk.note_id,
                title=chunk.note_title,
                snippet=chunk.content[:SNIPPET_LENGTH],
                score=round(score, 4),
                chunk_id=chunk.id,
            )
            for chunk, score in selected
        ]
        context_blocks = [
            format_source_block(i, chunk.note_title, chunk.note_created_at, chunk.content)
            for i, (chunk, _) in enumerate(selected, 1)
        ]

        used_fallback = False
        if not context_blocks:
            fallback = self.notes.search_keyword(user_id, question, self.max_context_chunks)
            if fallback:
                used_fallback = True
                context_blocks = [
                    format_source_block(i, note.title, note.created_at, note.content[:CHUNK_SIZE])
                    for i, note in enumerate(fallback, 1)
                ]
                sources = [
                    NoteSource(
                        note_id=note.id,
                        title=note.title,
                        snippet=note.content[:SNIPPET_LENGTH],
                        score=0,
                        chunk_id=f"note:{note.id}",
                    )
                    for note in fallback
                ]

        response = self.provider.generate(
            build_user_prompt(question, context_blocks),
            system_prompt=QA_SYSTEM_PROMPT,
            temperature=0,
            max_tokens=500,
        )
        if not response.success:
            raise LLMProviderError(self.provider.name, response.error or "unknown error")

        answer = (response.content or "").strip() or NO_ANSWER_FALLBACK
        logger.info(
            f"Answered question from {len(sources)} sources (fallback={used_fallback})",
            extra={"user_id": user_id},
        )
        return NoteAnswer(answer=answer, sources=sources, used_fallback=used_fallback)


__all__ = [
    "NoteIntelligenceService",
    "NoteAnswer",
    "NoteSource",
    "chunk_content",
    "cosine_similarity",
    "select_chunks",
    "build_user_prompt",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "NO_NOTES_ANSWER",
    "NO_ANSWER_FALLBACK",
    "QA_SYSTEM_PROMPT",
]
