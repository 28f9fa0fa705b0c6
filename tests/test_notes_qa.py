"""
Ephemeral Notes Q&A Tests

Run with: pytest tests/test_notes_qa.py -v
"""

import pytest

from seanotes.core.llm import MockEmbeddingProvider, MockLLMProvider
from seanotes.errors import LLMNotConfiguredError, LLMProviderError
from seanotes.notes_qa import (
    EMPTY_INDEX_ANSWER,
    SYSTEM_PROMPT,
    IndexedChunk,
    NotesQAService,
    chunk_note_content,
)


@pytest.fixture
def user(database):
    return database.users.create(name="Ada", email="ada@example.com", password_hash="x")


@pytest.fixture
def llm():
    return MockLLMProvider(default_response="You left the key under the pot.")


@pytest.fixture
def embeddings():
    return MockEmbeddingProvider()


@pytest.fixture
def qa(database, llm, embeddings):
    return NotesQAService(database.notes, llm, embeddings)


def test_chunk_note_content_fixed_slices():
    assert chunk_note_content("") == []
    assert chunk_note_content("abcdef", size=4) == ["abcd", "ef"]
    assert [len(p) for p in chunk_note_content("x" * 1700)] == [800, 800, 100]


def test_index_uses_note_and_position_ids(qa, database, user):
    note = database.notes.create(user.id, "Long", "z" * 900)

    index = qa.build_index_for_user(user.id)

    assert [chunk.id for chunk in index] == [f"{note.id}::0", f"{note.id}::1"]
    assert all(chunk.embedding for chunk in index)


def test_index_falls_back_to_title_for_empty_content(qa, database, user):
    database.notes.create(user.id, "Dentist on Monday", "")

    index = qa.build_index_for_user(user.id)

    assert [chunk.content for chunk in index] == ["Dentist on Monday"]


def test_index_only_reads_own_notes(qa, database, user):
    other = database.users.create(name="Bob", email="bob@example.com", password_hash="x")
    database.notes.create(other.id, "Secret", "bob's private plans")
    database.notes.create(user.id, "Mine", "ada's plans")

    index = qa.build_index_for_user(user.id)

    assert [chunk.content for chunk in index] == ["ada's plans"]


def test_failed_chunks_are_dropped(qa, database, embeddings, user):
    database.notes.create(user.id, "Good", "garden plans")
    database.notes.create(user.id, "Bad", "poison pill")
    embeddings.fail_when_contains("poison")

    index = qa.build_index_for_user(user.id)

    assert [chunk.content for chunk in index] == ["garden plans"]


def test_retrieve_filters_non_positive_scores(qa, embeddings):
    chunks = [
        IndexedChunk(id="a", content="spare key", embedding=embeddings.vector_for("spare key")),
        IndexedChunk(id="b", content="nothing", embedding=[0.0] * embeddings.dimensions),
        IndexedChunk(id="c", content="no vector"),
    ]

    relevant = qa.retrieve_relevant_chunks(chunks, "spare key", k=5)

    assert [chunk.id for chunk in relevant] == ["a"]


def test_retrieve_respects_k(qa, embeddings):
    vector = embeddings.vector_for("spare key")
    chunks = [IndexedChunk(id=str(i), content="spare key", embedding=vector) for i in range(10)]

    assert len(qa.retrieve_relevant_chunks(chunks, "spare key", k=3)) == 3


def test_answer_with_no_notes(qa, llm, user):
    assert qa.answer_query_with_notes(user.id, "anything?") == EMPTY_INDEX_ANSWER
    assert llm.get_calls() == []


def test_answer_prompt(qa, database, llm, user):
    database.notes.create(user.id, "House", "The spare key is under the blue pot")

    answer = qa.answer_query_with_notes(user.id, "where is the spare key")

    assert answer == "You left the key under the pot."
    call = llm.get_calls()[0]
    assert call["prompt"].startswith("User question: where is the spare key\n\nUser notes context:\n")
    assert "- The spare key is under the blue pot" in call["prompt"]
    assert call["system_prompt"] == SYSTEM_PROMPT
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 400


def test_answer_requires_providers(database, user):
    qa = NotesQAService(database.notes, MockLLMProvider(), None)
    with pytest.raises(LLMNotConfiguredError):
        qa.answer_query_with_notes(user.id, "question")


def test_answer_provider_failure(qa, database, llm, user):
    database.notes.create(user.id, "House", "spare key")
    llm.fail_with("rate limited")

    with pytest.raises(LLMProviderError):
        qa.answer_query_with_notes(user.id, "spare key")


def test_nothing_is_persisted(qa, database, user):
    database.notes.create(user.id, "House", "spare key")
    qa.answer_query_with_notes(user.id, "spare key")

    assert database.chunks.count_for_user(user.id) == 0
