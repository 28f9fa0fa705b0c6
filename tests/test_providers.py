"""
AI Provider Tests

SDK clients are replaced with fakes; no network calls are made.

Run with: pytest tests/test_providers.py -v
"""

from types import SimpleNamespace

import pytest
from tenacity import wait_none

from seanotes.config import Settings
from seanotes.core.llm import MockEmbeddingProvider, MockLLMProvider
from seanotes.core.providers import (
    AIInferenceStatus,
    AnthropicProvider,
    OpenAIEmbeddingProvider,
    OpenAIProvider,
    create_embedding_provider,
    create_provider,
    get_available_providers,
    is_ai_configured,
)
from seanotes.errors import EmbeddingError, LLMNotConfiguredError, ValidationError


def settings_with(tmp_path, **kwargs):
    return Settings(data_dir=tmp_path, **kwargs)


# =============================================================================
# FACTORY
# =============================================================================

class TestFactory:

    def test_nothing_configured(self, tmp_path):
        settings = settings_with(tmp_path)

        assert get_available_providers(settings) == []
        assert not is_ai_configured(settings)
        with pytest.raises(LLMNotConfiguredError):
            create_provider(settings)
        with pytest.raises(LLMNotConfiguredError):
            create_embedding_provider(settings)

    def test_inference_endpoint_preferred(self, tmp_path):
        settings = settings_with(tmp_path, inference_api_key="do-key", openai_api_key="sk-key")

        provider = create_provider(settings)
        embeddings = create_embedding_provider(settings)

        assert provider.name == "inference"
        assert provider.model == settings.chat_model
        assert embeddings.name == "inference"
        assert embeddings.model == "text-embedding-3-small"

    def test_explicit_provider(self, tmp_path):
        settings = settings_with(tmp_path, inference_api_key="do-key", anthropic_api_key="ant-key")

        assert isinstance(create_provider(settings, "anthropic"), AnthropicProvider)
        with pytest.raises(LLMNotConfiguredError):
            create_provider(settings, "openai")
        with pytest.raises(ValidationError):
            create_provider(settings, "llama")

    def test_anthropic_alone_has_no_embeddings(self, tmp_path):
        settings = settings_with(tmp_path, anthropic_api_key="ant-key")

        assert get_available_providers(settings) == ["anthropic"]
        assert not is_ai_configured(settings)

    def test_mock(self, tmp_path):
        settings = settings_with(tmp_path, ai_provider="mock")

        assert isinstance(create_provider(settings), MockLLMProvider)
        assert isinstance(create_embedding_provider(settings), MockEmbeddingProvider)
        assert is_ai_configured(settings)

    def test_status(self, tmp_path):
        missing = AIInferenceStatus(settings_with(tmp_path)).check_configuration()
        assert missing.configured is False
        assert "SEANOTES_INFERENCE_API_KEY" in missing.config_to_review

        ready = AIInferenceStatus(settings_with(tmp_path, ai_provider="mock")).check_configuration()
        assert ready.connected is True
        assert "mock" in ready.description
        assert AIInferenceStatus(settings_with(tmp_path)).is_required() is False


# =============================================================================
# OPENAI-COMPATIBLE
# =============================================================================

class FakeChatCompletions:
    def __init__(self, content="Hello", error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=3, completion_tokens=2, total_tokens=5),
            model=kwargs["model"],
        )


class FakeEmbeddings:
    def __init__(self, failures=0):
        self.failures = failures
        self.calls = 0

    def create(self, model, input):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("reset by peer")
        # Returned out of order on purpose
        data = [SimpleNamespace(index=i, embedding=[float(i), 1.0]) for i in range(len(input))]
        return SimpleNamespace(data=list(reversed(data)))


def test_openai_generate():
    completions = FakeChatCompletions(content="A title")
    provider = OpenAIProvider(api_key="sk-test", model="gpt-4o-mini")
    provider._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))

    response = provider.generate("prompt", system_prompt="system", temperature=0, max_tokens=30)

    assert response.success
    assert response.content == "A title"
    assert response.usage["total_tokens"] == 5
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "prompt"},
    ]
    assert completions.kwargs["max_tokens"] == 30


def test_openai_generate_error_is_a_response():
    provider = OpenAIProvider(api_key="sk-test")
    provider._client = SimpleNamespace(
        chat=SimpleNamespace(completions=FakeChatCompletions(error=TimeoutError("slow")))
    )

    response = provider.generate("prompt")

    assert not response.success
    assert response.error == "slow"


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(OpenAIEmbeddingProvider._create_embeddings.retry, "wait", wait_none())


def test_embeddings_batch_and_order(no_retry_wait):
    fake = FakeEmbeddings()
    provider = OpenAIEmbeddingProvider(api_key="sk-test")
    provider._client = SimpleNamespace(embeddings=fake)

    vectors = provider.embed_texts(["  a ", "", "b"] + ["c"] * 16)

    assert len(vectors) == 18
    assert vectors[0] == [0.0, 1.0]
    assert vectors[1] == [1.0, 1.0]
    assert fake.calls == 2


def test_embeddings_retry_once(no_retry_wait):
    fake = FakeEmbeddings(failures=1)
    provider = OpenAIEmbeddingProvider(api_key="sk-test")
    provider._client = SimpleNamespace(embeddings=fake)

    assert provider.embed_text("hello") == [0.0, 1.0]
    assert fake.calls == 2


def test_embeddings_give_up(no_retry_wait):
    fake = FakeEmbeddings(failures=5)
    provider = OpenAIEmbeddingProvider(api_key="sk-test")
    provider._client = SimpleNamespace(embeddings=fake)

    with pytest.raises(EmbeddingError):
        provider.embed_text("hello")
    assert fake.calls == 2


def test_embed_text_rejects_blank():
    with pytest.raises(EmbeddingError):
        MockEmbeddingProvider().embed_text("   ")


# =============================================================================
# ANTHROPIC
# =============================================================================

class FakeMessages:
    def __init__(self):
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(
            content=[SimpleNamespace(text="Part one. "), SimpleNamespace(type="tool_use"),
                     SimpleNamespace(text="Part two.")],
            usage=SimpleNamespace(input_tokens=4, output_tokens=6),
            model=kwargs["model"],
        )


def test_anthropic_generate_clamps_temperature():
    messages = FakeMessages()
    provider = AnthropicProvider(api_key="ant-key")
    provider._client = SimpleNamespace(messages=messages)

    response = provider.generate("prompt", system_prompt="system", temperature=1.7)

    assert response.content == "Part one. Part two."
    assert response.usage["total_tokens"] == 10
    assert messages.kwargs["temperature"] == 1.0
    assert messages.kwargs["system"] == "system"


def test_mock_embeddings_are_deterministic():
    embeddings = MockEmbeddingProvider(dimensions=16)

    first = embeddings.vector_for("Spare key under the pot")
    assert first == embeddings.vector_for("spare KEY under the pot")
    assert len(first) == 16
    assert embeddings.vector_for("") == [0.0] * 16
