"""
Shared fixtures for SeaNotes tests.

Every app gets a temporary SQLite database, mock AI providers, the
logging email transport and inline background tasks.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from seanotes.cache import reset_caches
from seanotes.config import Settings
from seanotes.core.llm import MockEmbeddingProvider, MockLLMProvider
from seanotes.email_service import LogEmailService
from seanotes.events import EventManager


TITLE_PROMPT = "Write a title"
SUMMARY_PROMPT = "Summarize this note"


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def clean_caches():
    reset_caches()
    yield
    reset_caches()


@pytest.fixture
def database(tmp_path):
    """A fresh Database on a temporary file, without an app."""
    from db import init_database
    from seanotes.database import Database

    return Database(init_database(tmp_path / "seanotes.db"))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        secret_key="test-secret-key",
        testing=True,
        ai_provider="mock",
        rate_limit_enabled=False,
        background_mode="inline",
    )


@pytest.fixture
def llm():
    return MockLLMProvider(responses={
        TITLE_PROMPT: "Weekly Groceries",
        SUMMARY_PROMPT: "Buy milk and eggs before Friday.",
    })


@pytest.fixture
def embeddings():
    return MockEmbeddingProvider()


@pytest.fixture
def email_service():
    return LogEmailService()


@pytest.fixture
def events():
    return EventManager()


@pytest.fixture
def app(settings, llm, embeddings, email_service, events):
    from server import create_app

    return create_app(
        settings,
        llm=llm,
        embeddings=embeddings,
        email_service=email_service,
        events=events,
    )


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def services(app):
    return app.extensions["seanotes"]


@pytest.fixture
def db(services):
    return services.db


# =============================================================================
# HELPERS
# =============================================================================

def signup(client, email="ada@example.com", name="Ada", password="correct-horse"):
    """Create an account through the API; the client is signed in afterwards."""
    response = client.post("/api/auth/signup", json={
        "name": name,
        "email": email,
        "password": password,
    })
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def create_note(client, content="Buy milk\nBuy eggs", title=None):
    body = {"content": content}
    if title is not None:
        body["title"] = title
    response = client.post("/api/notes", json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]
