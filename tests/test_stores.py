"""
Store Tests

Tests for:
- Schema initialisation and db.py helpers
- Users and subscriptions
- Notes paging, search and ordering
- Verification tokens

Run with: pytest tests/test_stores.py -v
"""

import sqlite3
import time
from datetime import timedelta

import pytest

from db import check_database, ensure_database, init_database, main as db_main
from seanotes.errors import ConflictError, ResourceNotFoundError, ValidationError
from seanotes.models import SubscriptionPlan, SubscriptionStatus, UserRole, utcnow


def make_user(database, name="Ada", email="ada@example.com", **kwargs):
    return database.users.create(name=name, email=email, password_hash="hash", **kwargs)


# =============================================================================
# SCHEMA
# =============================================================================

class TestSchema:

    def test_init_creates_tables(self, tmp_path):
        path = init_database(tmp_path / "nested" / "fresh.db")
        status = check_database(path)

        assert set(status["tables"]) >= {
            "users", "subscriptions", "notes", "note_chunks", "verification_tokens",
        }
        assert status["total_rows"] == 0

    def test_init_keeps_existing_database(self, database):
        make_user(database)
        init_database(database.db_path)

        assert database.users.count() == 1

    def test_force_recreates(self, database):
        make_user(database)
        init_database(database.db_path, force=True)

        assert database.users.count() == 0

    def test_ensure_database_creates_when_missing(self, tmp_path):
        path = ensure_database(tmp_path / "ensured.db")
        assert path.exists()

    def test_check_missing_database(self, tmp_path):
        assert check_database(tmp_path / "absent.db") == {"error": "Database not found"}


class TestDbCli:

    def test_no_command_prints_usage(self, capsys):
        assert db_main([]) == 1
        assert "purge-tokens" in capsys.readouterr().out

    def test_init_then_check(self, tmp_path, capsys):
        path = tmp_path / "cli.db"

        assert db_main(["init", str(path)]) == 0
        assert db_main(["init", str(path)]) == 1
        assert db_main(["check", str(path)]) == 0
        assert "notes" in capsys.readouterr().out

    def test_missing_database(self, tmp_path):
        assert db_main(["migrate", str(tmp_path / "absent.db")]) == 1

    def test_purge_tokens(self, database, capsys):
        database.tokens.issue("ada@example.com", lifetime=timedelta(seconds=-5))
        database.tokens.issue("ada@example.com")

        assert db_main(["purge-tokens", str(database.db_path)]) == 0
        assert "Removed 1 expired token(s)" in capsys.readouterr().out


# =============================================================================
# USERS
# =============================================================================

class TestUsers:

    def test_create_normalises_email(self, database):
        user = make_user(database, email="  Ada@Example.COM ")

        assert user.email == "ada@example.com"
        assert database.users.find_by_email("ADA@example.com").id == user.id
        assert user.role == UserRole.USER.value
        assert user.summaries_enabled is True

    def test_duplicate_email_rejected(self, database):
        make_user(database)
        with pytest.raises(ConflictError):
            make_user(database, name="Other", email="ADA@example.com")

    def test_update(self, database):
        user = make_user(database)
        updated = database.users.update(user.id, email_verified=True, summaries_enabled=False)

        assert updated.email_verified is True
        assert updated.summaries_enabled is False

    def test_update_rejects_unknown_columns(self, database):
        user = make_user(database)
        with pytest.raises(ValueError):
            database.users.update(user.id, is_superuser=True)

    def test_update_missing_user(self, database):
        with pytest.raises(ResourceNotFoundError):
            database.users.update("missing", name="Nobody")

    def test_update_by_email(self, database):
        make_user(database)
        user = database.users.update_by_email("ADA@example.com", name="Ada L.")
        assert user.name == "Ada L."

    def test_find_by_verification_token(self, database):
        user = make_user(database, verification_token="tok-123")
        assert database.users.find_by_verification_token("tok-123").id == user.id
        assert database.users.find_by_verification_token("nope") is None

    def test_to_dict_hides_password_hash(self, database):
        data = make_user(database).to_dict()

        assert "password_hash" not in data
        assert "passwordHash" not in data
        assert data["createdAt"].endswith("Z")

    def test_delete_cascades(self, database):
        user = make_user(database)
        database.subscriptions.create(user.id)
        database.notes.create(user.id, "Note", "content")

        database.users.delete(user.id)

        assert database.subscriptions.find_by_user_id(user.id) == []
        assert database.notes.find_by_user_id(user.id) == []


class TestFindAll:

    @pytest.fixture
    def people(self, database):
        ada = make_user(database, "Ada", "ada@example.com")
        bob = make_user(database, "Bob", "bob@example.com")
        make_user(database, "Cleo", "cleo@example.com")
        database.subscriptions.create(ada.id, plan=SubscriptionPlan.PRO)
        database.subscriptions.create(bob.id, status=SubscriptionStatus.CANCELED)
        return database

    def test_ordered_by_name_with_subscription(self, people):
        users, total = people.users.find_all()

        assert total == 3
        assert [u.user.name for u in users] == ["Ada", "Bob", "Cleo"]
        assert users[0].subscription.plan == "PRO"
        assert users[2].subscription is None
        assert users[2].to_dict()["subscription"] is None

    def test_paging(self, people):
        users, total = people.users.find_all(page=2, page_size=2)

        assert total == 3
        assert [u.user.name for u in users] == ["Cleo"]

    def test_search_name(self, people):
        users, total = people.users.find_all(search_name="o")
        assert total == 2
        assert [u.user.name for u in users] == ["Bob", "Cleo"]

    def test_filters(self, people):
        users, _ = people.users.find_all(filter_plan="PRO")
        assert [u.user.name for u in users] == ["Ada"]

        users, _ = people.users.find_all(filter_status="CANCELED")
        assert [u.user.name for u in users] == ["Bob"]


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

class TestSubscriptions:

    def test_create_and_find(self, database):
        user = make_user(database)
        created = database.subscriptions.create(user.id, customer_id="cus_1")

        assert created.status == "ACTIVE"
        assert created.plan == "FREE"
        assert database.subscriptions.find_by_user_and_status(user.id, SubscriptionStatus.ACTIVE).id == created.id
        assert database.subscriptions.find_by_user_and_status(user.id, "CANCELED") is None
        assert database.subscriptions.find_by_id(created.id).customer_id == "cus_1"

    def test_one_per_user(self, database):
        user = make_user(database)
        database.subscriptions.create(user.id)
        with pytest.raises(sqlite3.IntegrityError):
            database.subscriptions.create(user.id)

    def test_update_by_customer_id(self, database):
        user = make_user(database)
        database.subscriptions.create(user.id, customer_id="cus_1")

        updated = database.subscriptions.update_by_customer_id("cus_1", plan="PRO")
        assert updated.plan == "PRO"

        with pytest.raises(ResourceNotFoundError):
            database.subscriptions.update_by_customer_id("cus_missing", plan="PRO")

    def test_delete(self, database):
        user = make_user(database)
        subscription = database.subscriptions.create(user.id)
        database.subscriptions.delete(subscription.id)

        assert database.subscriptions.find_by_id(subscription.id) is None


# =============================================================================
# NOTES
# =============================================================================

class TestNotes:

    @pytest.fixture
    def owner(self, database):
        return make_user(database)

    @pytest.fixture
    def notes(self, database, owner):
        created = []
        for title, content in [("Banana", "yellow fruit"), ("apple", "red fruit"), ("Cherry", "Über dark")]:
            created.append(database.notes.create(owner.id, title, content))
            time.sleep(0.002)
        return created

    def test_newest_first(self, database, owner, notes):
        page = database.notes.find_many(owner.id)
        assert [n.title for n in page] == ["Cherry", "apple", "Banana"]

    def test_oldest_and_title_order(self, database, owner, notes):
        oldest = database.notes.find_many(owner.id, order_by="oldest")
        by_title = database.notes.find_many(owner.id, order_by="title")

        assert [n.title for n in oldest] == ["Banana", "apple", "Cherry"]
        assert [n.title for n in by_title] == ["apple", "Banana", "Cherry"]

    def test_unknown_order(self, database, owner):
        with pytest.raises(ValidationError):
            database.notes.find_many(owner.id, order_by="random")

    def test_skip_take(self, database, owner, notes):
        page = database.notes.find_many(owner.id, skip=1, take=1)
        assert [n.title for n in page] == ["apple"]

    def test_search_is_case_insensitive(self, database, owner, notes):
        assert [n.title for n in database.notes.find_many(owner.id, search="FRUIT")] == ["apple", "Banana"]
        assert [n.title for n in database.notes.find_many(owner.id, search="über")] == ["Cherry"]
        assert database.notes.count(owner.id, search="fruit") == 2
        assert database.notes.count(owner.id) == 3

    def test_notes_are_scoped_to_owner(self, database, owner, notes):
        other = make_user(database, "Bob", "bob@example.com")
        assert database.notes.find_many(other.id) == []
        assert database.notes.count(other.id) == 0

    def test_update_bumps_updated_at(self, database, owner):
        note = database.notes.create(owner.id, "Draft", "v1")
        time.sleep(0.002)
        updated = database.notes.update(note.id, summary="short")

        assert updated.summary == "short"
        assert updated.updated_at > note.updated_at
        assert updated.created_at == note.created_at

    def test_update_missing_note(self, database):
        with pytest.raises(ResourceNotFoundError):
            database.notes.update("missing", title="x")

    def test_chunks_replace_and_join_note(self, database, owner):
        note = database.notes.create(owner.id, "Chunked", "one two")
        assert database.chunks.replace_for_note(note, ["one", "two"], [[1.0, 0.0]]) == 2

        chunks = database.chunks.find_for_user(owner.id)
        assert [c.content for c in chunks] == ["one", "two"]
        assert chunks[0].embedding == [1.0, 0.0]
        assert chunks[1].embedding == []
        assert chunks[0].note_title == "Chunked"
        assert chunks[0].note_created_at == note.created_at

        assert database.chunks.delete_for_note(note.id) == 2
        assert database.chunks.count_for_user(owner.id) == 0


# =============================================================================
# TOKENS
# =============================================================================

class TestTokens:

    def test_issue_and_find(self, database):
        token = database.tokens.issue("ada@example.com")

        assert database.tokens.find("ada@example.com", token.token) == token
        assert database.tokens.find_by_token(token.token).identifier == "ada@example.com"
        assert database.tokens.find("bob@example.com", token.token) is None
        assert not token.is_expired()

    def test_delete(self, database):
        token = database.tokens.issue("ada@example.com")
        database.tokens.delete("ada@example.com", token.token)

        assert database.tokens.find_by_token(token.token) is None

    def test_delete_expired(self, database):
        stale = database.tokens.create("ada@example.com", "stale", utcnow() - timedelta(minutes=1))
        fresh = database.tokens.issue("ada@example.com")

        assert stale.is_expired()
        assert database.tokens.delete_expired() == 1
        assert database.tokens.find_by_token(fresh.token) is not None
