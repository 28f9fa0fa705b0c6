"""
Authentication Tests

Run with: pytest tests/test_auth.py -v
"""

import pytest
from flask import g, session

from seanotes.auth import (
    ADMIN,
    get_current_user,
    hash_password,
    login_user,
    logout_user,
    require_auth,
    verify_password,
)
from seanotes.errors import AuthenticationError, ForbiddenError


def test_hash_and_verify():
    hashed = hash_password("correct-horse")

    assert hashed != "correct-horse"
    assert verify_password(hashed, "correct-horse")
    assert not verify_password(hashed, "wrong-horse")


def test_verify_rejects_missing_values():
    assert not verify_password(None, "anything")
    assert not verify_password(hash_password("x" * 8), "")


@pytest.fixture
def ada(db):
    return db.users.create(name="Ada", email="ada@example.com", password_hash=hash_password("pw-12345"))


@pytest.fixture
def admin(db):
    return db.users.create(
        name="Root", email="root@example.com", password_hash=hash_password("pw-12345"), role=ADMIN,
    )


def test_login_and_logout_manage_session(app, ada):
    with app.test_request_context():
        session["stale"] = "value"
        login_user(ada)

        assert session["user_id"] == ada.id
        assert "stale" not in session
        assert session.permanent
        assert get_current_user().id == ada.id

        logout_user()
        assert get_current_user() is None


def test_current_user_gone(app, db, ada):
    with app.test_request_context():
        login_user(ada)
        db.users.delete(ada.id)

        assert get_current_user() is None


class TestRequireAuth:

    @staticmethod
    def view():
        return g.current_user.name

    def test_anonymous(self, app):
        guarded = require_auth()(self.view)
        with app.test_request_context():
            with pytest.raises(AuthenticationError):
                guarded()

    def test_signed_in(self, app, ada):
        guarded = require_auth()(self.view)
        with app.test_request_context():
            login_user(ada)
            assert guarded() == "Ada"

    def test_role_denied(self, app, ada):
        guarded = require_auth([ADMIN])(self.view)
        with app.test_request_context():
            login_user(ada)
            with pytest.raises(ForbiddenError):
                guarded()

    def test_role_allowed(self, app, admin):
        guarded = require_auth([ADMIN])(self.view)
        with app.test_request_context():
            login_user(admin)
            assert guarded() == "Root"

    def test_keeps_view_name(self):
        def list_users():
            pass

        assert require_auth()(list_users).__name__ == "list_users"
