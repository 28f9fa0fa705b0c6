"""
SeaNotes - Authentication v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Session-cookie authentication and the require_auth route guard.
"""

import logging
from functools import wraps
from typing import Iterable, Optional

from flask import g, session
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthenticationError, ForbiddenError
from .models import User, UserRole
from .services import get_services

logger = logging.getLogger(__name__)

ADMIN = UserRole.ADMIN.value
USER = UserRole.USER.value
ALL_ROLES = (ADMIN, USER)

SESSION_USER_KEY = "user_id"
MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if not password_hash or not password:
        return False
    return check_password_hash(password_hash, password)


def login_user(user: User) -> None:
    session.clear()
    session[SESSION_USER_KEY] = user.id
    session.permanent = True
    logger.info("User signed in", extra={"user_id": user.id})


def logout_user() -> None:
    session.pop(SESSION_USER_KEY, None)


def get_current_user() -> Optional[User]:
    """The signed-in user, or None when the session is empty or the user is gone."""
    user_id = session.get(SESSION_USER_KEY)
    if not user_id:
        return None
    return get_services().db.users.find_by_id(user_id)


def require_auth(allowed_roles: Optional[Iterable[str]] = None):
    """
    Route guard.

    Raises AuthenticationError (401) without a signed-in user and
    ForbiddenError (403) when the user's role is not allowed. The user is
    available to the view as g.current_user.
    """
    roles = tuple(allowed_roles) if allowed_roles else ALL_ROLES

    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if user is None:
                raise AuthenticationError()
            if user.role not in roles:
                logger.warning(f"Role {user.role} denied for {f.__name__}",
                               extra={"user_id": user.id})
                raise ForbiddenError()
            g.current_user = user
            return f(*args, **kwargs)
        return decorated
    return decorator


__all__ = [
    "ADMIN",
    "USER",
    "ALL_ROLES",
    "MIN_PASSWORD_LENGTH",
    "hash_password",
    "verify_password",
    "login_user",
    "logout_user",
    "get_current_user",
    "require_auth",
]
