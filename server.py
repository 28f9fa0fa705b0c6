"""
SeaNotes Server - Flask API for SeaNotes

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

REST API for:
- Accounts, sessions, magic links and password resets
- Note CRUD, summaries and fuzzy search
- Question answering over a user's notes
- Admin user listing and cache statistics
- Live note title updates over SSE
- System status
"""

import logging
import platform
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from flask import Blueprint, Flask, Response, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from db import ensure_database
from seanotes import __version__
from seanotes.auth import (
    ADMIN,
    MIN_PASSWORD_LENGTH,
    hash_password,
    login_user,
    logout_user,
    require_auth,
    verify_password,
)
from seanotes.cache import (
    cache_notes_listing,
    get_all_stats,
    invalidate_user_notes,
    notes_cache,
    notes_generation,
    notes_list_key,
)
from seanotes.config import Settings, load_env_file
from seanotes.config_validator import validate_on_startup
from seanotes.core.llm import EmbeddingProvider, LLMProvider
from seanotes.database import Database
from seanotes.email_service import EmailService
from seanotes.errors import (
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidTokenError,
    LLMNotConfiguredError,
    MissingFieldError,
    ResourceNotFoundError,
    SeaNotesError,
    ValidationError,
)
from seanotes.events import EventManager
from seanotes.inference import generate_timestamp_title
from seanotes.logging_utils import init_request_logging, setup_logging
from seanotes.models import (
    SubscriptionPlan,
    SubscriptionStatus,
    UserWithSubscription,
    from_iso,
    to_iso,
    utcnow,
)
from seanotes.rate_limiter import ai_limit, auth_limit, exempt, health_limit, init_rate_limiter
from seanotes.search import SearchFilters, search_service
from seanotes.services import EXTENSION_KEY, build_services, get_services

# =============================================================================
# CONFIGURATION
# =============================================================================

# Load .env before Settings.from_env()
_server_dir = Path(__file__).parent
load_env_file(_server_dir / ".env")

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

MAX_PAGE_SIZE = 100

ENDPOINTS = [
    "/api/health",
    "/api/info",
    "/api/system-status",
    "/api/auth/signup",
    "/api/auth/login",
    "/api/auth/logout",
    "/api/auth/me",
    "/api/auth/magic-link",
    "/api/auth/magic-link/verify",
    "/api/forgot-password",
    "/api/reset-password",
    "/api/notes",
    "/api/notes/<id>",
    "/api/notes/<id>/summary",
    "/api/notes/search",
    "/api/notes/query",
    "/api/notes/qa",
    "/api/ai/generate-summary",
    "/api/users",
    "/api/users/preferences",
    "/api/subscription",
    "/api/events",
    "/api/cache/stats",
]


# =============================================================================
# UTILITIES
# =============================================================================

def api_response(data=None, error=None, status=200):
    """Standard API response wrapper."""
    response = {
        "success": error is None,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    if data is not None:
        response["data"] = data
    if error is not None:
        response["error"] = error
    return jsonify(response), status


def require_json(f):
    """Decorator to require JSON body."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not request.is_json:
            return api_response(error="JSON body required", status=400)
        return f(*args, **kwargs)
    return decorated


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("body", "must be a JSON object")
    return data


def _required_string(data: dict, field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise MissingFieldError(field)
    return value.strip()


def _int_arg(name: str, default: int, minimum: int = 1, maximum: Optional[int] = None) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(name, "must be an integer")
    if value < minimum:
        raise ValidationError(name, f"must be at least {minimum}")
    if maximum is not None:
        value = min(value, maximum)
    return value


def _date_arg(name: str) -> Optional[datetime]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        value = from_iso(raw)
    except ValueError:
        raise ValidationError(name, "must be an ISO 8601 date")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("password", f"must be at least {MIN_PASSWORD_LENGTH} characters")


def _get_owned_note(note_id: str):
    """Load a note of the current user; 404 when missing, 403 when someone else's."""
    note = get_services().db.notes.find_by_id(note_id)
    if note is None:
        raise ResourceNotFoundError("Note", note_id)
    if note.user_id != g.current_user.id:
        raise ForbiddenError()
    return note


def _user_payload(user) -> dict:
    subscriptions = get_services().db.subscriptions.find_by_user_id(user.id)
    return UserWithSubscription(user, subscriptions[0] if subscriptions else None).to_dict()


# =============================================================================
# HEALTH & INFO
# =============================================================================

@api.route("/health", methods=["GET"])
@health_limit
def health():
    """Liveness check."""
    return api_response({"status": "ok"})


@api.route("/info", methods=["GET"])
def info():
    """Server info endpoint."""
    return api_response({
        "name": "SeaNotes Server",
        "version": __version__,
        "endpoints": ENDPOINTS,
    })


@api.route("/system-status", methods=["GET"])
def system_status():
    """
    Status of every backing service.

    Served from the cached health state unless ?refresh=true forces a
    fresh check.
    """
    services = get_services()
    force_refresh = request.args.get("refresh") == "true"

    services.status.initialize()
    state = services.status.force_health_check() if force_refresh else services.status.get_health_state()

    system_info = {
        "environment": services.settings.environment,
        "timestamp": to_iso(utcnow()),
        "python": platform.python_version(),
    }

    if state is None:
        logger.warning("Health state is empty after initialization")
        return api_response(error="Health system initialization failed", status=500)

    system_info["lastHealthCheck"] = to_iso(state.last_checked)
    response, status = api_response({
        "services": [s.to_dict() for s in state.services],
        "systemInfo": system_info,
        "status": "ok" if state.is_healthy else "issues_detected",
    })
    response.headers["Cache-Control"] = "no-store, max-age=0" if force_refresh else "public, max-age=60"
    return response, status


# =============================================================================
# AUTHENTICATION
# =============================================================================

@api.route("/auth/signup", methods=["POST"])
@require_json
def signup():
    """
    Create an account on the free plan and sign in.

    Body: {"name": "...", "email": "...", "password": "..."}
    """
    data = _json_body()
    name = _required_string(data, "name")
    email = _required_string(data, "email").lower()
    password = data.get("password") or ""
    if not password:
        raise MissingFieldError("password")
    _check_password(password)

    db = get_services().db
    if db.users.find_by_email(email):
        raise ConflictError("User", "An account with this email already exists")

    user = db.users.create(name=name, email=email, password_hash=hash_password(password))
    db.subscriptions.create(user.id, status=SubscriptionStatus.ACTIVE, plan=SubscriptionPlan.FREE)
    login_user(user)

    logger.info("User signed up", extra={"user_id": user.id})
    return api_response(_user_payload(user), status=201)


@api.route("/auth/login", methods=["POST"])
@require_json
def login():
    data = _json_body()
    email = _required_string(data, "email").lower()
    password = data.get("password") or ""

    user = get_services().db.users.find_by_email(email)
    if user is None or not verify_password(user.password_hash, password):
        raise InvalidCredentialsError()

    login_user(user)
    return api_response(_user_payload(user))


@api.route("/auth/logout", methods=["POST"])
def logout():
    logout_user()
    return api_response({"signedOut": True})


@api.route("/auth/me", methods=["GET"])
@require_auth()
def me():
    return api_response(_user_payload(g.current_user))


@api.route("/auth/magic-link", methods=["POST"])
@auth_limit
def send_magic_link():
    """
    Email a one-hour login link.

    Body: {"email": "..."}
    """
    services = get_services()
    services.email.ensure_ready()

    data = _json_body()
    email = _required_string(data, "email").lower()

    user = services.db.users.find_by_email(email)
    if user is None:
        raise ResourceNotFoundError("User", email)

    token = services.db.tokens.issue(email)
    verify_url = f"{services.settings.base_url}/magic-link?token={token.token}&email={quote(email)}"
    services.email.send_action_email(
        to=user.email,
        subject="Login to your account",
        title="Login to your account",
        button_url=verify_url,
        button_text="Login",
        greeting_text="Hi, You can login to your SeaNotes account by clicking the button below:",
        info_text="This link expires in one hour.",
    )

    return api_response({"ok": True, "token": token.token})


@api.route("/auth/magic-link/verify", methods=["POST"])
@require_json
def verify_magic_link():
    data = _json_body()
    token_value = _required_string(data, "token")
    email = (data.get("email") or "").strip().lower()

    db = get_services().db
    token = db.tokens.find_by_token(token_value)
    if token is None or token.is_expired() or (email and token.identifier != email):
        raise InvalidTokenError()

    user = db.users.find_by_email(token.identifier)
    if user is None:
        raise InvalidTokenError()

    db.tokens.delete(token.identifier, token.token)
    if not user.email_verified:
        user = db.users.update(user.id, email_verified=True)
    login_user(user)
    return api_response(_user_payload(user))


@api.route("/forgot-password", methods=["POST"])
@auth_limit
def forgot_password():
    """
    Email a password reset link.

    Always succeeds for a well-formed request so account existence is not
    revealed.
    """
    services = get_services()
    services.email.ensure_ready()

    data = _json_body()
    email = _required_string(data, "email").lower()

    user = services.db.users.find_by_email(email)
    if user is not None:
        token = services.db.tokens.issue(email)
        reset_url = f"{services.settings.base_url}/reset-password?token={token.token}"
        services.email.send_action_email(
            to=user.email,
            subject="Reset your password",
            title="Reset your password",
            button_url=reset_url,
            button_text="Reset Password",
            greeting_text="Hello! We received a request to reset the password for your account.",
            info_text="If you did not request this, you can safely ignore this email.",
        )
    else:
        logger.info("Password reset requested for unknown email")

    return api_response({"sent": True})


@api.route("/reset-password", methods=["POST"])
@auth_limit
@require_json
def reset_password():
    data = _json_body()
    token_value = _required_string(data, "token")
    password = data.get("password") or ""
    if not password:
        raise MissingFieldError("password")
    _check_password(password)

    db = get_services().db
    token = db.tokens.find_by_token(token_value)
    if token is None or token.is_expired():
        raise InvalidTokenError()

    db.users.update_by_email(token.identifier, password_hash=hash_password(password))
    db.tokens.delete(token.identifier, token.token)
    return api_response({"reset": True})


# =============================================================================
# NOTES
# =============================================================================

@api.route("/notes", methods=["GET"])
@require_auth()
def list_notes():
    """
    One page of the current user's notes.

    Query: page, pageSize, search, sortBy (newest | oldest | title)
    """
    services = get_services()
    user = g.current_user

    page = _int_arg("page", 1)
    page_size = _int_arg("pageSize", 10, maximum=MAX_PAGE_SIZE)
    search = (request.args.get("search") or "").strip() or None
    sort_by = request.args.get("sortBy") or "newest"

    cache_key = notes_list_key(user.id, page, page_size, search or "", sort_by)
    if services.settings.cache_enabled:
        cached = notes_cache.get(cache_key)
        if cached is not None:
            return api_response(cached)

    generation = notes_generation(user.id)
    notes = services.db.notes.find_many(
        user.id,
        search=search,
        skip=(page - 1) * page_size,
        take=page_size,
        order_by=sort_by,
    )
    payload = {
        "notes": [n.to_dict() for n in notes],
        "total": services.db.notes.count(user.id, search=search),
    }

    if services.settings.cache_enabled:
        cache_notes_listing(user.id, cache_key, payload, generation)
    return api_response(payload)


@api.route("/notes", methods=["POST"])
@require_auth()
@require_json
def create_note():
    """
    Create a note.

    Without a title the note gets a timestamp title, replaced in the
    background by an AI title when AI is configured.
    """
    services = get_services()
    user = g.current_user
    data = _json_body()

    content = data.get("content")
    if not isinstance(content, str) or not content.strip():
        raise MissingFieldError("content")
    title = data.get("title")
    title = title.strip() if isinstance(title, str) else ""

    final_title = title or generate_timestamp_title()

    note = services.db.notes.create(user.id, final_title, content)
    invalidate_user_notes(user.id)

    if not title and services.ai_configured:
        services.background.queue_title_generation(note.id, content, user.id, note.title)
    services.background.queue_embedding_sync(note)

    return api_response(note.to_dict(), status=201)


@api.route("/notes/search", methods=["GET"])
@require_auth()
def search_notes():
    """
    Fuzzy search over the current user's notes.

    Query: q, sortBy (relevance | date | title), sortOrder (asc | desc),
    start, end (ISO dates, inclusive)
    """
    query = (request.args.get("q") or "").strip()
    if not query:
        raise MissingFieldError("q")

    filters = SearchFilters(
        start=_date_arg("start"),
        end=_date_arg("end"),
        sort_by=request.args.get("sortBy") or "relevance",
        sort_order=request.args.get("sortOrder") or "desc",
    )
    notes = get_services().db.notes.find_by_user_id(g.current_user.id)
    results = search_service.search(notes, query, filters)

    return api_response({
        "results": [r.to_dict() for r in results],
        "count": len(results),
    })


@api.route("/notes/query", methods=["POST"])
@require_auth()
@ai_limit
@require_json
def query_notes():
    """
    Answer a question from the user's notes.

    Body: {"question": "..."}
    """
    data = _json_body()
    question = _required_string(data, "question")

    answer = get_services().intelligence.answer_question(g.current_user.id, question)
    return api_response(answer.to_dict())


@api.route("/notes/qa", methods=["POST"])
@require_auth()
@ai_limit
@require_json
def notes_qa():
    """Answer a question using an index built for this request only."""
    data = _json_body()
    question = _required_string(data, "question")

    answer = get_services().notes_qa.answer_query_with_notes(g.current_user.id, question)
    return api_response({"answer": answer})


@api.route("/notes/<note_id>", methods=["GET"])
@require_auth()
def get_note(note_id: str):
    note = _get_owned_note(note_id)
    return api_response(note.to_dict())


@api.route("/notes/<note_id>", methods=["PUT"])
@require_auth()
@require_json
def update_note(note_id: str):
    """
    Update title and/or content.

    Body: {"title": "...", "content": "..."}
    """
    services = get_services()
    note = _get_owned_note(note_id)
    data = _json_body()

    fields = {}
    for key in ("title", "content"):
        if key in data:
            if not isinstance(data[key], str):
                raise ValidationError(key, "must be a string")
            fields[key] = data[key]
    if "content" in fields and not fields["content"].strip():
        raise ValidationError("content", "cannot be empty")
    if not fields:
        raise ValidationError("body", "nothing to update")

    updated = services.db.notes.update(note.id, **fields)
    invalidate_user_notes(note.user_id)
    if "content" in fields:
        services.background.queue_embedding_sync(updated)

    return api_response(updated.to_dict())


@api.route("/notes/<note_id>", methods=["DELETE"])
@require_auth()
def delete_note(note_id: str):
    note = _get_owned_note(note_id)
    get_services().db.notes.delete(note.id)
    invalidate_user_notes(note.user_id)
    return api_response({"deleted": True, "id": note.id})


@api.route("/notes/<note_id>/summary", methods=["POST"])
@require_auth()
@ai_limit
def generate_note_summary(note_id: str):
    services = get_services()
    note = _get_owned_note(note_id)
    if services.inference is None:
        raise LLMNotConfiguredError()

    summary = services.inference.generate_summary(note.content)
    updated = services.db.notes.update(note.id, summary=summary)
    invalidate_user_notes(note.user_id)
    return api_response({"summary": updated.summary})


@api.route("/notes/<note_id>/summary", methods=["DELETE"])
@require_auth()
def delete_note_summary(note_id: str):
    note = _get_owned_note(note_id)
    get_services().db.notes.update(note.id, summary=None)
    invalidate_user_notes(note.user_id)
    return api_response({"summary": None})


# =============================================================================
# AI
# =============================================================================

@api.route("/ai/generate-summary", methods=["POST"])
@require_auth()
@ai_limit
@require_json
def generate_summary():
    """
    Summary and title for draft content that is not saved yet.

    Body: {"content": "..."}
    """
    services = get_services()
    if services.inference is None:
        raise LLMNotConfiguredError()

    data = _json_body()
    content = _required_string(data, "content")

    return api_response({
        "summary": services.inference.generate_summary(content),
        "title": services.inference.generate_title_with_fallback(content),
    })


# =============================================================================
# USERS & SUBSCRIPTIONS
# =============================================================================

@api.route("/users", methods=["GET"])
@require_auth([ADMIN])
def list_users():
    """
    Admin user listing.

    Query: page, pageSize, searchName, filterPlan, filterStatus
    """
    users, total = get_services().db.users.find_all(
        page=_int_arg("page", 1),
        page_size=_int_arg("pageSize", 10, maximum=MAX_PAGE_SIZE),
        search_name=request.args.get("searchName") or None,
        filter_plan=request.args.get("filterPlan") or None,
        filter_status=request.args.get("filterStatus") or None,
    )
    return api_response({
        "users": [u.to_dict() for u in users],
        "total": total,
    })


@api.route("/users/preferences", methods=["GET"])
@require_auth()
def get_preferences():
    return api_response({"summariesEnabled": g.current_user.summaries_enabled})


@api.route("/users/preferences", methods=["PUT"])
@require_auth()
@require_json
def update_preferences():
    data = _json_body()
    enabled = data.get("summariesEnabled")
    if not isinstance(enabled, bool):
        raise ValidationError("summariesEnabled", "must be true or false")

    user = get_services().db.users.update(g.current_user.id, summaries_enabled=enabled)
    return api_response({"summariesEnabled": user.summaries_enabled})


@api.route("/subscription", methods=["GET"])
@require_auth()
def get_subscription():
    subscriptions = get_services().db.subscriptions.find_by_user_id(g.current_user.id)
    return api_response({
        "subscription": subscriptions[0].to_dict() if subscriptions else None,
    })


# =============================================================================
# EVENTS & CACHE
# =============================================================================

@api.route("/events", methods=["GET"])
@exempt
@require_auth()
def events():
    """Server-sent events for the current user (title updates)."""
    manager = get_services().events
    user_id = g.current_user.id
    subscriber = manager.connect(user_id)

    response = Response(manager.stream(user_id, subscriber), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache"
    response.headers["X-Accel-Buffering"] = "no"
    return response


@api.route("/cache/stats", methods=["GET"])
@require_auth([ADMIN])
def cache_stats():
    return api_response(get_all_stats())


# =============================================================================
# ERROR HANDLING
# =============================================================================

def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SeaNotesError)
    def handle_seanotes_error(e: SeaNotesError):
        level = logging.ERROR if e.status_code >= 500 else logging.INFO
        logger.log(level, f"{type(e).__name__}: {e}", extra={"status_code": e.status_code})
        return api_response(error=e.user_message, status=e.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return api_response(error=e.description or e.name, status=e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.path}")
        return api_response(error="Internal server error", status=500)


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    llm: Optional[LLMProvider] = None,
    embeddings: Optional[EmbeddingProvider] = None,
    email_service: Optional[EmailService] = None,
    events: Optional[EventManager] = None,
) -> Flask:
    """
    Build the Flask app.

    Explicit services replace the ones configured in settings; tests pass
    mock providers and a temporary database this way.
    """
    settings = settings or Settings.from_env()

    if not settings.testing:
        setup_logging(settings.log_level, settings.log_json, settings.log_file)

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    ensure_database(settings.db_path)

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=settings.secret_key,
        TESTING=settings.testing,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        MAX_CONTENT_LENGTH=2 * 1024 * 1024,
    )
    CORS(app, supports_credentials=True)

    app.extensions[EXTENSION_KEY] = build_services(
        settings,
        database=database,
        llm=llm,
        embeddings=embeddings,
        email_service=email_service,
        events=events,
    )

    init_request_logging(app)
    init_rate_limiter(app, settings)
    register_error_handlers(app)
    app.register_blueprint(api)

    logger.info(f"SeaNotes server ready (database: {settings.db_path})")
    return app


if __name__ == "__main__":
    validate_on_startup()
    settings = Settings.from_env()
    app = create_app(settings)
    services = app.extensions[EXTENSION_KEY]

    print(f"\n[SEANOTES] Server starting on http://localhost:{settings.port}")
    print(f"           Database: {settings.db_path}")
    print(f"           AI: {'configured' if services.ai_configured else 'not configured'}")
    print(f"           Email: {type(services.email).__name__}")
    print()

    app.run(host="0.0.0.0", port=settings.port, debug=settings.debug, threaded=True)
