"""
SeaNotes - Rate Limiting v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Rate limits API endpoints to keep AI costs bounded and slow down
credential guessing on the auth endpoints.

Default: In-memory storage (single instance)
Optional: any storage URI Flask-Limiter understands (redis://, memcached://)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, current_app, jsonify, request, session
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

DEFAULT_LIMIT = "60 per minute"   # General endpoints
AI_LIMIT = "10 per minute"        # Title, summary and question answering
AUTH_LIMIT = "5 per minute"       # Magic link and password reset
HEALTH_LIMIT = "120 per minute"   # Health checks (more permissive)


# =============================================================================
# KEY FUNCTIONS
# =============================================================================

def get_rate_limit_key() -> str:
    """
    Get the rate limit key for the current request.

    Order: explicit X-Rate-Limit-Key header, signed-in user, first
    X-Forwarded-For hop, remote address.
    """
    user_key = request.headers.get("X-Rate-Limit-Key")
    if user_key:
        return f"user:{user_key}"

    user_id = session.get("user_id")
    if user_id:
        return f"uid:{user_id}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    return get_remote_address()


# =============================================================================
# LIMITER INSTANCE
# =============================================================================

# Route decorators bind to this instance at import time; init_rate_limiter
# attaches it to an app and supplies storage and defaults from settings.
limiter = Limiter(
    key_func=get_rate_limit_key,
    strategy="fixed-window",
    headers_enabled=True,  # Add X-RateLimit-* headers
)


def _configured(name: str, fallback: str):
    def resolve() -> str:
        return current_app.config.get(name, fallback)
    return resolve


ai_limit = limiter.limit(_configured("SEANOTES_RATE_LIMIT_AI", AI_LIMIT))
auth_limit = limiter.limit(_configured("SEANOTES_RATE_LIMIT_AUTH", AUTH_LIMIT))
health_limit = limiter.limit(_configured("SEANOTES_RATE_LIMIT_HEALTH", HEALTH_LIMIT))
exempt = limiter.exempt


def init_rate_limiter(app: Flask, settings) -> Limiter:
    """
    Attach the limiter to a Flask app.

    Rate limiting stays registered when disabled so decorators keep
    working; RATELIMIT_ENABLED=False turns every check into a no-op.
    """
    app.config["RATELIMIT_ENABLED"] = settings.rate_limit_enabled
    app.config["RATELIMIT_STORAGE_URI"] = settings.rate_limit_storage
    app.config["RATELIMIT_DEFAULT"] = settings.rate_limit_default
    app.config["SEANOTES_RATE_LIMIT_AI"] = settings.rate_limit_ai
    app.config["SEANOTES_RATE_LIMIT_AUTH"] = settings.rate_limit_auth
    app.config["SEANOTES_RATE_LIMIT_HEALTH"] = settings.rate_limit_health

    limiter.init_app(app)

    @app.errorhandler(429)
    def ratelimit_handler(e):
        """Return JSON response for rate limit exceeded."""
        retry_after = _retry_after_seconds()
        key = get_rate_limit_key()

        logger.warning(
            f"Rate limit exceeded for {key}: {e.description}",
            extra={"path": request.path, "status_code": 429},
        )

        response = jsonify({
            "success": False,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "error": f"Too many requests. Please wait {retry_after} seconds and try again.",
            "data": {
                "error_type": "RateLimitError",
                "retry_after_seconds": retry_after,
                "limit": str(e.description),
            },
        })
        response.status_code = 429
        response.headers["Retry-After"] = str(retry_after)
        return response

    if settings.rate_limit_enabled:
        logger.info(
            f"Rate limiter initialized: storage={settings.rate_limit_storage}, "
            f"default={settings.rate_limit_default}, ai={settings.rate_limit_ai}"
        )
    else:
        logger.info("Rate limiting is disabled (SEANOTES_RATE_LIMIT_ENABLED=false)")

    return limiter


def _retry_after_seconds() -> int:
    current = limiter.current_limit
    if current is None:
        return 60
    return max(1, int(current.reset_at - time.time()))


def get_limiter() -> Limiter:
    """Get the global limiter instance."""
    return limiter


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def get_rate_limit_status(key: Optional[str] = None) -> dict:
    """
    Report rate limit configuration for the running app.

    Args:
        key: Rate limit key (defaults to current request key if in request context)
    """
    config = current_app.config
    if not config.get("RATELIMIT_ENABLED", False):
        return {"enabled": False}

    if key is None:
        try:
            key = get_rate_limit_key()
        except RuntimeError:
            key = "N/A (no request context)"

    return {
        "enabled": True,
        "key": key,
        "storage": config.get("RATELIMIT_STORAGE_URI"),
        "limits": {
            "default": config.get("RATELIMIT_DEFAULT", DEFAULT_LIMIT),
            "ai": config.get("SEANOTES_RATE_LIMIT_AI", AI_LIMIT),
            "auth": config.get("SEANOTES_RATE_LIMIT_AUTH", AUTH_LIMIT),
            "health": config.get("SEANOTES_RATE_LIMIT_HEALTH", HEALTH_LIMIT),
        },
    }


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "limiter",
    "init_rate_limiter",
    "get_limiter",
    "ai_limit",
    "auth_limit",
    "health_limit",
    "exempt",
    "get_rate_limit_key",
    "get_rate_limit_status",
    "DEFAULT_LIMIT",
    "AI_LIMIT",
    "AUTH_LIMIT",
    "HEALTH_LIMIT",
]
