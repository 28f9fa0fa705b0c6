"""
SeaNotes - Configuration v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Runtime settings for the SeaNotes server, read from SEANOTES_* environment
variables. A .env file next to the server can seed the environment.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# DEFAULTS
# =============================================================================

DEV_SECRET_KEY = "seanotes-dev-secret-change-me"
INFERENCE_BASE_URL = "https://inference.do-ai.run/v1"

DEFAULT_CHAT_MODEL = "anthropic-claude-3-opus"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


# =============================================================================
# .ENV LOADING
# =============================================================================

def load_env_file(env_path: Path = None) -> Dict[str, str]:
    """
    Load environment variables from .env file.

    Args:
        env_path: Path to .env file. Defaults to current directory.

    Returns:
        Dict of loaded variables (also updates os.environ)
    """
    if env_path is None:
        env_path = Path.cwd() / ".env"

    loaded = {}

    if not env_path.exists():
        return loaded

    try:
        with open(env_path, 'r') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue

                if '=' in line:
                    key, _, value = line.partition('=')
                    key = key.strip()
                    value = value.strip()

                    if value.startswith('"') and value.endswith('"'):
                        value = value[1:-1]
                    elif value.startswith("'") and value.endswith("'"):
                        value = value[1:-1]

                    os.environ[key] = value
                    loaded[key] = value

        logger.debug(f"Loaded {len(loaded)} variables from {env_path}")
    except OSError as e:
        logger.warning(f"Failed to load .env: {e}")

    return loaded


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    return int(value) if value is not None else default


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    return float(value) if value is not None else default


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass
class Settings:
    """
    Server configuration.

    Build with Settings.from_env() in production; tests construct it
    directly (or via with_overrides) to point at a temporary database.
    """

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./_data"))
    db_path: Optional[Path] = None

    # Web
    secret_key: str = DEV_SECRET_KEY
    base_url: str = "http://localhost:5100"
    environment: str = "development"
    port: int = 5100
    debug: bool = False
    testing: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_storage: str = "memory://"
    rate_limit_default: str = "60 per minute"
    rate_limit_ai: str = "10 per minute"
    rate_limit_auth: str = "5 per minute"
    rate_limit_health: str = "120 per minute"

    # Cache
    cache_enabled: bool = True

    # AI
    ai_provider: Optional[str] = None           # inference | openai | anthropic | mock
    inference_api_key: Optional[str] = None     # OpenAI-compatible inference endpoint
    inference_base_url: str = INFERENCE_BASE_URL
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    chat_model: str = DEFAULT_CHAT_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    openai_model: str = DEFAULT_OPENAI_MODEL
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL

    # Notes QA tuning
    qa_max_context_chunks: int = 6
    qa_max_context_chars: int = 6000
    qa_min_similarity: float = 0.12

    # Email
    email_enabled: bool = True
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_sender: str = "SeaNotes <no-reply@seanotes.local>"

    # Background work: "thread" (pool) or "inline" (run in request, for tests)
    background_mode: str = "thread"
    background_workers: int = 2

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        if self.db_path is None:
            self.db_path = self.data_dir / "seanotes.db"
        else:
            self.db_path = Path(self.db_path)

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from SEANOTES_* environment variables."""
        data_dir = Path(_env("SEANOTES_DATA_DIR", "./_data"))
        db_path = _env("SEANOTES_DB_PATH")

        return cls(
            data_dir=data_dir,
            db_path=Path(db_path) if db_path else None,
            secret_key=_env("SEANOTES_SECRET_KEY", DEV_SECRET_KEY),
            base_url=_env("SEANOTES_BASE_URL", "http://localhost:5100").rstrip("/"),
            environment=_env("SEANOTES_ENV", "development"),
            port=_env_int("SEANOTES_PORT", 5100),
            debug=_env_bool("SEANOTES_DEBUG", False),
            log_level=_env("SEANOTES_LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("SEANOTES_LOG_JSON", False),
            log_file=_env("SEANOTES_LOG_FILE"),
            rate_limit_enabled=_env_bool("SEANOTES_RATE_LIMIT_ENABLED", True),
            rate_limit_storage=_env("SEANOTES_RATE_LIMIT_STORAGE", "memory://"),
            rate_limit_default=_env("SEANOTES_RATE_LIMIT_DEFAULT", "60 per minute"),
            rate_limit_ai=_env("SEANOTES_RATE_LIMIT_AI", "10 per minute"),
            rate_limit_auth=_env("SEANOTES_RATE_LIMIT_AUTH", "5 per minute"),
            rate_limit_health=_env("SEANOTES_RATE_LIMIT_HEALTH", "120 per minute"),
            cache_enabled=_env_bool("SEANOTES_CACHE_ENABLED", True),
            ai_provider=(_env("SEANOTES_AI_PROVIDER") or "").lower() or None,
            inference_api_key=_env("SEANOTES_INFERENCE_API_KEY"),
            inference_base_url=_env("SEANOTES_INFERENCE_BASE_URL", INFERENCE_BASE_URL),
            openai_api_key=_env("SEANOTES_OPENAI_API_KEY"),
            anthropic_api_key=_env("SEANOTES_ANTHROPIC_API_KEY"),
            chat_model=_env("SEANOTES_CHAT_MODEL", DEFAULT_CHAT_MODEL),
            embedding_model=_env("SEANOTES_EMBEDDING_MODEL", DEFAULT_EMBEDDING_MODEL),
            openai_model=_env("SEANOTES_OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            anthropic_model=_env("SEANOTES_ANTHROPIC_MODEL", DEFAULT_ANTHROPIC_MODEL),
            qa_max_context_chunks=_env_int("SEANOTES_QA_MAX_CONTEXT_CHUNKS", 6),
            qa_max_context_chars=_env_int("SEANOTES_QA_MAX_CONTEXT_CHARS", 6000),
            qa_min_similarity=_env_float("SEANOTES_QA_MIN_SIMILARITY", 0.12),
            email_enabled=_env_bool("SEANOTES_EMAIL_ENABLED", True),
            smtp_host=_env("SEANOTES_SMTP_HOST"),
            smtp_port=_env_int("SEANOTES_SMTP_PORT", 587),
            smtp_user=_env("SEANOTES_SMTP_USER"),
            smtp_password=_env("SEANOTES_SMTP_PASSWORD"),
            smtp_use_tls=_env_bool("SEANOTES_SMTP_TLS", True),
            email_sender=_env("SEANOTES_EMAIL_FROM", "SeaNotes <no-reply@seanotes.local>"),
            background_mode=_env("SEANOTES_BACKGROUND_MODE", "thread"),
            background_workers=_env_int("SEANOTES_BACKGROUND_WORKERS", 2),
        )

    def with_overrides(self, **changes) -> "Settings":
        """Copy with some fields replaced."""
        if "data_dir" in changes and "db_path" not in changes:
            changes["db_path"] = None
        return replace(self, **changes)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "Settings",
    "load_env_file",
    "DEV_SECRET_KEY",
    "INFERENCE_BASE_URL",
]
