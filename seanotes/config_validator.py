"""
SeaNotes - Config Validation v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Validates configuration at startup to fail fast with helpful messages.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Dict, Any

from .config import DEV_SECRET_KEY, FALSE_VALUES, TRUE_VALUES

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION SCHEMA
# =============================================================================

@dataclass
class ConfigCheck:
    """A single configuration check."""
    name: str
    env_var: str
    required: bool = False
    pattern: Optional[str] = None  # Regex pattern for validation
    min_length: Optional[int] = None
    description: str = ""
    default: Optional[str] = None


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    config_values: Dict[str, Any] = field(default_factory=dict)


AI_KEY_VARS = (
    "SEANOTES_INFERENCE_API_KEY",
    "SEANOTES_OPENAI_API_KEY",
    "SEANOTES_ANTHROPIC_API_KEY",
)
SENSITIVE_MARKERS = ("KEY", "PASSWORD", "SECRET")
BOOL_PATTERN = "^(" + "|".join(TRUE_VALUES + FALSE_VALUES) + ")$"

CONFIG_SCHEMA = [
    # AI providers (any one enables AI features)
    ConfigCheck(
        name="Inference API Key",
        env_var="SEANOTES_INFERENCE_API_KEY",
        min_length=20,
        description="API key for the OpenAI-compatible inference endpoint",
    ),
    ConfigCheck(
        name="OpenAI API Key",
        env_var="SEANOTES_OPENAI_API_KEY",
        pattern=r"^sk-[a-zA-Z0-9\-_]{20,}$",
        min_length=20,
        description="OpenAI API key (starts with sk-)",
    ),
    ConfigCheck(
        name="Anthropic API Key",
        env_var="SEANOTES_ANTHROPIC_API_KEY",
        pattern=r"^sk-ant-[a-zA-Z0-9\-_]{20,}$",
        min_length=20,
        description="Anthropic API key (starts with sk-ant-)",
    ),
    ConfigCheck(
        name="AI Provider",
        env_var="SEANOTES_AI_PROVIDER",
        pattern=r"^(inference|openai|anthropic|mock)$",
        description="Force a chat provider (default: first configured)",
    ),

    # Data paths
    ConfigCheck(
        name="Data Directory",
        env_var="SEANOTES_DATA_DIR",
        description="Directory for data storage (default: ./_data)",
        default="./_data",
    ),

    # Server
    ConfigCheck(
        name="Secret Key",
        env_var="SEANOTES_SECRET_KEY",
        min_length=16,
        description="Key used to sign session cookies",
    ),
    ConfigCheck(
        name="Base URL",
        env_var="SEANOTES_BASE_URL",
        pattern=r"^https?://",
        description="Public URL used in email links (default: http://localhost:5100)",
        default="http://localhost:5100",
    ),
    ConfigCheck(
        name="Server Port",
        env_var="SEANOTES_PORT",
        pattern=r"^\d{1,5}$",
        description="Server port (default: 5100)",
        default="5100",
    ),

    # Logging
    ConfigCheck(
        name="Log Level",
        env_var="SEANOTES_LOG_LEVEL",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level (default: INFO)",
        default="INFO",
    ),

    # Email
    ConfigCheck(
        name="SMTP Port",
        env_var="SEANOTES_SMTP_PORT",
        pattern=r"^\d{1,5}$",
        description="SMTP port (default: 587)",
        default="587",
    ),
    ConfigCheck(
        name="SMTP Password",
        env_var="SEANOTES_SMTP_PASSWORD",
        description="SMTP password (only with SEANOTES_SMTP_USER)",
    ),

    # Rate limiting
    ConfigCheck(
        name="Rate Limit Enabled",
        env_var="SEANOTES_RATE_LIMIT_ENABLED",
        pattern=BOOL_PATTERN,
        description="Enable rate limiting (default: true)",
        default="true",
    ),

    # Notes QA
    ConfigCheck(
        name="QA Min Similarity",
        env_var="SEANOTES_QA_MIN_SIMILARITY",
        pattern=r"^\d+(\.\d+)?$",
        description="Similarity floor once three chunks are selected (default: 0.12)",
        default="0.12",
    ),
]


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def _check_value(check: ConfigCheck, value: Optional[str]) -> Optional[str]:
    """Return the problem with one value, or None when it passes."""
    if not value:
        if check.required:
            return f"Missing required config: {check.name} ({check.env_var})\n  {check.description}"
        return None

    if check.min_length and len(value) < check.min_length:
        return (
            f"Invalid {check.name}: value too short, needs {check.min_length}+ characters "
            f"({check.env_var})"
        )

    if check.pattern and re.match(check.pattern, value, re.IGNORECASE) is None:
        return (
            f"Invalid {check.name}: {check.env_var} must match {check.pattern}\n"
            f"  {check.description}"
        )
    return None


def _cross_field_warnings(env) -> List[str]:
    warnings = []

    if not any(env.get(name) for name in AI_KEY_VARS):
        warnings.append(
            "No AI provider configured. Titles, summaries and note Q&A stay off\n"
            "  until SEANOTES_INFERENCE_API_KEY (or an OpenAI/Anthropic key) is set."
        )

    if (env.get("SEANOTES_SECRET_KEY") or DEV_SECRET_KEY) == DEV_SECRET_KEY:
        warnings.append(
            "Sessions are signed with the development secret key.\n"
            "  Set SEANOTES_SECRET_KEY before deploying."
        )

    if env.get("SEANOTES_SMTP_USER") and not env.get("SEANOTES_SMTP_PASSWORD"):
        warnings.append("SEANOTES_SMTP_USER is set but SEANOTES_SMTP_PASSWORD is empty.")

    return warnings


def _data_dir_error(data_dir: Path) -> Optional[str]:
    marker = data_dir / ".write_check"
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        marker.touch()
        marker.unlink()
    except OSError as e:
        return f"SEANOTES_DATA_DIR is not writable ({data_dir}): {e}"
    return None


def validate_config(schema: List[ConfigCheck] = None) -> ConfigValidationResult:
    """
    Check the SEANOTES_* environment against a schema.

    Per-variable problems are errors. Cross-field issues (no AI key, dev
    secret, SMTP user without password) are warnings only.
    """
    env = os.environ
    result = ConfigValidationResult(valid=True)

    for check in schema or CONFIG_SCHEMA:
        value = env.get(check.env_var)
        result.config_values[check.env_var] = value or check.default
        problem = _check_value(check, value)
        if problem:
            result.errors.append(problem)

    result.warnings.extend(_cross_field_warnings(env))

    dir_error = _data_dir_error(Path(env.get("SEANOTES_DATA_DIR", "./_data")))
    if dir_error:
        result.errors.append(dir_error)

    result.valid = not result.errors
    return result


def format_report(result: ConfigValidationResult) -> str:
    lines = ["", "=" * 60, "SeaNotes configuration check", "=" * 60]
    for heading, items in (("ERRORS", result.errors), ("WARNINGS", result.warnings)):
        if items:
            lines.append(f"\n{heading}:")
            lines.extend(f"  - {item}" for item in items)
    lines.append("")
    lines.append("Configuration: OK" if result.valid else f"Configuration: FAILED ({len(result.errors)} error(s))")
    lines.append("=" * 60)
    return "\n".join(lines)


def validate_on_startup(
    strict: bool = False,
    exit_on_error: bool = True,
) -> ConfigValidationResult:
    """
    Validate configuration before the server starts.

    In strict mode warnings also fail validation. With exit_on_error a
    failed check raises SystemExit(1).
    """
    result = validate_config()
    if strict and result.warnings:
        result.valid = False

    print(format_report(result))
    for warning in result.warnings:
        logger.warning(f"Config warning: {warning.splitlines()[0]}")

    if not result.valid:
        logger.error(f"Configuration invalid: {len(result.errors)} error(s), strict={strict}")
        if exit_on_error:
            raise SystemExit(1)

    return result


def _mask(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"


def get_config_summary() -> Dict[str, Any]:
    """Current SEANOTES_* values with keys, passwords and secrets masked."""
    summary = {}
    for check in CONFIG_SCHEMA:
        value = os.environ.get(check.env_var)
        if not value:
            summary[check.env_var] = f"(default: {check.default})"
        elif any(marker in check.env_var for marker in SENSITIVE_MARKERS):
            summary[check.env_var] = _mask(value)
        else:
            summary[check.env_var] = value
    return summary


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "ConfigCheck",
    "ConfigValidationResult",
    "CONFIG_SCHEMA",
    "validate_config",
    "validate_on_startup",
    "format_report",
    "get_config_summary",
]
