"""
SeaNotes - Structured Logging v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

One formatter for console and file output, a filter that scrubs API keys
and passwords, request ids carried in a ContextVar, and Flask hooks that
log each request once it has been answered.
"""

import json
import logging
import re
import sys
import time
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

EXTRA_FIELDS = (
    "duration_ms", "endpoint", "status_code", "method", "path",
    "user_id", "note_id",
)


class StructuredFormatter(logging.Formatter):
    """Renders records as one JSON object per line, or as bracketed text."""

    def __init__(self, json_output: bool = False):
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        request_id = request_id_var.get()

        log_data = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if self.json_output:
            return json.dumps(log_data, default=str)

        parts = [
            f"[{log_data['timestamp']}]",
            f"[{record.levelname:8}]",
        ]

        if request_id:
            parts.append(f"[{request_id[:8]}]")

        parts.append(record.getMessage())

        extras = []
        for key in ("duration_ms", "endpoint", "status_code", "user_id"):
            if hasattr(record, key):
                extras.append(f"{key}={getattr(record, key)}")

        if extras:
            parts.append(f"({', '.join(extras)})")

        result = " ".join(parts)

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


class SecretsSanitizer(logging.Filter):
    """Masks API keys, bearer tokens and passwords before records are emitted."""

    PATTERNS = [
        (re.compile(r"sk-(ant-)?[A-Za-z0-9\-_]{8,}"), "sk-***"),
        (re.compile(r"(?i)bearer\s+[A-Za-z0-9\-_.=]+"), "Bearer ***"),
        (re.compile(r"(?i)(password[\"']?\s*[=:]\s*[\"']?)[^\s\"'&,}]+"), r"\1***"),
    ]

    @classmethod
    def sanitize(cls, text: str) -> str:
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = self.sanitize(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Replace the root handlers with a sanitised console handler.

    log_file adds a second handler that always writes JSON.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers = []
    sanitizer = SecretsSanitizer()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter(json_output=json_output))
    console_handler.addFilter(sanitizer)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter(json_output=True))  # Always JSON to file
        file_handler.addFilter(sanitizer)
        root_logger.addHandler(file_handler)

    # Reduce noise from libraries
    for noisy in ("werkzeug", "urllib3", "httpx", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind request_id (or a fresh UUID) to the current context."""
    if not request_id:
        request_id = str(uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get current request ID."""
    return request_id_var.get()


def init_request_logging(app, logger: logging.Logger = None):
    """
    Log every request with its duration and echo X-Request-ID.

    Registers before/after request hooks on the Flask app instead of
    decorating each endpoint.
    """
    from flask import g, request

    log = logger or logging.getLogger("seanotes.requests")

    @app.before_request
    def _start_request():
        g.request_id = set_request_id(request.headers.get("X-Request-ID"))
        g.request_started = time.time()

    @app.after_request
    def _finish_request(response):
        started = g.get("request_started")
        duration_ms = round((time.time() - started) * 1000, 2) if started else None
        user = g.get("current_user")

        extra = {
            "method": request.method,
            "path": request.path,
            "endpoint": request.endpoint,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if user is not None:
            extra["user_id"] = user.id

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        log.log(level, f"{request.method} {request.path} -> {response.status_code}", extra=extra)

        request_id = g.get("request_id")
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    return app


class Timer:
    """
    Logs how long the wrapped block took, at ERROR when it raised.

    Usage:
        with Timer(logger, "embedding sync"):
            provider.embed_texts(...)
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.DEBUG):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.time() - self.start_time) * 1000

        if exc_type:
            self.logger.log(
                logging.ERROR,
                f"Operation failed: {self.operation}",
                extra={"duration_ms": round(self.duration_ms, 2)}
            )
        else:
            self.logger.log(
                self.level,
                f"Operation completed: {self.operation}",
                extra={"duration_ms": round(self.duration_ms, 2)}
            )

        return False


__all__ = [
    "setup_logging",
    "set_request_id",
    "get_request_id",
    "init_request_logging",
    "Timer",
    "StructuredFormatter",
    "SecretsSanitizer",
]
