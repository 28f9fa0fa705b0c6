# seanotes/errors.py
"""
SeaNotes - Custom Exceptions v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

User-friendly error types for SeaNotes operations.
Each exception includes both a technical message (for logs) and
a user-friendly message (for API responses).
"""


class SeaNotesError(Exception):
    """Base exception for SeaNotes errors."""

    def __init__(self, message: str, user_message: str = None, status_code: int = 500):
        super().__init__(message)
        self.user_message = user_message or message
        self.status_code = status_code


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class ValidationError(SeaNotesError):
    """Input validation failed."""

    def __init__(self, field: str, issue: str, user_message: str = None):
        super().__init__(
            f"Validation error: {field} - {issue}",
            user_message or f"Invalid input for '{field}': {issue}",
            400
        )
        self.field = field
        self.issue = issue


class MissingFieldError(ValidationError):
    """Required field is missing."""

    def __init__(self, field: str, user_message: str = None):
        super().__init__(
            field,
            f"'{field}' is required but was not provided.",
            user_message,
        )


# =============================================================================
# AUTH ERRORS
# =============================================================================

class AuthenticationError(SeaNotesError):
    """Request is not authenticated."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, message, 401)


class InvalidCredentialsError(AuthenticationError):
    """Email/password pair did not match."""

    def __init__(self):
        super().__init__("Invalid email or password")


class ForbiddenError(SeaNotesError):
    """Authenticated but not allowed."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, message, 403)


class InvalidTokenError(SeaNotesError):
    """Verification token is unknown or expired."""

    def __init__(self):
        super().__init__(
            "Invalid or expired token",
            "Invalid or expired token",
            400
        )


# =============================================================================
# RESOURCE ERRORS
# =============================================================================

class ResourceNotFoundError(SeaNotesError):
    """Requested resource doesn't exist."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            f"{resource_type} not found",
            404
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(SeaNotesError):
    """Resource already exists."""

    def __init__(self, resource_type: str, detail: str):
        super().__init__(
            f"{resource_type} conflict: {detail}",
            detail,
            409
        )
        self.resource_type = resource_type


class RateLimitError(SeaNotesError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            "Rate limit exceeded",
            f"Too many requests. Please wait {retry_after} seconds and try again.",
            429
        )
        self.retry_after = retry_after


# =============================================================================
# LLM ERRORS
# =============================================================================

class LLMError(SeaNotesError):
    """LLM provider errors."""
    pass


class LLMNotConfiguredError(LLMError):
    """No LLM providers are configured."""

    def __init__(self):
        super().__init__(
            "AI inference is not configured",
            "AI features are not configured. Set SEANOTES_INFERENCE_API_KEY, "
            "SEANOTES_OPENAI_API_KEY or SEANOTES_ANTHROPIC_API_KEY.",
            503
        )


class LLMProviderError(LLMError):
    """LLM provider is unavailable or returned nothing usable."""

    def __init__(self, provider: str, original_error: str):
        super().__init__(
            f"LLM provider {provider} failed: {original_error}",
            f"The AI service ({provider}) is temporarily unavailable. Try again shortly.",
            503
        )
        self.provider = provider
        self.original_error = original_error


class EmbeddingError(LLMError):
    """Embedding request failed."""

    def __init__(self, detail: str):
        super().__init__(
            f"Embedding failed: {detail}",
            "Failed to generate embeddings for your notes. Try again shortly.",
            502
        )
        self.detail = detail


# =============================================================================
# EMAIL ERRORS
# =============================================================================

class EmailError(SeaNotesError):
    """Email delivery errors."""
    pass


class EmailDisabledError(EmailError):
    """Email feature switched off."""

    def __init__(self):
        super().__init__("Email feature is disabled", "Email feature is disabled", 500)


class EmailNotConfiguredError(EmailError):
    """Email transport missing or unreachable."""

    def __init__(self):
        super().__init__(
            "Email not configured or connected",
            "Email not configured or connected. Check System Status page",
            500
        )


class EmailSendError(EmailError):
    """Transport accepted the connection but sending failed."""

    def __init__(self, recipient: str, original_error: str):
        super().__init__(
            f"Failed to send email to {recipient}: {original_error}",
            "We couldn't send the email. Please try again later.",
            502
        )
        self.recipient = recipient
        self.original_error = original_error


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Base
    "SeaNotesError",
    # Validation
    "ValidationError",
    "MissingFieldError",
    # Auth
    "AuthenticationError",
    "InvalidCredentialsError",
    "ForbiddenError",
    "InvalidTokenError",
    # Resources
    "ResourceNotFoundError",
    "ConflictError",
    "RateLimitError",
    # LLM
    "LLMError",
    "LLMNotConfiguredError",
    "LLMProviderError",
    "EmbeddingError",
    # Email
    "EmailError",
    "EmailDisabledError",
    "EmailNotConfiguredError",
    "EmailSendError",
]
