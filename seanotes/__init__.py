"""
SeaNotes - Note-taking API with AI assistance

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Package layout:
- config / config_validator: settings from SEANOTES_* environment
- models, *_store, database: SQLite data layer
- core: LLM and embedding providers
- inference, note_intelligence, notes_qa: AI features
- cache, rate_limiter, events, status: server utilities
"""

__version__ = "0.1.0"

from .config import Settings, load_env_file
from .errors import (
    SeaNotesError,
    ValidationError,
    MissingFieldError,
    AuthenticationError,
    ForbiddenError,
    ResourceNotFoundError,
    ConflictError,
    LLMError,
    LLMNotConfiguredError,
    LLMProviderError,
    EmbeddingError,
    EmailError,
)
from .models import (
    User,
    Subscription,
    Note,
    NoteChunk,
    VerificationToken,
    UserRole,
    SubscriptionPlan,
    SubscriptionStatus,
)
from .cache import TTLCache, hash_content
from .note_intelligence import NoteIntelligenceService, chunk_content, cosine_similarity
from .search import SearchService

__all__ = [
    "__version__",
    # Config
    "Settings",
    "load_env_file",
    # Errors
    "SeaNotesError",
    "ValidationError",
    "MissingFieldError",
    "AuthenticationError",
    "ForbiddenError",
    "ResourceNotFoundError",
    "ConflictError",
    "LLMError",
    "LLMNotConfiguredError",
    "LLMProviderError",
    "EmbeddingError",
    "EmailError",
    # Models
    "User",
    "Subscription",
    "Note",
    "NoteChunk",
    "VerificationToken",
    "UserRole",
    "SubscriptionPlan",
    "SubscriptionStatus",
    # Features
    "TTLCache",
    "hash_content",
    "NoteIntelligenceService",
    "chunk_content",
    "cosine_similarity",
    "SearchService",
]
