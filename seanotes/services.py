"""
SeaNotes - Service Container v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Wires the concrete services for one application instance. Route handlers
reach them through get_services().
"""

import logging
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from .background import BackgroundTaskRunner
from .cache import api_cache
from .config import Settings
from .core.llm import EmbeddingProvider, LLMProvider
from .core.providers import AIInferenceStatus, create_embedding_provider, create_provider
from .database import Database, create_database
from .email_service import EmailService, create_email_service
from .errors import LLMNotConfiguredError
from .events import EventManager, event_manager
from .inference import InferenceService
from .note_intelligence import NoteIntelligenceService
from .notes_qa import NotesQAService
from .status import ServiceCheck, StatusService

logger = logging.getLogger(__name__)

EXTENSION_KEY = "seanotes"


@dataclass
class AppServices:
    settings: Settings
    db: Database
    email: EmailService
    llm: Optional[LLMProvider]
    embeddings: Optional[EmbeddingProvider]
    inference: Optional[InferenceService]
    intelligence: NoteIntelligenceService
    notes_qa: NotesQAService
    background: BackgroundTaskRunner
    events: EventManager
    status: StatusService

    @property
    def ai_configured(self) -> bool:
        return self.llm is not None and self.embeddings is not None


def _optional_provider(factory, settings):
    try:
        return factory(settings)
    except LLMNotConfiguredError:
        return None


def build_services(
    settings: Settings,
    database: Optional[Database] = None,
    llm: Optional[LLMProvider] = None,
    embeddings: Optional[EmbeddingProvider] = None,
    email_service: Optional[EmailService] = None,
    events: Optional[EventManager] = None,
) -> AppServices:
    """
    Build every service from settings. Explicit arguments replace the
    configured implementation (tests pass mocks here).
    """
    db = database or create_database(settings)
    email = email_service or create_email_service(settings)
    llm = llm or _optional_provider(create_provider, settings)
    embeddings = embeddings or _optional_provider(create_embedding_provider, settings)
    events = events or event_manager

    if llm is None:
        logger.info("No chat provider configured; AI features disabled")
    if embeddings is None:
        logger.info("No embedding provider configured; note Q&A disabled")

    inference = InferenceService(llm, cache=api_cache if settings.cache_enabled else None) if llm else None
    intelligence = NoteIntelligenceService(
        db.notes,
        db.chunks,
        provider=llm,
        embeddings=embeddings,
        max_context_chunks=settings.qa_max_context_chunks,
        max_context_chars=settings.qa_max_context_chars,
        min_similarity=settings.qa_min_similarity,
    )
    background = BackgroundTaskRunner(
        db.notes,
        inference=inference,
        intelligence=intelligence,
        events=events,
        mode=settings.background_mode,
        workers=settings.background_workers,
    )
    status = StatusService([
        ServiceCheck("Database Service", lambda: db),
        ServiceCheck("Email Service", lambda: email),
        ServiceCheck("AI Inference Service", lambda: AIInferenceStatus(settings), required_default=False),
    ])

    return AppServices(
        settings=settings,
        db=db,
        email=email,
        llm=llm,
        embeddings=embeddings,
        inference=inference,
        intelligence=intelligence,
        notes_qa=NotesQAService(db.notes, llm, embeddings),
        background=background,
        events=events,
        status=status,
    )


def get_services() -> AppServices:
    return current_app.extensions[EXTENSION_KEY]


__all__ = ["AppServices", "build_services", "get_services", "EXTENSION_KEY"]
