"""
SeaNotes - Background Tasks v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Fire-and-forget work that must not hold up a request: AI title
generation and embedding sync. Runs on a small thread pool, or inline
when configured (tests).
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, Set

from .cache import invalidate_user_notes
from .errors import SeaNotesError
from .events import EventManager, event_manager as default_event_manager
from .inference import InferenceService
from .models import Note
from .note_intelligence import NoteIntelligenceService
from .note_store import NoteStore

logger = logging.getLogger(__name__)

MODE_THREAD = "thread"
MODE_INLINE = "inline"


class BackgroundTaskRunner:
    """
    Runs note post-processing outside the request.

    Errors inside tasks are logged and never reach the caller.
    """

    def __init__(
        self,
        notes: NoteStore,
        inference: Optional[InferenceService] = None,
        intelligence: Optional[NoteIntelligenceService] = None,
        events: Optional[EventManager] = None,
        mode: str = MODE_THREAD,
        workers: int = 2,
    ):
        if mode not in (MODE_THREAD, MODE_INLINE):
            raise ValueError(f"Unknown background mode: {mode}")

        self.notes = notes
        self.inference = inference
        self.intelligence = intelligence
        self.events = events or default_event_manager
        self.mode = mode

        self._executor = None
        if mode == MODE_THREAD:
            self._executor = ThreadPoolExecutor(
                max_workers=max(1, workers),
                thread_name_prefix="seanotes-bg",
            )
        self._futures: Set[Future] = set()
        self._lock = threading.Lock()

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit(self, name: str, func: Callable, *args) -> Optional[Future]:
        """Run func(*args) in the background; returns the Future in thread mode."""

        def _run():
            try:
                func(*args)
            except Exception:
                logger.exception(f"Background task failed: {name}")

        if self._executor is None:
            _run()
            return None

        future = self._executor.submit(_run)
        with self._lock:
            self._futures.add(future)

        def _cleanup(done: Future) -> None:
            with self._lock:
                self._futures.discard(done)

        future.add_done_callback(_cleanup)
        return future

    def pending_count(self) -> int:
        with self._lock:
            return len(self._futures)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every queued task has finished."""
        with self._lock:
            pending = list(self._futures)
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=not wait)

    # =========================================================================
    # TASKS
    # =========================================================================

    def queue_title_generation(
        self, note_id: str, content: str, user_id: str, placeholder_title: str,
    ) -> Optional[Future]:
        """Replace placeholder_title with an AI title unless the user renames the note first."""
        if self.inference is None:
            return None
        return self.submit(
            f"title {note_id}", self._generate_title, note_id, content, user_id, placeholder_title,
        )

    def queue_embedding_sync(self, note: Note) -> Optional[Future]:
        if self.intelligence is None or not self.intelligence.configured:
            return None
        return self.submit(f"embeddings {note.id}", self._sync_embeddings, note.id)

    def _sync_embeddings(self, note_id: str) -> None:
        # Embed the note as stored now, not as it was when queued
        note = self.notes.find_by_id(note_id)
        if note is None:
            logger.debug(f"Note {note_id} deleted before embedding sync", extra={"note_id": note_id})
            return
        self.intelligence.sync_note_embeddings(note)

    def _generate_title(self, note_id: str, content: str, user_id: str, placeholder_title: str) -> None:
        try:
            title = self.inference.generate_title(content)
        except SeaNotesError as e:
            logger.warning(f"Keeping timestamp title for note {note_id}: {e}",
                           extra={"note_id": note_id})
            return

        if not self.notes.replace_title(note_id, placeholder_title, title):
            logger.info(f"Note {note_id} was renamed or deleted; discarding AI title",
                        extra={"note_id": note_id})
            return

        invalidate_user_notes(user_id)
        delivered = self.events.broadcast_title_update(note_id, title, user_id)
        logger.info(f"Generated title for note {note_id} ({delivered} listeners)",
                    extra={"note_id": note_id, "user_id": user_id})


__all__ = ["BackgroundTaskRunner", "MODE_THREAD", "MODE_INLINE"]
