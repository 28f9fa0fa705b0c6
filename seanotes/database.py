"""
SeaNotes - Database Service v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Facade over the table stores. The server holds one Database and passes
its stores to the services that need them.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .note_store import NoteChunkStore, NoteStore
from .status import ConfigurableService, ServiceStatus
from .token_store import VerificationTokenStore
from .user_store import SubscriptionStore, UserStore

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("users", "subscriptions", "notes", "note_chunks", "verification_tokens")


class Database(ConfigurableService):
    """SQLite-backed data layer."""

    service_name = "Database Service"
    description = "SQLite database holding users, subscriptions, notes and embeddings"

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.users = UserStore(self.db_path)
        self.subscriptions = SubscriptionStore(self.db_path)
        self.notes = NoteStore(self.db_path)
        self.chunks = NoteChunkStore(self.db_path)
        self.tokens = VerificationTokenStore(self.db_path)
        self.last_connection_error: Optional[str] = None

    def check_connection(self) -> bool:
        """Open a fresh read-write connection and run a trivial query."""
        if not self.db_path.exists():
            self.last_connection_error = f"Database file not found: {self.db_path}"
            return False

        try:
            conn = sqlite3.connect(f"file:{self.db_path}?mode=rw", uri=True, timeout=5)
            try:
                conn.execute("SELECT 1").fetchone()
                present = {
                    row[0] for row in
                    conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
                }
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Database connection test failed: {e}")
            self.last_connection_error = f"Connection error: {e}"
            return False

        missing = [table for table in REQUIRED_TABLES if table not in present]
        if missing:
            self.last_connection_error = f"Schema incomplete, missing: {', '.join(missing)}"
            return False

        self.last_connection_error = None
        return True

    def check_configuration(self) -> ServiceStatus:
        if not str(self.db_path):
            return ServiceStatus(
                name=self.service_name,
                configured=False,
                connected=None,
                config_to_review=["SEANOTES_DB_PATH", "SEANOTES_DATA_DIR"],
                error="Configuration missing",
                description=self.description,
            )

        if not self.check_connection():
            return ServiceStatus(
                name=self.service_name,
                configured=True,
                connected=False,
                config_to_review=["SEANOTES_DB_PATH", "SEANOTES_DATA_DIR"],
                error=self.last_connection_error or "Connection failed",
                description=self.description,
            )

        return ServiceStatus(
            name=self.service_name,
            configured=True,
            connected=True,
            description=self.description,
        )

    def is_required(self) -> bool:
        return True


def create_database(settings) -> Database:
    """Build the data layer for the configured database path."""
    return Database(settings.db_path)


__all__ = ["Database", "create_database", "REQUIRED_TABLES"]
