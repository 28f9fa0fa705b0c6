"""
SeaNotes - SQLite Store Base v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Shared connection handling for the table stores. Every operation opens
its own connection, so stores are safe to share across request threads
and background workers.
"""

import sqlite3
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def to_db_value(value: Any) -> Any:
    """Convert a Python value to what the schema stores."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class SQLiteStore:
    """Base class for table stores."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        """Create database connection."""
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        # Unicode-aware case folding for substring search
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        return conn

    @staticmethod
    def _assignments(fields: Dict[str, Any], allowed: Iterable[str]) -> Tuple[str, List[Any]]:
        """Build "a = ?, b = ?" for an UPDATE, rejecting unknown columns."""
        allowed = set(allowed)
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
        columns = list(fields)
        clause = ", ".join(f"{column} = ?" for column in columns)
        return clause, [to_db_value(fields[column]) for column in columns]


__all__ = ["SQLiteStore", "to_db_value"]
