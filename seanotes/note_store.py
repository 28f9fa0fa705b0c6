"""
SeaNotes - Note Store v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Database persistence for notes and their embedded chunks.
"""

import json
import logging
from typing import List, Optional, Sequence
from uuid import uuid4

from .errors import ResourceNotFoundError, ValidationError
from .models import Note, NoteChunk, utcnow
from .store_base import SQLiteStore

logger = logging.getLogger(__name__)

NOTE_COLUMNS = ("title", "content", "summary")

ORDER_BY = {
    "newest": "created_at DESC",
    "oldest": "created_at ASC",
    "title": "title COLLATE NOCASE ASC, created_at DESC",
}


def _search_clause(search: Optional[str]):
    if not search:
        return "", []
    needle = search.casefold()
    return (
        " AND (instr(casefold(title), ?) > 0 OR instr(casefold(content), ?) > 0)",
        [needle, needle],
    )


class NoteStore(SQLiteStore):
    """Persistence for the notes table."""

    def find_by_id(self, note_id: str) -> Optional[Note]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
            return Note.from_row(row) if row else None
        finally:
            conn.close()

    def find_by_user_id(self, user_id: str) -> List[Note]:
        """All notes of one user, newest first."""
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM notes WHERE user_id = ? ORDER BY created_at DESC", (user_id,)
            ).fetchall()
            return [Note.from_row(row) for row in rows]
        finally:
            conn.close()

    def create(self, user_id: str, title: str, content: str, summary: Optional[str] = None) -> Note:
        now = utcnow()
        note = Note(
            id=str(uuid4()),
            user_id=user_id,
            title=title,
            content=content,
            summary=summary,
            created_at=now,
            updated_at=now,
        )

        conn = self._connect()
        try:
            conn.execute(
                """INSERT INTO notes (id, user_id, title, content, summary, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    note.id, note.user_id, note.title, note.content, note.summary,
                    now.isoformat(), now.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Created note", extra={"note_id": note.id, "user_id": user_id})
        return note

    def update(self, note_id: str, **fields) -> Note:
        """Update title, content or summary and bump updated_at."""
        clause, values = self._assignments(fields, NOTE_COLUMNS)
        updated_at = utcnow().isoformat()
        set_sql = f"{clause}, updated_at = ?" if clause else "updated_at = ?"

        conn = self._connect()
        try:
            cursor = conn.execute(
                f"UPDATE notes SET {set_sql} WHERE id = ?", values + [updated_at, note_id]
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise ResourceNotFoundError("Note", note_id)
            row = conn.execute("SELECT * FROM notes WHERE id = ?", (note_id,)).fetchone()
            return Note.from_row(row)
        finally:
            conn.close()

    def replace_title(self, note_id: str, expected_title: str, title: str) -> bool:
        """
        Set title only while the note still carries expected_title.

        Returns:
            True when the row changed
        """
        conn = self._connect()
        try:
            cursor = conn.execute(
                "UPDATE notes SET title = ?, updated_at = ? WHERE id = ? AND title = ?",
                (title, utcnow().isoformat(), note_id, expected_title),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def delete(self, note_id: str) -> None:
        """Delete a note. Its chunks cascade."""
        conn = self._connect()
        try:
            conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            conn.commit()
        finally:
            conn.close()

    def find_many(
        self,
        user_id: str,
        search: Optional[str] = None,
        skip: int = 0,
        take: int = 10,
        order_by: str = "newest",
    ) -> List[Note]:
        """
        One page of a user's notes.

        Args:
            user_id: Owner
            search: Case-insensitive substring of title or content
            skip: Rows to skip
            take: Rows to return
            order_by: "newest", "oldest" or "title"
        """
        if order_by not in ORDER_BY:
            raise ValidationError("sortBy", f"must be one of {', '.join(ORDER_BY)}")

        search_sql, params = _search_clause(search)
        conn = self._connect()
        try:
            rows = conn.execute(
                f"""SELECT * FROM notes
                    WHERE user_id = ?{search_sql}
                    ORDER BY {ORDER_BY[order_by]}
                    LIMIT ? OFFSET ?""",
                [user_id] + params + [max(0, take), max(0, skip)],
            ).fetchall()
            return [Note.from_row(row) for row in rows]
        finally:
            conn.close()

    def count(self, user_id: str, search: Optional[str] = None) -> int:
        search_sql, params = _search_clause(search)
        conn = self._connect()
        try:
            return conn.execute(
                f"SELECT COUNT(*) FROM notes WHERE user_id = ?{search_sql}",
                [user_id] + params,
            ).fetchone()[0]
        finally:
            conn.close()

    def search_keyword(self, user_id: str, text: str, limit: int) -> List[Note]:
        """Notes whose title or content contains text, newest first."""
        return self.find_many(user_id, search=text, skip=0, take=limit, order_by="newest")


class NoteChunkStore(SQLiteStore):
    """Persistence for embedded note chunks."""

    def replace_for_note(
        self,
        note: Note,
        chunks: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> Optional[int]:
        """
        Swap a note's chunks for a new set in one transaction.

        A chunk without a matching embedding is stored with an empty vector.
        Nothing is written when the stored note is gone or its content no
        longer matches note.content.

        Returns:
            Number of chunks written, or None when note was stale
        """
        now = utcnow().isoformat()
        rows = []
        for position, content in enumerate(chunks):
            vector = list(embeddings[position]) if position < len(embeddings) else []
            rows.append((
                str(uuid4()), note.id, note.user_id, content, position,
                json.dumps(vector), now, now,
            ))

        conn = self._connect()
        try:
            with conn:
                conn.execute("BEGIN IMMEDIATE")
                current = conn.execute(
                    "SELECT content FROM notes WHERE id = ?", (note.id,)
                ).fetchone()
                if current is None or current["content"] != note.content:
                    return None
                conn.execute("DELETE FROM note_chunks WHERE note_id = ?", (note.id,))
                conn.executemany(
                    """INSERT INTO note_chunks (id, note_id, user_id, content, position,
                                                embedding_json, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    rows,
                )
        finally:
            conn.close()

        return len(rows)

    def delete_for_note(self, note_id: str) -> int:
        conn = self._connect()
        try:
            cursor = conn.execute("DELETE FROM note_chunks WHERE note_id = ?", (note_id,))
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def count_for_user(self, user_id: str) -> int:
        conn = self._connect()
        try:
            return conn.execute(
                "SELECT COUNT(*) FROM note_chunks WHERE user_id = ?", (user_id,)
            ).fetchone()[0]
        finally:
            conn.close()

    def count_for_note(self, note_id: str) -> int:
        conn = self._connect()
        try:
            return conn.execute(
                "SELECT COUNT(*) FROM note_chunks WHERE note_id = ?", (note_id,)
            ).fetchone()[0]
        finally:
            conn.close()

    def find_for_user(self, user_id: str) -> List[NoteChunk]:
        """Every chunk of a user joined with its note, most recently updated first."""
        conn = self._connect()
        try:
            rows = conn.execute(
                """SELECT c.*, n.title AS note_title, n.created_at AS note_created_at
                   FROM note_chunks c
                   JOIN notes n ON n.id = c.note_id
                   WHERE c.user_id = ?
                   ORDER BY c.updated_at DESC, c.position ASC""",
                (user_id,),
            ).fetchall()
            return [NoteChunk.from_row(row) for row in rows]
        finally:
            conn.close()


__all__ = ["NoteStore", "NoteChunkStore", "ORDER_BY"]
