"""
SeaNotes - Verification Token Store v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Single-use tokens for magic links and password resets, keyed by email.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from .models import VerificationToken, utcnow
from .store_base import SQLiteStore

TOKEN_LIFETIME = timedelta(hours=1)


class VerificationTokenStore(SQLiteStore):
    """Persistence for the verification_tokens table."""

    def create(self, identifier: str, token: str, expires: datetime) -> VerificationToken:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO verification_tokens (identifier, token, expires) VALUES (?, ?, ?)",
                (identifier, token, expires.isoformat()),
            )
            conn.commit()
        finally:
            conn.close()
        return VerificationToken(identifier=identifier, token=token, expires=expires)

    def issue(self, identifier: str, lifetime: timedelta = TOKEN_LIFETIME) -> VerificationToken:
        """Create a fresh UUID token for identifier."""
        return self.create(identifier, str(uuid4()), utcnow() + lifetime)

    def find(self, identifier: str, token: str) -> Optional[VerificationToken]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM verification_tokens WHERE identifier = ? AND token = ?",
                (identifier, token),
            ).fetchone()
            return VerificationToken.from_row(row) if row else None
        finally:
            conn.close()

    def find_by_token(self, token: str) -> Optional[VerificationToken]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM verification_tokens WHERE token = ?", (token,)
            ).fetchone()
            return VerificationToken.from_row(row) if row else None
        finally:
            conn.close()

    def delete(self, identifier: str, token: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "DELETE FROM verification_tokens WHERE identifier = ? AND token = ?",
                (identifier, token),
            )
            conn.commit()
        finally:
            conn.close()

    def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Remove tokens that expired before now. Returns the count removed."""
        conn = self._connect()
        try:
            cursor = conn.execute(
                "DELETE FROM verification_tokens WHERE expires < ?",
                ((now or utcnow()).isoformat(),),
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()


__all__ = ["VerificationTokenStore", "TOKEN_LIFETIME"]
