"""
SeaNotes - Data Models v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Row types for the SeaNotes data layer.
All types are plain Python dataclasses, JSON-serialisable via to_dict().
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    """Account roles."""
    ADMIN = "ADMIN"
    USER = "USER"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "ACTIVE"
    CANCELED = "CANCELED"
    PENDING = "PENDING"


class SubscriptionPlan(str, Enum):
    """Subscription plans."""
    FREE = "FREE"
    PRO = "PRO"


# =============================================================================
# TIME HELPERS
# =============================================================================

def utcnow() -> datetime:
    """Naive UTC now, matching what the stores persist."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialise a naive UTC datetime as ISO-8601 with Z suffix."""
    if value is None:
        return None
    return value.isoformat() + "Z"


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp (with or without Z suffix)."""
    if not value:
        return None
    return datetime.fromisoformat(value.rstrip("Z"))


# =============================================================================
# ROW TYPES
# =============================================================================

@dataclass
class User:
    """A registered account."""
    id: str
    name: str
    email: str
    password_hash: str
    role: str = UserRole.USER.value
    image: Optional[str] = None
    email_verified: bool = False
    verification_token: Optional[str] = None
    summaries_enabled: bool = True
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "User":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            role=row["role"],
            image=row["image"],
            email_verified=bool(row["email_verified"]),
            verification_token=row["verification_token"],
            summaries_enabled=bool(row["summaries_enabled"]),
            created_at=from_iso(row["created_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Public representation. Never includes the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "image": self.image,
            "emailVerified": self.email_verified,
            "summariesEnabled": self.summaries_enabled,
            "createdAt": to_iso(self.created_at),
        }


@dataclass
class Subscription:
    """A user's plan and status."""
    id: str
    user_id: str
    status: Optional[str] = None
    plan: Optional[str] = None
    customer_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Subscription":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            status=row["status"],
            plan=row["plan"],
            customer_id=row["customer_id"],
            created_at=from_iso(row["created_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "status": self.status,
            "plan": self.plan,
            "customerId": self.customer_id,
            "createdAt": to_iso(self.created_at),
        }


@dataclass
class UserWithSubscription:
    """User row joined with its (optional) subscription."""
    user: User
    subscription: Optional[Subscription] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.user.to_dict()
        data["subscription"] = self.subscription.to_dict() if self.subscription else None
        return data


@dataclass
class Note:
    """A note owned by a user."""
    id: str
    user_id: str
    title: str
    content: str
    summary: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Note":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            content=row["content"],
            summary=row["summary"],
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
        }


@dataclass
class NoteChunk:
    """
    An embedded slice of a note.

    note_title and note_created_at are populated when the chunk is loaded
    joined with its note (retrieval path).
    """
    id: str
    note_id: str
    user_id: str
    content: str
    position: int
    embedding: List[float] = field(default_factory=list)
    note_title: Optional[str] = None
    note_created_at: Optional[datetime] = None
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "NoteChunk":
        keys = row.keys()
        return cls(
            id=row["id"],
            note_id=row["note_id"],
            user_id=row["user_id"],
            content=row["content"],
            position=row["position"],
            embedding=json.loads(row["embedding_json"] or "[]"),
            note_title=row["note_title"] if "note_title" in keys else None,
            note_created_at=from_iso(row["note_created_at"]) if "note_created_at" in keys else None,
            updated_at=from_iso(row["updated_at"]),
        )


@dataclass
class VerificationToken:
    """Single-use token for magic links and password resets."""
    identifier: str
    token: str
    expires: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "VerificationToken":
        return cls(
            identifier=row["identifier"],
            token=row["token"],
            expires=from_iso(row["expires"]),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires < (now or utcnow())


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    "UserRole",
    "SubscriptionStatus",
    "SubscriptionPlan",
    "User",
    "Subscription",
    "UserWithSubscription",
    "Note",
    "NoteChunk",
    "VerificationToken",
    "utcnow",
    "to_iso",
    "from_iso",
]
