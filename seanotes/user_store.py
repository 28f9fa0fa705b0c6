"""
SeaNotes - User Store v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Database persistence for accounts and their subscriptions.
"""

import logging
import sqlite3
from typing import List, Optional, Tuple
from uuid import uuid4

from .errors import ConflictError, ResourceNotFoundError
from .models import (
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
    UserRole,
    UserWithSubscription,
    from_iso,
    utcnow,
)
from .store_base import SQLiteStore, to_db_value

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "name", "email", "password_hash", "image", "role", "email_verified",
    "verification_token", "summaries_enabled",
)

SUBSCRIPTION_COLUMNS = ("status", "plan", "customer_id")


class UserStore(SQLiteStore):
    """Persistence for the users table."""

    def find_by_id(self, user_id: str) -> Optional[User]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return User.from_row(row) if row else None
        finally:
            conn.close()

    def find_by_email(self, email: str) -> Optional[User]:
        """Emails are stored lowercased, so lookups ignore case."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            ).fetchone()
            return User.from_row(row) if row else None
        finally:
            conn.close()

    def find_by_verification_token(self, token: str) -> Optional[User]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE verification_token = ?", (token,)
            ).fetchone()
            return User.from_row(row) if row else None
        finally:
            conn.close()

    def find_all(
        self,
        page: int = 1,
        page_size: int = 10,
        search_name: Optional[str] = None,
        filter_plan: Optional[str] = None,
        filter_status: Optional[str] = None,
    ) -> Tuple[List[UserWithSubscription], int]:
        """
        Page through users with their subscription, ordered by name.

        Args:
            page: 1-based page number
            page_size: Users per page
            search_name: Case-insensitive substring of the name
            filter_plan: Only users whose subscription has this plan
            filter_status: Only users whose subscription has this status

        Returns:
            (users on this page, total matching users)
        """
        page = max(1, page)
        page_size = max(1, page_size)

        where = []
        params = []
        if search_name:
            where.append("instr(casefold(u.name), ?) > 0")
            params.append(search_name.casefold())
        if filter_plan:
            where.append("s.plan = ?")
            params.append(filter_plan)
        if filter_status:
            where.append("s.status = ?")
            params.append(filter_status)

        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        base = f"FROM users u LEFT JOIN subscriptions s ON s.user_id = u.id {where_sql}"

        conn = self._connect()
        try:
            total = conn.execute(f"SELECT COUNT(*) {base}", params).fetchone()[0]
            rows = conn.execute(
                f"""SELECT u.*,
                           s.id AS sub_id, s.status AS sub_status, s.plan AS sub_plan,
                           s.customer_id AS sub_customer_id, s.created_at AS sub_created_at
                    {base}
                    ORDER BY u.name ASC
                    LIMIT ? OFFSET ?""",
                params + [page_size, (page - 1) * page_size],
            ).fetchall()
        finally:
            conn.close()

        users = []
        for row in rows:
            subscription = None
            if row["sub_id"]:
                subscription = Subscription(
                    id=row["sub_id"],
                    user_id=row["id"],
                    status=row["sub_status"],
                    plan=row["sub_plan"],
                    customer_id=row["sub_customer_id"],
                    created_at=from_iso(row["sub_created_at"]),
                )
            users.append(UserWithSubscription(user=User.from_row(row), subscription=subscription))

        return users, total

    def create(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: str = UserRole.USER.value,
        image: Optional[str] = None,
        email_verified: bool = False,
        verification_token: Optional[str] = None,
        summaries_enabled: bool = True,
    ) -> User:
        user = User(
            id=str(uuid4()),
            name=name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=to_db_value(role),
            image=image,
            email_verified=email_verified,
            verification_token=verification_token,
            summaries_enabled=summaries_enabled,
            created_at=utcnow(),
        )

        conn = self._connect()
        try:
            conn.execute(
                """INSERT INTO users (id, name, email, password_hash, image, role,
                                      email_verified, verification_token,
                                      summaries_enabled, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    user.id, user.name, user.email, user.password_hash, user.image,
                    user.role, int(user.email_verified), user.verification_token,
                    int(user.summaries_enabled), user.created_at.isoformat(),
                ),
            )
            conn.commit()
        except sqlite3.IntegrityError:
            # Email is UNIQUE; a concurrent signup may have won the race
            raise ConflictError("User", "An account with this email already exists")
        finally:
            conn.close()

        logger.info("Created user", extra={"user_id": user.id})
        return user

    def update(self, user_id: str, **fields) -> User:
        """Update columns of one user. Raises ResourceNotFoundError when missing."""
        if "email" in fields and fields["email"]:
            fields["email"] = fields["email"].strip().lower()
        if fields:
            clause, values = self._assignments(fields, USER_COLUMNS)
            conn = self._connect()
            try:
                cursor = conn.execute(f"UPDATE users SET {clause} WHERE id = ?", values + [user_id])
                conn.commit()
                if cursor.rowcount == 0:
                    raise ResourceNotFoundError("User", user_id)
            finally:
                conn.close()

        user = self.find_by_id(user_id)
        if user is None:
            raise ResourceNotFoundError("User", user_id)
        return user

    def update_by_email(self, email: str, **fields) -> User:
        user = self.find_by_email(email)
        if user is None:
            raise ResourceNotFoundError("User", email)
        return self.update(user.id, **fields)

    def delete(self, user_id: str) -> None:
        """Delete a user. Subscriptions, notes and chunks cascade."""
        conn = self._connect()
        try:
            conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
        finally:
            conn.close()

    def count(self) -> int:
        conn = self._connect()
        try:
            return conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
        finally:
            conn.close()


class SubscriptionStore(SQLiteStore):
    """Persistence for the subscriptions table."""

    def find_by_user_and_status(self, user_id: str, status: str) -> Optional[Subscription]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? AND status = ?",
                (user_id, to_db_value(status)),
            ).fetchone()
            return Subscription.from_row(row) if row else None
        finally:
            conn.close()

    def find_by_id(self, subscription_id: str) -> Optional[Subscription]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
            ).fetchone()
            return Subscription.from_row(row) if row else None
        finally:
            conn.close()

    def find_by_user_id(self, user_id: str) -> List[Subscription]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            ).fetchall()
            return [Subscription.from_row(row) for row in rows]
        finally:
            conn.close()

    def create(
        self,
        user_id: str,
        status: str = SubscriptionStatus.ACTIVE.value,
        plan: str = SubscriptionPlan.FREE.value,
        customer_id: Optional[str] = None,
    ) -> Subscription:
        subscription = Subscription(
            id=str(uuid4()),
            user_id=user_id,
            status=to_db_value(status),
            plan=to_db_value(plan),
            customer_id=customer_id,
            created_at=utcnow(),
        )

        conn = self._connect()
        try:
            conn.execute(
                """INSERT INTO subscriptions (id, user_id, status, plan, customer_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    subscription.id, subscription.user_id, subscription.status,
                    subscription.plan, subscription.customer_id,
                    subscription.created_at.isoformat(),
                ),
            )
            conn.commit()
        finally:
            conn.close()

        return subscription

    def _update_where(self, column: str, value: str, fields: dict) -> Subscription:
        conn = self._connect()
        try:
            if fields:
                clause, values = self._assignments(fields, SUBSCRIPTION_COLUMNS)
                conn.execute(
                    f"UPDATE subscriptions SET {clause} WHERE {column} = ?", values + [value]
                )
                conn.commit()
            row = conn.execute(
                f"SELECT * FROM subscriptions WHERE {column} = ?", (value,)
            ).fetchone()
            if row is None:
                raise ResourceNotFoundError("Subscription", value)
            return Subscription.from_row(row)
        finally:
            conn.close()

    def update(self, user_id: str, **fields) -> Subscription:
        """Update the subscription owned by user_id."""
        return self._update_where("user_id", user_id, fields)

    def update_by_customer_id(self, customer_id: str, **fields) -> Subscription:
        return self._update_where("customer_id", customer_id, fields)

    def delete(self, subscription_id: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM subscriptions WHERE id = ?", (subscription_id,))
            conn.commit()
        finally:
            conn.close()


__all__ = ["UserStore", "SubscriptionStore"]
