"""
User management for the wallet backend
Reads and writes the durable `users` table keyed by the provider user id
"""

import logging
from typing import Any, Dict, Optional

from app.core.database import Database, db as default_db

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, stytch_user_id, phone_number, email, status, created_at"


class UserManager:
    """Handles user lookup, creation, and phone number updates"""

    def __init__(self, database: Optional[Database] = None):
        self.db = database or default_db

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = await self.db.fetchrow(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = $1 AND deleted_at IS NULL",
            user_id
        )
        return dict(row) if row else None

    async def create_or_get_user(self, stytch_user_id: str, phone_number: str, email: Optional[str]) -> Dict[str, Any]:
        """
        Create the user row for a provider user, or refresh the existing one

        An existing row found by provider id (or, for rows created before the
        provider id was stored, by phone number) gets its provider id, email
        and last login time updated.
        """
        existing = await self.db.fetchrow(
            f"""
            SELECT {USER_COLUMNS} FROM users
            WHERE (stytch_user_id = $1 OR phone_number = $2) AND deleted_at IS NULL
            ORDER BY (stytch_user_id = $1) DESC NULLS LAST
            LIMIT 1
            """,
            stytch_user_id, phone_number
        )

        if existing:
            row = await self.db.fetchrow(
                f"""
                UPDATE users
                SET stytch_user_id = $2,
                    email = COALESCE($3, email),
                    phone_verified = true,
                    email_verified = ($3 IS NOT NULL) OR email_verified,
                    last_login_at = CURRENT_TIMESTAMP
                WHERE id = $1
                RETURNING {USER_COLUMNS}
                """,
                existing["id"], stytch_user_id, email
            )
            logger.info(f"Found existing user {existing['id']} for provider user {stytch_user_id}")
            return dict(row)

        row = await self.db.fetchrow(
            f"""
            INSERT INTO users (stytch_user_id, phone_number, email, phone_verified,
                               email_verified, status, last_login_at)
            VALUES ($1, $2, $3, true, $4, 'active', CURRENT_TIMESTAMP)
            RETURNING {USER_COLUMNS}
            """,
            stytch_user_id, phone_number, email, email is not None
        )
        logger.info(f"Created user {row['id']} for provider user {stytch_user_id}")
        return dict(row)

    async def update_user_phone(self, user_id: str, phone_number: str) -> None:
        result = await self.db.execute(
            """
            UPDATE users
            SET phone_number = $2, phone_verified = true
            WHERE id = $1 AND deleted_at IS NULL
            """,
            user_id, phone_number
        )
        if result == "UPDATE 0":
            raise LookupError(f"User {user_id} not found")
        logger.info(f"Updated phone number for user {user_id}")
