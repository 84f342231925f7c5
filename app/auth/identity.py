"""
Identity Materializer
Turns two verified factors into the application's durable user record and
session token
"""

import logging
from typing import Any, Dict, Optional

from app.services.user_manager import UserManager

from .jwt_manager import JWTManager
from .models import DurableSession, Identity
from .stytch_client import StytchClient
from .utils import mask_phone

logger = logging.getLogger(__name__)


def identity_from_row(row: Dict[str, Any]) -> Identity:
    return Identity(
        id=str(row["id"]),
        provider_user_id=row.get("stytch_user_id"),
        phone_number=row.get("phone_number"),
        email=row.get("email"),
        status=row.get("status") or "active",
        created_at=row.get("created_at"),
    )


class StytchIdentityMaterializer:
    """Keeps the Stytch user and the `users` row in step"""

    def __init__(self, stytch: StytchClient, users: UserManager, jwt_manager: JWTManager):
        self.stytch = stytch
        self.users = users
        self.jwt_manager = jwt_manager

    async def get_identity(self, user_id: str) -> Optional[Identity]:
        row = await self.users.get_user_by_id(user_id)
        return identity_from_row(row) if row else None

    async def create_or_get_identity(self, phone: str, email: str) -> Identity:
        # Provider users are looked up by phone; email search is not relied on
        matches = await self.stytch.search_users("phone_number", phone)
        if matches:
            provider_user = matches[0]
        else:
            logger.info(f"No provider user for {mask_phone(phone)}, creating one")
            provider_user = await self.stytch.create_user(phone, email)

        row = await self.users.create_or_get_user(provider_user["user_id"], phone, email)
        return identity_from_row(row)

    async def issue_durable_session(self, identity: Identity) -> DurableSession:
        return self.jwt_manager.create_session_token(identity)

    async def update_phone(self, user_id: str, new_phone: str) -> None:
        row = await self.users.get_user_by_id(user_id)
        if not row or not row.get("stytch_user_id"):
            raise LookupError(f"User {user_id} not found or missing provider id")

        await self.stytch.update_user_phone(row["stytch_user_id"], new_phone)
        await self.users.update_user_phone(user_id, new_phone)
