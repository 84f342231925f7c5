"""
Phone Change Flow
Guarded mutation: the phone number of an authenticated user only changes
after codes sent to both the current and the new number are confirmed

    verify_current_phone -> verify_new_phone -> completed
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict

from .constants import PHONE_CHANGE_RATE_LIMIT_PREFIX
from .errors import (
    IdentityNotFound,
    InvalidRequest,
    InvalidStep,
    OwnershipMismatch,
    PhoneChangeFailed,
    PhoneUnavailable,
    ProviderError,
)
from .flow_base import StepFlow
from .models import (
    Medium,
    PhoneChangeResult,
    PhoneChangeSession,
    PhoneChangeStep,
    session_window,
)
from .providers import AvailabilityLookup, ChallengeDelegate, IdentityMaterializer
from .rate_limiter import RateLimiter
from .session_store import SessionStore
from .utils import format_phone, is_valid_phone, mask_phone, new_session_id, utc_now

logger = logging.getLogger(__name__)


class PhoneChangeFlow(StepFlow):
    """Drives a PhoneChangeSession owned by one authenticated user"""

    def __init__(
        self,
        store: SessionStore,
        rate_limiter: RateLimiter,
        challenges: ChallengeDelegate,
        availability: AvailabilityLookup,
        identities: IdentityMaterializer,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(store, rate_limiter, challenges, clock)
        self.availability = availability
        self.identities = identities

    @staticmethod
    def rate_limit_key(user_id: str) -> str:
        return f"{PHONE_CHANGE_RATE_LIMIT_PREFIX}:{user_id}"

    async def _load_owned(self, user_id: str, session_id: str) -> PhoneChangeSession:
        # Ownership is checked before expiry
        session = await self._get(session_id, PhoneChangeSession)
        if session.user_id != user_id:
            logger.warning(f"User {user_id} tried to use phone change session {session_id} of another user")
            raise OwnershipMismatch("Session does not belong to this user")
        await self._ensure_fresh(session)
        return session

    async def start_phone_change(self, user_id: str, new_phone_number: str) -> Dict[str, Any]:
        """
        Step 1: send an OTP to the user's current phone

        Args:
            user_id: Authenticated user id
            new_phone_number: Number the user wants to switch to

        Returns:
            Session snapshot with the session id and next step
        """
        new_phone = format_phone(new_phone_number)
        if not is_valid_phone(new_phone):
            raise InvalidRequest("Invalid phone number format")

        identity = await self.identities.get_identity(user_id)
        if identity is None or not identity.phone_number:
            raise IdentityNotFound("User not found or has no current phone number")

        current_phone = identity.phone_number
        if current_phone == new_phone:
            raise InvalidRequest("New phone number must be different from current phone number")

        key = self.rate_limit_key(user_id)
        await self._reserve_rate_limit(key, "Too many phone change attempts. Please try again later.")
        try:
            if not await self.availability.is_available(Medium.PHONE, new_phone):
                raise PhoneUnavailable("New phone number is already registered by another user")

            handle = await self.challenges.send_challenge(Medium.PHONE, current_phone)

            session = PhoneChangeSession(
                id=new_session_id(),
                user_id=user_id,
                current_phone=current_phone,
                new_phone=new_phone,
                current_phone_challenge=handle,
                current_phone_channel=handle.channel,
                **session_window(self.clock()),
            )
            await self.store.add(session)
        except Exception:
            await self.rate_limiter.release(key)
            raise

        logger.info(f"Phone change session {session.id} for user {user_id}: {mask_phone(current_phone)} -> {mask_phone(new_phone)}")
        return session.to_dict()

    async def verify_old_phone_otp(self, user_id: str, session_id: str, code: str) -> Dict[str, Any]:
        """Step 2: confirm the current phone, then send an OTP to the new one"""
        async with self.store.lock(session_id):
            session = await self._load_owned(user_id, session_id)
            self._require_step(session, PhoneChangeStep.VERIFY_CURRENT_PHONE, "Invalid step. Expected current phone verification.")

            await self._verify(session, session.current_phone_challenge, code, "current_phone_attempts")

            session.current_phone_verified = True
            session.current_phone_attempts = 0
            session.current_phone_challenge = None

            try:
                handle = await self.challenges.send_challenge(Medium.PHONE, session.new_phone)
            except ProviderError as e:
                # The current phone code is spent, so the flow cannot resume
                await self.store.delete(session_id)
                logger.error(f"Could not send OTP to new phone for session {session_id}: {e.message}")
                raise ProviderError(
                    "Failed to send OTP to the new phone number",
                    details=e.details,
                    restart_required=True,
                ) from e

            session.new_phone_challenge = handle
            session.new_phone_channel = handle.channel
            session.advance(PhoneChangeStep.VERIFY_NEW_PHONE)

            logger.info(f"Current phone verified for session {session_id}, OTP sent to {mask_phone(session.new_phone)}")
            return session.to_dict()

    async def verify_new_phone_otp_and_complete(self, user_id: str, session_id: str, code: str) -> PhoneChangeResult:
        """Step 3: confirm the new phone and switch the user's number"""
        async with self.store.lock(session_id):
            session = await self._load_owned(user_id, session_id)
            self._require_step(session, PhoneChangeStep.VERIFY_NEW_PHONE, "Invalid step. Expected new phone verification.")
            if not session.current_phone_verified:
                raise InvalidStep("Current phone verification required")

            await self._verify(session, session.new_phone_challenge, code, "new_phone_attempts")

            session.new_phone_challenge = None
            session.advance(PhoneChangeStep.COMPLETED)
            await self.store.delete(session_id)

        try:
            await self.identities.update_phone(user_id, session.new_phone)
        except Exception as e:
            logger.error(f"Phone change failed for user {user_id}: {str(e)}")
            raise PhoneChangeFailed("Phone number could not be updated. Please start again.") from e

        logger.info(f"Phone number changed for user {user_id}: {mask_phone(session.current_phone)} -> {mask_phone(session.new_phone)}")
        return PhoneChangeResult(
            old_phone=session.current_phone,
            new_phone=session.new_phone,
            changed_at=self.clock(),
        )

    async def cancel_phone_change(self, user_id: str, session_id: str) -> bool:
        """Drop a phone change session owned by `user_id`; unknown ids are a no-op"""
        async with self.store.lock(session_id):
            session = await self.store.get(session_id)
            if session is None or session.kind != PhoneChangeSession.kind:
                return False
            if session.user_id != user_id:
                raise OwnershipMismatch("Session does not belong to this user")
            return await self.store.delete(session_id)
