"""
Sequential Login Flow
Phone OTP, then email OTP, then completion into a durable identity

    phone_verification -> email_input -> email_verification
        -> ready_to_complete -> completed

Any step may end the flow early through expiry or attempt exhaustion.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict

from .errors import AuthFlowError, InvalidRequest, InvalidStep, LoginCompletionFailed
from .flow_base import StepFlow
from .models import LoginResult, LoginSession, LoginStep, Medium, session_window
from .providers import AvailabilityLookup, ChallengeDelegate, IdentityMaterializer
from .rate_limiter import RateLimiter
from .session_store import SessionStore
from .utils import (
    format_email,
    format_phone,
    is_valid_email,
    is_valid_phone,
    mask_email,
    mask_phone,
    new_session_id,
    utc_now,
)

logger = logging.getLogger(__name__)


class SequentialLoginFlow(StepFlow):
    """Drives a LoginSession through the phone and email legs"""

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

    async def start_phone_login(self, phone_number: str) -> Dict[str, Any]:
        """
        Step 1: send an OTP to the phone and open a login session

        Args:
            phone_number: Phone number in international format

        Returns:
            Session snapshot with the session id and next step
        """
        phone = format_phone(phone_number)
        if not is_valid_phone(phone):
            raise InvalidRequest("Invalid phone number format")

        await self._reserve_rate_limit(phone, "Too many login attempts. Please try again later.")
        try:
            phone_available = await self.availability.is_available(Medium.PHONE, phone)
            handle = await self.challenges.send_challenge(Medium.PHONE, phone)

            session = LoginSession(
                id=new_session_id(),
                phone=phone,
                phone_available=phone_available,
                phone_challenge=handle,
                phone_channel=handle.channel,
                **session_window(self.clock()),
            )
            await self.store.add(session)
        except Exception:
            await self.rate_limiter.release(phone)
            raise

        logger.info(f"Phone login session {session.id} created for {mask_phone(phone)} (new account: {phone_available})")
        return session.to_dict()

    async def verify_phone_otp(self, session_id: str, code: str) -> Dict[str, Any]:
        """Step 2: check the phone code and move on to email input"""
        async with self.store.lock(session_id):
            session = await self._get(session_id, LoginSession)
            await self._ensure_fresh(session)
            self._require_step(session, LoginStep.PHONE_VERIFICATION, "Invalid step. Expected phone verification.")

            await self._verify(session, session.phone_challenge, code, "phone_attempts")

            session.phone_verified = True
            session.phone_attempts = 0
            session.phone_challenge = None
            session.advance(LoginStep.EMAIL_INPUT)

            logger.info(f"Phone verified for session {session_id}")
            return session.to_dict()

    async def start_email_login(self, session_id: str, email: str) -> Dict[str, Any]:
        """Step 3: send an OTP to the email address"""
        async with self.store.lock(session_id):
            session = await self._get(session_id, LoginSession)
            await self._ensure_fresh(session)
            self._require_step(session, LoginStep.EMAIL_INPUT, "Invalid step. Phone must be verified first.")
            if not session.phone_verified:
                raise InvalidStep("Phone verification required before email step")

            email = format_email(email)
            if not is_valid_email(email):
                raise InvalidRequest("Invalid email format")

            email_available = await self.availability.is_available(Medium.EMAIL, email)
            handle = await self.challenges.send_challenge(Medium.EMAIL, email)

            session.email = email
            session.email_available = email_available
            session.email_challenge = handle
            session.advance(LoginStep.EMAIL_VERIFICATION)

            logger.info(f"Email OTP sent to {mask_email(email)} for session {session_id}")
            return session.to_dict()

    async def verify_email_otp(self, session_id: str, code: str) -> Dict[str, Any]:
        """Step 4: check the email code; the identity is not touched yet"""
        async with self.store.lock(session_id):
            session = await self._get(session_id, LoginSession)
            await self._ensure_fresh(session)
            self._require_step(session, LoginStep.EMAIL_VERIFICATION, "Invalid step. Expected email verification.")
            if not session.phone_verified:
                raise InvalidStep("Phone verification required")

            await self._verify(session, session.email_challenge, code, "email_attempts")

            session.email_verified = True
            session.email_attempts = 0
            session.email_challenge = None
            session.advance(LoginStep.READY_TO_COMPLETE)

            logger.info(f"Email verified for session {session_id}")
            return session.to_dict()

    async def complete_login(self, session_id: str) -> LoginResult:
        """
        Step 5: consume the session and materialize the durable identity

        The session is deleted before the identity work starts and is never
        restored; a downstream failure means the whole flow starts over.
        """
        async with self.store.lock(session_id):
            session = await self._get(session_id, LoginSession)
            await self._ensure_fresh(session)
            self._require_step(session, LoginStep.READY_TO_COMPLETE, "Invalid step. Both phone and email must be verified.")
            if not (session.phone_verified and session.email_verified):
                raise InvalidStep("Both phone and email must be verified")

            session.advance(LoginStep.COMPLETED)
            await self.store.delete(session_id)

        is_new_identity = bool(session.phone_available and session.email_available)
        try:
            identity = await self.identities.create_or_get_identity(session.phone, session.email)
            durable_session = await self.identities.issue_durable_session(identity)
        except AuthFlowError as e:
            logger.error(f"Login completion failed for session {session_id}: {e.message}")
            raise LoginCompletionFailed(f"Login completion failed: {e.message}") from e
        except Exception as e:
            logger.error(f"Login completion failed for session {session_id}: {str(e)}")
            raise LoginCompletionFailed("Login completion failed") from e

        logger.info(f"Login completed for user {identity.id} (new: {is_new_identity})")
        return LoginResult(identity=identity, is_new_identity=is_new_identity, durable_session=durable_session)

    async def get_login_session(self, session_id: str) -> Dict[str, Any]:
        async with self.store.lock(session_id):
            session = await self._get(session_id, LoginSession)
            await self._ensure_fresh(session)
            return session.to_dict()

    async def cancel_login(self, session_id: str) -> bool:
        """Drop a login session, expired or not; unknown ids are a no-op"""
        async with self.store.lock(session_id):
            session = await self.store.get(session_id)
            if session is None or session.kind != LoginSession.kind:
                return False
            return await self.store.delete(session_id)
