"""
Step handling shared by the login and phone change flows
Session loading, step guards, rate limit gating and attempt accounting
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Type, TypeVar

from .constants import MAX_OTP_ATTEMPTS
from .errors import (
    ChallengeExpired,
    InvalidCode,
    InvalidStep,
    MaxAttemptsExceeded,
    RateLimited,
    SessionExpired,
    SessionNotFound,
)
from .models import ChallengeHandle, EphemeralSession, VerifiedIdentity
from .providers import ChallengeDelegate
from .rate_limiter import RateLimiter
from .session_store import SessionStore
from .utils import utc_now

logger = logging.getLogger(__name__)

SessionT = TypeVar("SessionT", bound=EphemeralSession)


class StepFlow:
    """Base for the OTP state machines"""

    def __init__(
        self,
        store: SessionStore,
        rate_limiter: RateLimiter,
        challenges: ChallengeDelegate,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.challenges = challenges
        self.clock = clock

    async def _reserve_rate_limit(self, key: str, message: str) -> None:
        """Claim one issuance for `key`; the caller releases it if the send fails"""
        if not await self.rate_limiter.try_acquire(key):
            retry_after = await self.rate_limiter.retry_after(key)
            logger.warning(f"Rate limit hit for {key}, retry in {retry_after}s")
            raise RateLimited(message, details={"retry_after": retry_after})

    async def _get(self, session_id: str, session_type: Type[SessionT]) -> SessionT:
        """Fetch a session of the given kind; other kinds look absent"""
        session = await self.store.get(session_id)
        if session is None or session.kind != session_type.kind:
            raise SessionNotFound("Invalid or expired session")
        return session

    async def _ensure_fresh(self, session: EphemeralSession) -> None:
        if session.is_expired(self.clock()):
            await self.store.delete(session.id)
            logger.info(f"Session {session.id} expired")
            raise SessionExpired("Session expired")

    @staticmethod
    def _require_step(session, expected, message: str) -> None:
        if session.step != expected:
            raise InvalidStep(message, details={
                "current_step": session.step.value,
                "expected_step": expected.value,
            })

    async def _verify(
        self,
        session: EphemeralSession,
        handle: Optional[ChallengeHandle],
        code: str,
        attempts_field: str,
    ) -> VerifiedIdentity:
        """
        Check `code` against `handle`, counting failures on `attempts_field`

        A wrong or expired code costs one attempt; the attempt that reaches
        MAX_OTP_ATTEMPTS destroys the session. Provider outages cost nothing.
        """
        if getattr(session, attempts_field) >= MAX_OTP_ATTEMPTS:
            await self.store.delete(session.id)
            raise MaxAttemptsExceeded("Maximum OTP attempts exceeded")

        if handle is None:
            raise InvalidStep("No active challenge for this step")

        try:
            return await self.challenges.verify_challenge(handle, code)
        except (InvalidCode, ChallengeExpired) as e:
            attempts = getattr(session, attempts_field) + 1
            setattr(session, attempts_field, attempts)

            if attempts >= MAX_OTP_ATTEMPTS:
                await self.store.delete(session.id)
                logger.warning(f"Session {session.id} destroyed after {attempts} failed OTP attempts")
                raise MaxAttemptsExceeded("Maximum OTP attempts exceeded") from e

            remaining = MAX_OTP_ATTEMPTS - attempts
            logger.info(f"Failed OTP attempt on session {session.id}, {remaining} remaining")
            raise type(e)(e.message, details={"attempts_remaining": remaining}) from e
