"""
Auth Orchestrator
Owns the session store, rate limiter, sweeper and both OTP state machines,
and signs durable session tokens in and out.
Built once at application startup and stored on `app.state`.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from app.core.config import Settings
from app.services.user_manager import UserManager

from .constants import SESSION_CLEANUP_INTERVAL_SECONDS
from .errors import IdentityNotFound
from .identity import StytchIdentityMaterializer
from .jwt_manager import JWTManager
from .login_flow import SequentialLoginFlow
from .models import DurableSession, Identity
from .phone_change_flow import PhoneChangeFlow
from .providers import AvailabilityLookup, ChallengeDelegate, IdentityMaterializer
from .rate_limiter import RateLimiter
from .session_store import SessionStore, SessionSweeper
from .stytch_client import StytchClient
from .utils import utc_now

logger = logging.getLogger(__name__)


class AuthOrchestrator:
    """Single owner of all in-memory authentication state"""

    def __init__(
        self,
        challenges: ChallengeDelegate,
        availability: AvailabilityLookup,
        identities: IdentityMaterializer,
        jwt_manager: JWTManager,
        clock: Callable[[], datetime] = utc_now,
        sweep_interval_seconds: float = SESSION_CLEANUP_INTERVAL_SECONDS,
        stytch: Optional[StytchClient] = None,
    ):
        self.clock = clock
        self.jwt_manager = jwt_manager
        self.store = SessionStore(clock=clock)
        self.rate_limiter = RateLimiter(clock=clock)
        self.sweeper = SessionSweeper(self.store, self.rate_limiter, interval_seconds=sweep_interval_seconds)

        self.login = SequentialLoginFlow(
            self.store, self.rate_limiter, challenges, availability, identities, clock=clock
        )
        self.phone_change = PhoneChangeFlow(
            self.store, self.rate_limiter, challenges, availability, identities, clock=clock
        )
        self.identities = identities
        self._stytch = stytch

    @classmethod
    def from_settings(cls, settings: Settings, users: Optional[UserManager] = None) -> "AuthOrchestrator":
        """Wire the Stytch client, user table and JWT manager from configuration"""
        stytch = StytchClient(
            project_id=settings.STYTCH_PROJECT_ID,
            secret=settings.STYTCH_SECRET,
            environment=settings.STYTCH_ENV,
            timeout_seconds=settings.PROVIDER_TIMEOUT_SECONDS,
        )
        jwt_manager = JWTManager(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
        )
        identities = StytchIdentityMaterializer(stytch, users or UserManager(), jwt_manager)
        return cls(
            challenges=stytch,
            availability=stytch,
            identities=identities,
            jwt_manager=jwt_manager,
            stytch=stytch,
        )

    async def get_current_identity(self, user_id: str) -> Identity:
        identity = await self.identities.get_identity(user_id)
        if identity is None:
            raise IdentityNotFound("User not found")
        return identity

    async def logout(self, token_payload: Dict[str, Any]) -> None:
        """Revoke the presented session token"""
        self.jwt_manager.revoke(token_payload)

    async def refresh(self, token_payload: Dict[str, Any]) -> DurableSession:
        """Swap the presented session token for a fresh one"""
        identity = await self.get_current_identity(token_payload["sub"])
        durable_session = await self.identities.issue_durable_session(identity)
        self.jwt_manager.revoke(token_payload)
        logger.info(f"Refreshed session token for user {identity.id}")
        return durable_session

    async def start(self) -> None:
        self.sweeper.start()
        logger.info("Auth orchestrator started")

    async def stop(self) -> None:
        await self.sweeper.stop()
        if self._stytch is not None:
            await self._stytch.aclose()
        logger.info("Auth orchestrator stopped")
