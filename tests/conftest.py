"""Pytest configuration and fixtures."""

import asyncio
import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["STYTCH_PROJECT_ID"] = "project-test-123"
os.environ["STYTCH_SECRET"] = "secret-test-123"

from app.auth.errors import ChallengeExpired, InvalidCode, ProviderError
from app.auth.jwt_manager import JWTManager
from app.auth.models import (
    ChallengeHandle,
    DeliveryChannel,
    DurableSession,
    Identity,
    Medium,
    VerifiedIdentity,
)
from app.auth.orchestrator import AuthOrchestrator

VALID_CODE = "123456"
WRONG_CODE = "000000"
PHONE = "+14155550100"
NEW_PHONE = "+14155550199"
EMAIL = "user@example.com"


class FakeClock:
    """Manually advanced clock shared by the store, limiter and flows"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeChallengeDelegate:
    """Accepts VALID_CODE for every challenge it issued"""

    def __init__(self):
        self._ids = itertools.count(1)
        self.sent: List[Tuple[Medium, str]] = []
        self.verified: List[Tuple[str, str]] = []
        self.failing_destinations: Set[str] = set()
        self.expired_methods: Set[str] = set()
        self.verify_outage = False
        self.phone_channel = DeliveryChannel.WHATSAPP

    async def send_challenge(self, medium: Medium, destination: str) -> ChallengeHandle:
        await asyncio.sleep(0)
        if destination in self.failing_destinations:
            raise ProviderError("Failed to send OTP via WhatsApp or SMS")
        self.sent.append((medium, destination))
        channel = DeliveryChannel.EMAIL if medium == Medium.EMAIL else self.phone_channel
        return ChallengeHandle(
            method_id=f"{medium.value}-method-{next(self._ids)}",
            medium=medium,
            channel=channel,
            destination=destination,
        )

    async def verify_challenge(self, handle: ChallengeHandle, code: str) -> VerifiedIdentity:
        # Yield so concurrent callers would interleave without the session lock
        await asyncio.sleep(0)
        self.verified.append((handle.method_id, code))
        if self.verify_outage:
            raise ProviderError("Identity provider unreachable")
        if handle.method_id in self.expired_methods:
            raise ChallengeExpired("OTP has expired. Please request a new one.")
        if code != VALID_CODE:
            raise InvalidCode("Invalid OTP")
        return VerifiedIdentity(provider_user_id="stytch-user-1", method_id=handle.method_id)

    def sent_to(self, destination: str) -> int:
        return sum(1 for _, sent in self.sent if sent == destination)


class FakeAvailability:
    def __init__(self):
        self.taken: Set[str] = set()

    async def is_available(self, medium: Medium, value: str) -> bool:
        return value not in self.taken


class FakeIdentityMaterializer:
    """In-memory user table issuing real JWTs"""

    def __init__(self, jwt_manager: JWTManager):
        self.jwt_manager = jwt_manager
        self.users: Dict[str, Identity] = {}
        self._ids = itertools.count(1)
        self.fail_create = False
        self.fail_update = False

    def add(self, phone: str, email: Optional[str] = None) -> Identity:
        identity = Identity(
            id=f"user-{next(self._ids)}",
            provider_user_id=f"stytch-{phone}",
            phone_number=phone,
            email=email,
        )
        self.users[identity.id] = identity
        return identity

    async def get_identity(self, user_id: str) -> Optional[Identity]:
        return self.users.get(user_id)

    async def create_or_get_identity(self, phone: str, email: str) -> Identity:
        if self.fail_create:
            raise RuntimeError("database unavailable")
        for identity in self.users.values():
            if identity.phone_number == phone:
                identity.email = email
                return identity
        return self.add(phone, email)

    async def issue_durable_session(self, identity: Identity) -> DurableSession:
        return self.jwt_manager.create_session_token(identity)

    async def update_phone(self, user_id: str, new_phone: str) -> None:
        if self.fail_update:
            raise RuntimeError("provider update failed")
        if user_id not in self.users:
            raise LookupError(f"User {user_id} not found")
        self.users[user_id].phone_number = new_phone


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def challenges():
    return FakeChallengeDelegate()


@pytest.fixture
def availability():
    return FakeAvailability()


@pytest.fixture
def jwt_manager():
    return JWTManager(secret_key="test-secret-key", expire_minutes=60)


@pytest.fixture
def identities(jwt_manager):
    return FakeIdentityMaterializer(jwt_manager)


@pytest.fixture
def orchestrator(challenges, availability, identities, jwt_manager, clock):
    return AuthOrchestrator(
        challenges=challenges,
        availability=availability,
        identities=identities,
        jwt_manager=jwt_manager,
        clock=clock,
    )


@pytest.fixture
def login_flow(orchestrator):
    return orchestrator.login


@pytest.fixture
def phone_change_flow(orchestrator):
    return orchestrator.phone_change
