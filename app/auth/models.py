"""
Authentication Models
Ephemeral session state and the records exchanged with the identity provider
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from .constants import OTP_EXPIRY_SECONDS


class SessionKind(str, Enum):
    """Type tag of an ephemeral session"""
    LOGIN = "login"
    PHONE_CHANGE = "phone_change"


class Medium(str, Enum):
    PHONE = "phone"
    EMAIL = "email"


class DeliveryChannel(str, Enum):
    """Channel the provider actually used to deliver a code"""
    WHATSAPP = "whatsapp"
    SMS = "sms"
    EMAIL = "email"


class LoginStep(str, Enum):
    PHONE_VERIFICATION = "phone_verification"
    EMAIL_INPUT = "email_input"
    EMAIL_VERIFICATION = "email_verification"
    READY_TO_COMPLETE = "ready_to_complete"
    COMPLETED = "completed"


class PhoneChangeStep(str, Enum):
    VERIFY_CURRENT_PHONE = "verify_current_phone"
    VERIFY_NEW_PHONE = "verify_new_phone"
    COMPLETED = "completed"


LOGIN_STEP_ORDER = list(LoginStep)
PHONE_CHANGE_STEP_ORDER = list(PhoneChangeStep)


@dataclass(frozen=True)
class ChallengeHandle:
    """Opaque provider handle for one issued OTP"""
    method_id: str
    medium: Medium
    channel: DeliveryChannel
    destination: str


@dataclass(frozen=True)
class VerifiedIdentity:
    """What the provider reports after a code was accepted"""
    provider_user_id: Optional[str]
    method_id: str


@dataclass
class Identity:
    """Application user record"""
    id: str
    provider_user_id: Optional[str]
    phone_number: Optional[str]
    email: Optional[str]
    status: str = "active"
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "provider_user_id": self.provider_user_id,
            "phone_number": self.phone_number,
            "email": self.email,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class DurableSession:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    is_new_identity: bool
    durable_session: DurableSession


@dataclass(frozen=True)
class PhoneChangeResult:
    old_phone: str
    new_phone: str
    changed_at: datetime


@dataclass
class EphemeralSession:
    """Fields shared by every session kind held in the session store"""
    id: str
    created_at: datetime
    expires_at: datetime

    kind: ClassVar[SessionKind]

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass
class LoginSession(EphemeralSession):
    phone: str = ""
    phone_available: bool = False
    step: LoginStep = LoginStep.PHONE_VERIFICATION
    email: Optional[str] = None
    email_available: Optional[bool] = None
    phone_verified: bool = False
    email_verified: bool = False
    phone_attempts: int = 0
    email_attempts: int = 0
    phone_challenge: Optional[ChallengeHandle] = None
    email_challenge: Optional[ChallengeHandle] = None
    # Display only, never branched on
    phone_channel: Optional[DeliveryChannel] = None

    kind = SessionKind.LOGIN

    def advance(self, step: LoginStep) -> None:
        _advance(self, step, LOGIN_STEP_ORDER)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.id,
            "step": self.step.value,
            "phoneAvailable": self.phone_available,
            "emailAvailable": self.email_available,
            "phoneVerified": self.phone_verified,
            "emailVerified": self.email_verified,
            "phoneChannel": self.phone_channel.value if self.phone_channel else None,
            "expiresAt": self.expires_at.isoformat(),
        }


@dataclass
class PhoneChangeSession(EphemeralSession):
    user_id: str = ""
    current_phone: str = ""
    new_phone: str = ""
    step: PhoneChangeStep = PhoneChangeStep.VERIFY_CURRENT_PHONE
    current_phone_verified: bool = False
    current_phone_attempts: int = 0
    new_phone_attempts: int = 0
    current_phone_challenge: Optional[ChallengeHandle] = None
    new_phone_challenge: Optional[ChallengeHandle] = None
    current_phone_channel: Optional[DeliveryChannel] = None
    new_phone_channel: Optional[DeliveryChannel] = None

    kind = SessionKind.PHONE_CHANGE

    def advance(self, step: PhoneChangeStep) -> None:
        _advance(self, step, PHONE_CHANGE_STEP_ORDER)

    def to_dict(self) -> Dict[str, Any]:
        channel = self.new_phone_channel or self.current_phone_channel
        return {
            "sessionId": self.id,
            "step": self.step.value,
            "currentPhoneNumber": self.current_phone,
            "newPhoneNumber": self.new_phone,
            "currentPhoneVerified": self.current_phone_verified,
            "channel": channel.value if channel else None,
            "expiresAt": self.expires_at.isoformat(),
        }


def session_window(now: datetime) -> Dict[str, datetime]:
    """created_at / expires_at pair for a session opened at `now`"""
    return {"created_at": now, "expires_at": now + timedelta(seconds=OTP_EXPIRY_SECONDS)}


def _advance(session, step, order) -> None:
    # Exactly one step forward, never backwards
    if order.index(step) != order.index(session.step) + 1:
        raise ValueError(f"Illegal step transition {session.step.value} -> {step.value}")
    session.step = step
