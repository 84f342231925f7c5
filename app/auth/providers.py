"""
Collaborator contracts consumed by the login and phone change flows
The flows depend on these protocols, never on a concrete provider
"""

from typing import Optional, Protocol

from .models import (
    ChallengeHandle,
    DurableSession,
    Identity,
    Medium,
    VerifiedIdentity,
)


class ChallengeDelegate(Protocol):
    async def send_challenge(self, medium: Medium, destination: str) -> ChallengeHandle: ...

    async def verify_challenge(self, handle: ChallengeHandle, code: str) -> VerifiedIdentity: ...


class AvailabilityLookup(Protocol):
    async def is_available(self, medium: Medium, value: str) -> bool: ...


class IdentityMaterializer(Protocol):
    async def get_identity(self, user_id: str) -> Optional[Identity]: ...

    async def create_or_get_identity(self, phone: str, email: str) -> Identity: ...

    async def issue_durable_session(self, identity: Identity) -> DurableSession: ...

    async def update_phone(self, user_id: str, new_phone: str) -> None: ...
