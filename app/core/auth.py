from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.auth.errors import AuthenticationRequired
from app.auth.orchestrator import AuthOrchestrator

# JWT token scheme; missing headers are reported through AuthenticationRequired
security = HTTPBearer(auto_error=False)


def get_orchestrator(request: Request) -> AuthOrchestrator:
    """The orchestrator built at startup"""
    return request.app.state.orchestrator


async def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Decode the bearer session token; expired, revoked or forged tokens are rejected"""
    if credentials is None:
        raise AuthenticationRequired("Missing bearer token")

    payload = orchestrator.jwt_manager.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationRequired("Could not validate credentials")

    return payload


async def get_current_user(payload: Dict[str, Any] = Depends(get_token_payload)) -> str:
    """Get the id of the user the bearer session token was issued to"""
    return payload["sub"]
