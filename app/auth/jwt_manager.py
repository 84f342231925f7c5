"""
JWT Token Manager for Authentication
Issues and validates the durable session token handed out after login
"""

import jwt
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import logging

from .models import DurableSession, Identity

logger = logging.getLogger(__name__)

class JWTManager:
    """
    Manages durable session JWTs
    """
    
    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24 * 7):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        # sid -> exp of tokens signed out before they expired
        self._revoked: Dict[str, int] = {}
    
    def create_session_token(self, identity: Identity) -> DurableSession:
        """
        Generate the durable session token for a logged-in user
        
        Args:
            identity: Materialized application user
            
        Returns:
            DurableSession with the signed token and its expiry
        """
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self.expire_minutes)
        payload = {
            "sub": identity.id,
            "provider_user_id": identity.provider_user_id,
            "sid": secrets.token_hex(8),
            "auth_method": "phone_email_otp",
            "iat": issued_at,
            "exp": expires_at,
            "type": "access"
        }
        
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"Generated session token for user: {identity.id}")
        return DurableSession(token=token, expires_at=expires_at)
    
    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a session token
        
        Args:
            token: JWT token string
            
        Returns:
            Decoded token payload or None if invalid
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {str(e)}")
            return None
        
        if payload.get("type") != "access" or not payload.get("sub"):
            logger.warning("Token is not an access token")
            return None
        if self.is_revoked(payload.get("sid")):
            logger.warning(f"Revoked token presented for user: {payload['sub']}")
            return None
        return payload

    def revoke(self, payload: Dict[str, Any]) -> None:
        """
        Deny a token until its own expiry
        
        Args:
            payload: Decoded payload of the token to revoke
        """
        self._purge_revoked()
        self._revoked[payload["sid"]] = int(payload["exp"])
        logger.info(f"Revoked session token {payload['sid']} for user: {payload['sub']}")

    def is_revoked(self, sid: Optional[str]) -> bool:
        return sid is not None and sid in self._revoked

    def _purge_revoked(self) -> None:
        now = int(datetime.now(timezone.utc).timestamp())
        for sid in [sid for sid, exp in self._revoked.items() if exp < now]:
            del self._revoked[sid]
