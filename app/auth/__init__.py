"""
Authentication module for the wallet backend
Phone and email OTP login, guarded phone number change, and session tokens
"""

from .errors import AuthFlowError, register_error_handlers
from .jwt_manager import JWTManager
from .login_flow import SequentialLoginFlow
from .orchestrator import AuthOrchestrator
from .phone_change_flow import PhoneChangeFlow
from .rate_limiter import RateLimiter
from .session_store import SessionStore, SessionSweeper

__all__ = [
    'AuthFlowError',
    'AuthOrchestrator',
    'JWTManager',
    'PhoneChangeFlow',
    'RateLimiter',
    'SequentialLoginFlow',
    'SessionStore',
    'SessionSweeper',
    'register_error_handlers',
]
