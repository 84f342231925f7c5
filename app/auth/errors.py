"""
Authentication flow errors
Every failure a step can raise, with its HTTP mapping and whether the
caller has to restart the whole flow
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AuthFlowError(Exception):
    """Base error for the OTP login and phone change flows"""

    status_code: int = 500
    error_code: str = "auth_error"
    restart_required: bool = False

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        restart_required: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if restart_required is not None:
            self.restart_required = restart_required

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.error_code,
            "restart_required": self.restart_required,
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InvalidRequest(AuthFlowError):
    status_code = 400
    error_code = "invalid_request"


class AuthenticationRequired(AuthFlowError):
    status_code = 401
    error_code = "authentication_required"


class SessionNotFound(AuthFlowError):
    status_code = 404
    error_code = "session_not_found"
    restart_required = True


class SessionExpired(AuthFlowError):
    status_code = 410
    error_code = "session_expired"
    restart_required = True


class InvalidStep(AuthFlowError):
    status_code = 409
    error_code = "invalid_step"


class RateLimited(AuthFlowError):
    status_code = 429
    error_code = "rate_limited"


class InvalidCode(AuthFlowError):
    status_code = 400
    error_code = "invalid_code"


class ChallengeExpired(AuthFlowError):
    status_code = 400
    error_code = "challenge_expired"


class MaxAttemptsExceeded(AuthFlowError):
    status_code = 429
    error_code = "max_attempts_exceeded"
    restart_required = True


class OwnershipMismatch(AuthFlowError):
    status_code = 403
    error_code = "ownership_mismatch"


class ProviderError(AuthFlowError):
    status_code = 502
    error_code = "provider_error"


class IdentityNotFound(AuthFlowError):
    status_code = 404
    error_code = "identity_not_found"


class PhoneUnavailable(AuthFlowError):
    status_code = 409
    error_code = "phone_unavailable"


class LoginCompletionFailed(AuthFlowError):
    status_code = 500
    error_code = "login_completion_failed"
    restart_required = True


class PhoneChangeFailed(AuthFlowError):
    status_code = 500
    error_code = "phone_change_failed"
    restart_required = True


def register_error_handlers(app: FastAPI) -> None:
    """Convert AuthFlowError subclasses and body validation failures into JSON error responses"""

    @app.exception_handler(AuthFlowError)
    async def auth_flow_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [
            {"field": ".".join(str(part) for part in error["loc"][1:]), "message": error["msg"]}
            for error in exc.errors()
        ]
        error = InvalidRequest("Invalid request body", details={"fields": fields})
        return JSONResponse(status_code=error.status_code, content=error.to_dict())
