"""Tests for the auth flow error hierarchy."""

import pytest

from app.auth.errors import (
    AuthenticationRequired,
    AuthFlowError,
    ChallengeExpired,
    IdentityNotFound,
    InvalidCode,
    InvalidRequest,
    InvalidStep,
    LoginCompletionFailed,
    MaxAttemptsExceeded,
    OwnershipMismatch,
    PhoneChangeFailed,
    PhoneUnavailable,
    ProviderError,
    RateLimited,
    SessionExpired,
    SessionNotFound,
)


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error_cls, status_code, error_code, restart_required",
        [
            (SessionNotFound, 404, "session_not_found", True),
            (SessionExpired, 410, "session_expired", True),
            (InvalidStep, 409, "invalid_step", False),
            (RateLimited, 429, "rate_limited", False),
            (InvalidCode, 400, "invalid_code", False),
            (ChallengeExpired, 400, "challenge_expired", False),
            (MaxAttemptsExceeded, 429, "max_attempts_exceeded", True),
            (OwnershipMismatch, 403, "ownership_mismatch", False),
            (ProviderError, 502, "provider_error", False),
            (LoginCompletionFailed, 500, "login_completion_failed", True),
            (InvalidRequest, 400, "invalid_request", False),
            (AuthenticationRequired, 401, "authentication_required", False),
            (IdentityNotFound, 404, "identity_not_found", False),
            (PhoneUnavailable, 409, "phone_unavailable", False),
            (PhoneChangeFailed, 500, "phone_change_failed", True),
        ],
    )
    def test_attributes(self, error_cls, status_code, error_code, restart_required):
        e = error_cls("boom")
        assert isinstance(e, AuthFlowError)
        assert e.status_code == status_code
        assert e.error_code == error_code
        assert e.restart_required is restart_required
        assert e.message == "boom"


class TestToDict:
    def test_basic(self):
        assert SessionNotFound("Invalid or expired session").to_dict() == {
            "success": False,
            "error": "Invalid or expired session",
            "code": "session_not_found",
            "restart_required": True,
        }

    def test_with_details(self):
        d = InvalidCode("Invalid OTP", details={"attempts_remaining": 2}).to_dict()
        assert d["details"] == {"attempts_remaining": 2}

    def test_restart_override_is_per_instance(self):
        e = ProviderError("send failed", restart_required=True)

        assert e.to_dict()["restart_required"] is True
        assert ProviderError.restart_required is False
        assert ProviderError("other").restart_required is False
