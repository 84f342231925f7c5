"""
Authentication Router
Sequential phone -> email OTP login, the guarded phone number change
and the signed-in session (profile, logout, token refresh)
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict
import logging

from app.auth.orchestrator import AuthOrchestrator
from app.auth.utils import mask_email, mask_phone
from app.core.auth import get_current_user, get_orchestrator, get_token_payload
from app.schemas.auth_schemas import (
    AuthResponseSchema, CompleteLoginRequest, EmailLoginRequest, ErrorResponseSchema,
    OTPVerificationRequest, PhoneChangeRequest, PhoneLoginRequest
)

logger = logging.getLogger(__name__)

# Error envelope documented for every endpoint
ERROR_RESPONSES = {
    status_code: {"model": ErrorResponseSchema}
    for status_code in (400, 401, 403, 404, 409, 410, 429, 500, 502)
}

router = APIRouter(responses=ERROR_RESPONSES)


# ----------------------------------------------------------------------
# Login
# ----------------------------------------------------------------------

@router.post("/login/phone", response_model=AuthResponseSchema)
async def start_phone_login(
    request: PhoneLoginRequest,
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Step 1: send an OTP to the phone number and open a login session
    """
    logger.info(f"Phone login requested for {mask_phone(request.phone_number)}")
    data = await orchestrator.login.start_phone_login(request.phone_number)
    channel = data.get("phoneChannel") or "sms"
    return AuthResponseSchema(message=f"OTP sent to your phone via {channel}", data=data)


@router.post("/login/phone/verify", response_model=AuthResponseSchema)
async def verify_phone_otp(
    request: OTPVerificationRequest,
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Step 2: verify the phone OTP; the next step is email input
    """
    data = await orchestrator.login.verify_phone_otp(request.session_id, request.otp)
    return AuthResponseSchema(message="Phone verified. Please enter your email.", data=data)


@router.post("/login/email", response_model=AuthResponseSchema)
async def start_email_login(
    request: EmailLoginRequest,
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Step 3: send an OTP to the email address
    """
    logger.info(f"Email step requested for {mask_email(request.email)} on session {request.session_id}")
    data = await orchestrator.login.start_email_login(request.session_id, request.email)
    return AuthResponseSchema(message="OTP sent to your email", data=data)


@router.post("/login/email/verify", response_model=AuthResponseSchema)
async def verify_email_otp(
    request: OTPVerificationRequest,
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Step 4: verify the email OTP; login can then be completed
    """
    data = await orchestrator.login.verify_email_otp(request.session_id, request.otp)
    return AuthResponseSchema(message="Email verified. Ready to complete login.", data=data)


@router.post("/login/complete", response_model=AuthResponseSchema)
async def complete_login(
    request: CompleteLoginRequest,
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Step 5: consume the session and issue the session token
    """
    result = await orchestrator.login.complete_login(request.session_id)
    return AuthResponseSchema(
        message="Login successful",
        data={
            "user": result.identity.to_dict(),
            "isNewUser": result.is_new_identity,
            "token": result.durable_session.token,
            "expiresAt": result.durable_session.expires_at.isoformat(),
        }
    )


@router.get("/login/session/{session_id}", response_model=AuthResponseSchema)
async def get_login_session(
    session_id: str,
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """Current step of a login session"""
    data = await orchestrator.login.get_login_session(session_id)
    return AuthResponseSchema(message="Login session found", data=data)


@router.delete("/login/session/{session_id}", response_model=AuthResponseSchema)
async def cancel_login(
    session_id: str,
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """Abandon a login session"""
    cancelled = await orchestrator.login.cancel_login(session_id)
    return AuthResponseSchema(message="Login session cancelled", data={"cancelled": cancelled})


# ----------------------------------------------------------------------
# Phone number change
# ----------------------------------------------------------------------

@router.post("/phone/change/start", response_model=AuthResponseSchema)
async def start_phone_change(
    request: PhoneChangeRequest,
    user_id: str = Depends(get_current_user),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Send an OTP to the current phone number to authorize the change
    """
    logger.info(f"Phone change to {mask_phone(request.new_phone_number)} requested by user {user_id}")
    data = await orchestrator.phone_change.start_phone_change(user_id, request.new_phone_number)
    return AuthResponseSchema(message="OTP sent to your current phone number", data=data)


@router.post("/phone/change/verify-old", response_model=AuthResponseSchema)
async def verify_old_phone_otp(
    request: OTPVerificationRequest,
    user_id: str = Depends(get_current_user),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Verify the current phone OTP; an OTP is then sent to the new number
    """
    data = await orchestrator.phone_change.verify_old_phone_otp(user_id, request.session_id, request.otp)
    return AuthResponseSchema(message="Current phone verified. OTP sent to your new phone number.", data=data)


@router.post("/phone/change/verify-new", response_model=AuthResponseSchema)
async def verify_new_phone_otp(
    request: OTPVerificationRequest,
    user_id: str = Depends(get_current_user),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Verify the new phone OTP and switch the account's phone number
    """
    result = await orchestrator.phone_change.verify_new_phone_otp_and_complete(
        user_id, request.session_id, request.otp
    )
    return AuthResponseSchema(
        message="Phone number changed successfully",
        data={
            "oldPhoneNumber": result.old_phone,
            "newPhoneNumber": result.new_phone,
            "changedAt": result.changed_at.isoformat(),
        }
    )


@router.delete("/phone/change/{session_id}", response_model=AuthResponseSchema)
async def cancel_phone_change(
    session_id: str,
    user_id: str = Depends(get_current_user),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """Abandon a phone change session"""
    cancelled = await orchestrator.phone_change.cancel_phone_change(user_id, session_id)
    return AuthResponseSchema(message="Phone change cancelled", data={"cancelled": cancelled})


# ----------------------------------------------------------------------
# Durable session
# ----------------------------------------------------------------------

@router.get("/me", response_model=AuthResponseSchema)
async def get_me(
    user_id: str = Depends(get_current_user),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """Profile of the signed-in user"""
    identity = await orchestrator.get_current_identity(user_id)
    return AuthResponseSchema(message="User found", data={"user": identity.to_dict()})


@router.post("/logout", response_model=AuthResponseSchema)
async def logout(
    payload: Dict[str, Any] = Depends(get_token_payload),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Sign out; the presented token is rejected from now on
    """
    await orchestrator.logout(payload)
    return AuthResponseSchema(message="Logged out successfully")


@router.post("/refresh", response_model=AuthResponseSchema)
async def refresh_token(
    payload: Dict[str, Any] = Depends(get_token_payload),
    orchestrator: AuthOrchestrator = Depends(get_orchestrator)
):
    """
    Exchange a valid token for a fresh one; the old token is revoked
    """
    durable_session = await orchestrator.refresh(payload)
    return AuthResponseSchema(
        message="Token refreshed",
        data={
            "token": durable_session.token,
            "expiresAt": durable_session.expires_at.isoformat(),
        }
    )
