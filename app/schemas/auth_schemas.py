"""
Authentication schemas for the OTP login and phone change endpoints
Request bodies use the camelCase names the mobile client sends
"""

from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Any, Dict, Optional
import re

REQUEST_MODEL_CONFIG = {"populate_by_name": True}


def _clean_otp(v: str) -> str:
    # Remove spaces and dashes
    cleaned = v.strip().replace(' ', '').replace('-', '')
    if not re.match(r'^\d{6}$', cleaned):
        raise ValueError('OTP must be exactly 6 digits')
    return cleaned


def _clean_phone(v: str) -> str:
    cleaned = re.sub(r'[^\d+]', '', v)
    if not cleaned:
        raise ValueError('Phone number is required')
    return cleaned


class PhoneLoginRequest(BaseModel):
    """Step 1 of login"""
    phone_number: str = Field(..., alias="phoneNumber", description="Phone number in international format")

    @field_validator('phone_number')
    @classmethod
    def validate_phone_number(cls, v):
        return _clean_phone(v)

    model_config = {
        **REQUEST_MODEL_CONFIG,
        "json_schema_extra": {
            "example": {"phoneNumber": "+14155550123"}
        }
    }


class OTPVerificationRequest(BaseModel):
    """Code submission for any OTP step"""
    session_id: str = Field(..., alias="sessionId", min_length=1, description="Session identifier")
    otp: str = Field(..., description="6-digit OTP code")

    @field_validator('otp')
    @classmethod
    def validate_otp(cls, v):
        return _clean_otp(v)

    model_config = {
        **REQUEST_MODEL_CONFIG,
        "json_schema_extra": {
            "example": {"sessionId": "Yb3kQ0x8...", "otp": "123456"}
        }
    }


class EmailLoginRequest(BaseModel):
    """Step 3 of login"""
    session_id: str = Field(..., alias="sessionId", min_length=1, description="Session identifier")
    email: EmailStr = Field(..., description="Email address")

    model_config = {
        **REQUEST_MODEL_CONFIG,
        "json_schema_extra": {
            "example": {"sessionId": "Yb3kQ0x8...", "email": "user@example.com"}
        }
    }


class CompleteLoginRequest(BaseModel):
    session_id: str = Field(..., alias="sessionId", min_length=1, description="Session identifier")

    model_config = REQUEST_MODEL_CONFIG


class PhoneChangeRequest(BaseModel):
    """Start of a phone number change"""
    new_phone_number: str = Field(..., alias="newPhoneNumber", description="New phone number in international format")

    @field_validator('new_phone_number')
    @classmethod
    def validate_new_phone_number(cls, v):
        return _clean_phone(v)

    model_config = {
        **REQUEST_MODEL_CONFIG,
        "json_schema_extra": {
            "example": {"newPhoneNumber": "+14155550199"}
        }
    }


class AuthResponseSchema(BaseModel):
    """Success envelope shared by every auth endpoint"""
    success: bool = Field(True, description="Request success status")
    message: str = Field(..., description="Response message")
    data: Optional[Dict[str, Any]] = Field(None, description="Step result")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": True,
                "message": "OTP sent to your phone",
                "data": {
                    "sessionId": "Yb3kQ0x8...",
                    "step": "phone_verification",
                    "phoneAvailable": True,
                    "emailAvailable": None,
                    "phoneVerified": False,
                    "emailVerified": False,
                    "phoneChannel": "whatsapp",
                    "expiresAt": "2025-01-01T12:05:00+00:00"
                }
            }
        }
    }


class ErrorResponseSchema(BaseModel):
    """Error envelope produced by the auth error handler"""
    success: bool = Field(False, description="Always false")
    error: str = Field(..., description="Human readable error")
    code: str = Field(..., description="Machine readable error code")
    restart_required: bool = Field(False, description="Whether the flow must be started again")
    details: Optional[Dict[str, Any]] = Field(None, description="Extra context such as attempts_remaining or retry_after")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "Invalid OTP",
                "code": "invalid_code",
                "restart_required": False,
                "details": {"attempts_remaining": 3}
            }
        }
    }
