"""
Authentication Utilities
Identifier validation, normalisation and masking for log lines
"""

import re
import secrets
from datetime import datetime, timezone
from typing import Optional

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+[1-9]\d{7,14}$')


def format_phone(phone: str) -> str:
    """Strip formatting characters, keeping the leading +"""
    return re.sub(r'[^\d+]', '', phone or "")


def is_valid_phone(phone: str) -> bool:
    """E.164 numbers only: + followed by 8-15 digits"""
    return bool(PHONE_PATTERN.match(format_phone(phone)))


def format_email(email: str) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(format_email(email)))


def mask_phone(phone: Optional[str]) -> str:
    if not phone:
        return "undefined"
    return f"***{phone[-4:]}"


def mask_email(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return "undefined"
    return f"***@{email.split('@', 1)[1]}"


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
