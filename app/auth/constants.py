"""
Authentication protocol constants
Fixed for the whole system, not tunable at runtime
"""

OTP_EXPIRY_SECONDS = 5 * 60
MAX_OTP_ATTEMPTS = 5

# 3 challenge issuances per 5 minute window
OTP_RATE_LIMIT = 3
RATE_LIMIT_WINDOW_SECONDS = 5 * 60

SESSION_CLEANUP_INTERVAL_SECONDS = 5 * 60

PHONE_CHANGE_RATE_LIMIT_PREFIX = "phone_change"
