"""
Stytch Identity Provider Client
OTP send/authenticate and user search/create/update over the Stytch REST API
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .constants import OTP_EXPIRY_SECONDS
from .errors import ChallengeExpired, InvalidCode, ProviderError
from .models import ChallengeHandle, DeliveryChannel, Medium, VerifiedIdentity
from .utils import mask_email, mask_phone

logger = logging.getLogger(__name__)

STYTCH_BASE_URLS = {
    "test": "https://test.stytch.com/v1",
    "live": "https://api.stytch.com/v1",
}

# Stytch answers these statuses when the submitted code does not match
INVALID_CODE_STATUSES = {400, 401, 404}


class StytchAPIError(ProviderError):
    """Non-2xx answer from Stytch"""

    def __init__(self, message: str, upstream_status: int, error_type: Optional[str] = None):
        super().__init__(message, details={"upstream_status": upstream_status, "error_type": error_type})
        self.upstream_status = upstream_status
        self.error_type = error_type or ""


class StytchClient:
    """
    Async Stytch client implementing the challenge delegate and availability
    lookup contracts

    Phone codes go out over WhatsApp first and fall back to SMS when WhatsApp
    delivery is rejected; the channel actually used is recorded on the handle.
    """

    def __init__(
        self,
        project_id: str,
        secret: str,
        environment: str = "test",
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = STYTCH_BASE_URLS.get(environment, environment)
        self.expiration_minutes = OTP_EXPIRY_SECONDS // 60
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            auth=httpx.BasicAuth(project_id, secret),
            timeout=timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Challenge delegate
    # ------------------------------------------------------------------

    async def send_challenge(self, medium: Medium, destination: str) -> ChallengeHandle:
        """
        Send an OTP to a phone number or email address

        Args:
            medium: Medium.PHONE or Medium.EMAIL
            destination: E.164 phone number or email address

        Returns:
            ChallengeHandle carrying the provider method id and channel used
        """
        if medium == Medium.EMAIL:
            result = await self._call("POST", "/otps/email/send", {
                "email": destination,
                "expiration_minutes": self.expiration_minutes,
            })
            logger.info(f"Email OTP sent to {mask_email(destination)}")
            return ChallengeHandle(
                method_id=result["email_id"],
                medium=medium,
                channel=DeliveryChannel.EMAIL,
                destination=destination,
            )

        try:
            result = await self._call("POST", "/otps/whatsapp/send", {
                "phone_number": destination,
                "expiration_minutes": self.expiration_minutes,
            })
            channel = DeliveryChannel.WHATSAPP
        except ProviderError as whatsapp_error:
            logger.warning(f"WhatsApp OTP failed for {mask_phone(destination)}, falling back to SMS: {whatsapp_error.message}")
            try:
                result = await self._call("POST", "/otps/sms/send", {
                    "phone_number": destination,
                    "expiration_minutes": self.expiration_minutes,
                })
            except ProviderError as sms_error:
                logger.error(f"SMS fallback also failed for {mask_phone(destination)}: {sms_error.message}")
                raise ProviderError(
                    "Failed to send OTP via WhatsApp or SMS",
                    details={"whatsapp": whatsapp_error.message, "sms": sms_error.message},
                ) from sms_error
            channel = DeliveryChannel.SMS

        logger.info(f"Phone OTP sent to {mask_phone(destination)} via {channel.value}")
        return ChallengeHandle(
            method_id=result["phone_id"],
            medium=medium,
            channel=channel,
            destination=destination,
        )

    async def verify_challenge(self, handle: ChallengeHandle, code: str) -> VerifiedIdentity:
        """
        Authenticate a submitted code against an issued challenge

        Raises:
            InvalidCode: the code does not match
            ChallengeExpired: the provider-side window elapsed
            ProviderError: Stytch unreachable or failing
        """
        try:
            result = await self._call("POST", "/otps/authenticate", {
                "method_id": handle.method_id,
                "code": code,
            })
        except StytchAPIError as e:
            if "expired" in e.error_type:
                raise ChallengeExpired("OTP has expired. Please request a new one.") from e
            if e.upstream_status in INVALID_CODE_STATUSES:
                raise InvalidCode("Invalid OTP") from e
            raise

        return VerifiedIdentity(provider_user_id=result.get("user_id"), method_id=handle.method_id)

    # ------------------------------------------------------------------
    # Availability lookup and provider users
    # ------------------------------------------------------------------

    async def is_available(self, medium: Medium, value: str) -> bool:
        """True when no provider user is bound to the phone number or email"""
        filter_name = "phone_number" if medium == Medium.PHONE else "email_address"
        users = await self.search_users(filter_name, value)
        return not users

    async def search_users(self, filter_name: str, value: str) -> List[Dict[str, Any]]:
        result = await self._call("POST", "/users/search", {
            "limit": 1,
            "query": {
                "operator": "AND",
                "operands": [{"filter_name": filter_name, "filter_value": [value]}],
            },
        })
        return result.get("results") or []

    async def create_user(self, phone: str, email: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"phone_number": phone}
        if email:
            payload["email"] = email
        result = await self._call("POST", "/users", payload)
        logger.info(f"Created provider user {result.get('user_id')}")
        return result.get("user") or {"user_id": result.get("user_id")}

    async def update_user_phone(self, provider_user_id: str, phone: str) -> None:
        await self._call("PUT", f"/users/{provider_user_id}", {"phone_number": phone})
        logger.info(f"Updated phone number of provider user {provider_user_id}")

    async def _call(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._http.request(method, path, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Stytch request {method} {path} failed: {str(e)}")
            raise ProviderError("Identity provider unreachable") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            raise StytchAPIError(
                body.get("error_message") or f"Stytch returned {response.status_code}",
                upstream_status=response.status_code,
                error_type=body.get("error_type"),
            )
        return body
