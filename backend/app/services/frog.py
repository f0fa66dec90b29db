# services/frog.py
"""
Frog (Wigal) API client: one-time codes and SMS.

OTP calls answer ``{"status": "SUCCESS" | "FAILURE"}``; SMS answers
``{"success": bool, "error"?: str}``. A provider that is unreachable, times
out or answers 5xx raises ProviderError instead.
"""
import logging
import uuid
from typing import Iterable

import httpx

from app.core.config import settings
from app.core.errors import ProviderError

logger = logging.getLogger("campusflow.frog")

OTP_TEMPLATE = "Your CampusFlow verification code is %OTPCODE%. It expires in %EXPIRY% minutes."
SMS_ACCEPTED = ("ACCEPTD", "ACCEPTED", "SUCCESS")


class FrogClient:
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        username: str | None = None,
        sender_id: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.FROG_API_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.FROG_API_KEY
        self.username = username if username is not None else settings.FROG_USERNAME
        self.sender_id = sender_id or settings.FROG_SENDER_ID
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict:
        return {
            "API-KEY": self.api_key,
            "USERNAME": self.username,
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict) -> tuple[int, dict]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            logger.error(f"[Frog] Timeout | path={path} | error={e}")
            raise ProviderError("OTP/SMS provider timed out")
        except httpx.RequestError as e:
            logger.error(f"[Frog] Request error | path={path} | error={e}")
            raise ProviderError(f"OTP/SMS provider unreachable: {e}")

        logger.info(f"[Frog] {path} → {response.status_code}")

        if response.status_code >= 500:
            logger.error(f"[Frog] HTTP error {response.status_code} | {response.text}")
            raise ProviderError(f"OTP/SMS provider error ({response.status_code})")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"[Frog] Response not valid JSON | {response.text}")
            raise ProviderError("OTP/SMS provider returned an invalid response")

        return response.status_code, data

    # -------------------------------------------------------------------
    # OTP
    # -------------------------------------------------------------------

    async def generate_otp(self, phone: str) -> dict:
        payload = {
            "number": phone,
            "expiry": settings.OTP_EXPIRY_MINUTES,
            "length": settings.OTP_LENGTH,
            "messagetemplate": OTP_TEMPLATE,
            "type": "NUMERIC",
            "senderid": self.sender_id,
        }
        logger.info(f"[OTP] Generating code | phone={phone}")
        _, data = await self._post("/sms/otp/generate", payload)
        status = "SUCCESS" if data.get("status") == "SUCCESS" else "FAILURE"
        if status == "FAILURE":
            logger.warning(f"[OTP] Generation rejected | phone={phone} | response={data}")
        return {"status": status, "message": data.get("message")}

    async def verify_otp(self, phone: str, code: str) -> dict:
        logger.info(f"[OTP] Verifying code | phone={phone}")
        _, data = await self._post("/sms/otp/verify", {"otpcode": code, "number": phone})
        status = "SUCCESS" if data.get("status") == "SUCCESS" else "FAILURE"
        if status == "FAILURE":
            logger.warning(f"[OTP] Verification failed | phone={phone}")
        return {"status": status, "message": data.get("message")}

    # -------------------------------------------------------------------
    # SMS
    # -------------------------------------------------------------------

    async def send_sms(self, recipients: Iterable[str], message: str) -> dict:
        destinations = [
            {"destination": phone, "msgid": uuid.uuid4().hex[:12]}
            for phone in recipients
        ]
        if not destinations:
            return {"success": False, "error": "No recipients"}

        payload = {
            "senderid": self.sender_id,
            "destinations": destinations,
            "message": message,
            "smstype": "text",
        }
        logger.info(f"[SMS] Attempting send | recipients={len(destinations)} | chars={len(message)}")

        status_code, data = await self._post("/sms/send", payload)
        if status_code >= 400 or data.get("status") not in SMS_ACCEPTED:
            error = data.get("message") or f"SMS rejected ({status_code})"
            logger.error(f"[SMS] Rejected | response={data}")
            return {"success": False, "error": error}

        logger.info(f"[SMS] ✅ Accepted | recipients={len(destinations)}")
        return {"success": True}
