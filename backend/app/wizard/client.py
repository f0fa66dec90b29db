"""HTTP client for the checkout API, as used by the purchase wizard."""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from app.core.errors import ERRORS_BY_CODE, NotFound, ProviderError, ValidationError

logger = logging.getLogger("campusflow.wizard")


class CheckoutClient:
    """
    Thin async wrapper over the ``/api`` routes.

    Error bodies (``{"error", "code"}``) come back as the matching
    CheckoutError subclass; transport failures become ProviderError.
    """

    def __init__(self, http: httpx.AsyncClient, prefix: str = "/api"):
        self.http = http
        self.prefix = prefix.rstrip("/")

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.http.request(method, f"{self.prefix}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ProviderError(f"Network error: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success:
            return data

        message = data.get("error") or data.get("message") or f"HTTP {response.status_code}"
        error_cls = ERRORS_BY_CODE.get(data.get("code"))
        if error_cls is None:
            if response.status_code == 404:
                error_cls = NotFound
            elif response.status_code < 500:
                error_cls = ValidationError
            else:
                error_cls = ProviderError
        raise error_cls(message)

    async def create_invoice(self, amount: Decimal, description: str, reference: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/create-invoice",
            json={"amount": str(amount), "description": description, "reference": reference},
        )

    async def generate_qr_payload(self, amount: str, reference_id: str) -> str:
        data = await self._request(
            "POST",
            "/generate-qr-payload",
            json={"amount": str(amount), "referenceId": reference_id},
        )
        return data["qrPayload"]

    async def invoice_status(self, invoice_id: str) -> str:
        data = await self._request("GET", "/invoice-status", params={"id": invoice_id})
        return data["status"]

    async def send_otp(self, phone: str) -> None:
        await self._request("POST", "/otp/send", json={"phone": phone})

    async def verify_otp(self, phone: str, otp: str) -> None:
        await self._request("POST", "/otp/verify", json={"phone": phone, "otp": otp})

    async def send_payment_instructions(self, phone: str, invoice_id: str) -> str:
        data = await self._request(
            "POST",
            "/send-payment-instructions",
            json={"phone": phone, "invoiceId": invoice_id},
        )
        return data.get("instructions", "")

    async def finalize_purchase(
        self,
        phone: str,
        otp: str,
        bundle_credits: Any,
        invoice_id: str,
        purchase_type: Optional[str] = "sms",
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/finalize-purchase",
            json={
                "phone": phone,
                "otp": otp,
                "bundleCredits": bundle_credits,
                "invoiceId": invoice_id,
                "purchaseType": purchase_type,
            },
        )
