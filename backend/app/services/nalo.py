# services/nalo.py
"""
Nalo PayPlus client: starts a mobile-money prompt on the customer's phone.

The final status arrives later on ``/api/nalo-callback``, keyed by the
``order_id`` sent here (our invoice id).
"""
import hashlib
import logging
import secrets
from decimal import Decimal, InvalidOperation

import httpx

from app.core.config import settings
from app.core.errors import ProviderError, ValidationError
from app.utils.phone import normalize_phone

logger = logging.getLogger("campusflow.nalo")

NALO_NETWORKS = ("MTN", "VODAFONE", "AIRTELTIGO")


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


class NaloClient:
    def __init__(
        self,
        api_url: str | None = None,
        merchant_id: str | None = None,
        username: str | None = None,
        password: str | None = None,
        callback_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url or settings.NALO_API_URL
        self.merchant_id = merchant_id if merchant_id is not None else settings.NALO_MERCHANT_ID
        self.username = username if username is not None else settings.NALO_USERNAME
        self.password = password if password is not None else settings.NALO_PASSWORD
        self.callback_url = callback_url or f"{settings.BACKEND_URL.rstrip('/')}/api/nalo-callback"
        self.timeout = timeout
        self.transport = transport

    def sign(self, key: str) -> str:
        """``secrete`` field: md5(username + key + md5(password))."""
        return _md5(f"{self.username}{key}{_md5(self.password)}")

    async def initiate_payment(
        self,
        order_id: str,
        customer_name: str,
        amount,
        item_desc: str,
        customer_number: str,
        payby: str,
    ) -> dict:
        if not self.merchant_id or not self.username:
            raise ProviderError("Nalo credentials are not configured on the server.")
        if payby not in NALO_NETWORKS:
            raise ValidationError(f"Unsupported network: {payby}")
        try:
            amount_text = str(Decimal(str(amount)).quantize(Decimal("0.01")))
        except InvalidOperation:
            raise ValidationError(f"Invalid amount: {amount}")

        key = str(1000 + secrets.randbelow(9000))
        # Field order is part of Nalo's contract
        payload = {
            "merchant_id": self.merchant_id,
            "secrete": self.sign(key),
            "key": key,
            "order_id": order_id,
            "customerName": customer_name,
            "amount": amount_text,
            "item_desc": item_desc,
            "customerNumber": normalize_phone(customer_number),
            "payby": payby,
            "callback": self.callback_url,
        }
        logger.info(f"[Nalo] Initiating payment | order={order_id} | amount={amount_text} | payby={payby}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"[Nalo] Timeout | order={order_id} | error={e}")
            raise ProviderError("Payment provider timed out")
        except httpx.RequestError as e:
            logger.error(f"[Nalo] Request error | order={order_id} | error={e}")
            raise ProviderError(f"Payment provider unreachable: {e}")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"[Nalo] Response not valid JSON | {response.text}")
            raise ProviderError("Payment provider returned an invalid response")

        if response.status_code >= 400 or data.get("Status") != "Accepted":
            logger.error(f"[Nalo] Rejected | order={order_id} | status={response.status_code} | response={data}")
            raise ProviderError(data.get("Description") or "Failed to initiate payment with Nalo")

        logger.info(f"[Nalo] ✅ Accepted | order={order_id} | response={data}")
        return data
