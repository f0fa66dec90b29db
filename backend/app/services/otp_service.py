# services/otp_service.py
import logging

from app.core.config import settings
from app.core.errors import InvalidOtp, ProviderError
from app.models.invoice_model import Invoice
from app.services.frog import FrogClient
from app.utils.phone import normalize_phone

logger = logging.getLogger("campusflow.otp")


async def send_otp(frog: FrogClient, phone: str) -> str:
    """Issue a one-time code to ``phone``. Returns the normalized number."""
    msisdn = normalize_phone(phone)
    result = await frog.generate_otp(msisdn)
    if result.get("status") != "SUCCESS":
        raise ProviderError(result.get("message") or "Could not send OTP. Please try again.")
    logger.info(f"📲 OTP sent to {msisdn}")
    return msisdn


async def verify_otp(frog: FrogClient, phone: str, code: str) -> str:
    """Check ``code`` for ``phone``; raises InvalidOtp on a wrong or expired code."""
    msisdn = normalize_phone(phone)
    result = await frog.verify_otp(msisdn, code.strip())
    if result.get("status") != "SUCCESS":
        raise InvalidOtp()
    logger.info(f"🔓 OTP verified for {msisdn}")
    return msisdn


def payment_instructions(invoice: Invoice) -> str:
    return (
        "CampusFlow payment instructions\n"
        f"Reference : {invoice.reference}\n"
        f"Dial {invoice.dial_code} on your phone.\n"
        "- Select Option 1  (Transfer Money)\n"
        "- Select Option 1  (Mobile Money User)\n"
        f"- Enter {settings.MOMO_RECEIVER_NUMBER}  and confirm\n"
        f"- Enter amount  {invoice.amount} GHS\n"
        f"- Enter reference :  {invoice.reference}\n"
        "- Enter PIN to confirm\n"
        "After SMS confirmation return to the portal and click "
        "“I have completed the payment”."
    )


async def send_payment_instructions(frog: FrogClient, invoice: Invoice, phone: str) -> str:
    msisdn = normalize_phone(phone)
    message = payment_instructions(invoice)
    result = await frog.send_sms([msisdn], message)
    if not result.get("success"):
        raise ProviderError(result.get("error") or "Failed to send payment instructions")
    logger.info(f"✉️ Payment instructions for {invoice.id} sent to {msisdn}")
    return message
