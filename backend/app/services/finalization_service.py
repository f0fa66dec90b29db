# services/finalization_service.py
import logging
from datetime import datetime, timezone
from typing import Union

from app.core.config import settings
from app.core.errors import Conflict, NotFound, ValidationError
from app.core.store import DocumentStore
from app.services.frog import FrogClient
from app.services.invoice_service import INVOICES
from app.services.otp_service import verify_otp

logger = logging.getLogger("campusflow.finalize")

PURCHASE_TYPES = ("sms", "subscription")


def _parse_credits(bundle_credits: Union[int, str], purchase_type: str) -> Union[int, str]:
    if purchase_type == "subscription":
        plan = str(bundle_credits).strip()
        if not plan:
            raise ValidationError("bundleCredits is required")
        return plan

    if isinstance(bundle_credits, bool):
        raise ValidationError("bundleCredits must be a positive whole number")
    try:
        credits = int(str(bundle_credits).strip())
    except ValueError:
        raise ValidationError("bundleCredits must be a positive whole number")
    if credits <= 0:
        raise ValidationError("bundleCredits must be a positive whole number")
    return credits


class FinalizationService:
    """
    Applies a paid purchase to the tenant's billing record.

    The OTP is checked before anything is read for writing. The invoice
    check, the balance read-modify-write and the invoice's "applied" marker
    are one store transaction: concurrent purchases each land exactly once,
    and an invoice can only ever be applied once.
    """

    def __init__(
        self,
        store: DocumentStore,
        frog: FrogClient,
        billing_collection: str | None = None,
        billing_document: str | None = None,
    ):
        self.store = store
        self.frog = frog
        self.billing_collection = billing_collection or settings.BILLING_COLLECTION
        self.billing_document = billing_document or settings.BILLING_DOCUMENT

    async def finalize(
        self,
        phone: str,
        otp: str,
        bundle_credits: Union[int, str],
        invoice_id: str,
        purchase_type: str = "sms",
    ) -> dict:
        if purchase_type not in PURCHASE_TYPES:
            raise ValidationError(f"Unknown purchaseType: {purchase_type}")
        if not invoice_id:
            raise ValidationError("invoiceId is required")
        credits = _parse_credits(bundle_credits, purchase_type)

        # 1. OTP first; nothing below runs on a bad code
        await verify_otp(self.frog, phone, otp)

        # 2. Billing update + invoice marker in one transaction
        applied_at = datetime.now(timezone.utc).isoformat()
        col, doc_id = self.billing_collection, self.billing_document

        def txn(tx):
            invoice = tx.get(INVOICES, invoice_id)
            if invoice is None:
                raise NotFound("Invoice not found")
            if invoice.get("status") != "PAID":
                raise Conflict("Invoice has not been paid")
            if invoice.get("appliedAt"):
                raise Conflict("Purchase already applied for this invoice")

            billing = tx.get(col, doc_id)
            if purchase_type == "subscription":
                update = {"currentPlan": credits}
            else:
                current = int((billing or {}).get("smsBalance") or 0)
                update = {"smsBalance": current + credits}

            if billing is None:
                tx.set(col, doc_id, update)
            else:
                tx.update(col, doc_id, update)

            tx.update(INVOICES, invoice_id, {"appliedAt": applied_at, "appliedCredits": str(credits)})
            return update

        update = await self.store.run_transaction(txn)
        logger.info(f"💳 Applied {purchase_type} purchase for {invoice_id} | {update}")

        result = {"success": True, "message": "Purchase confirmed and bundle applied."}
        result.update(update)
        return result
