# services/invoice_service.py
import logging
import secrets
import uuid
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Optional

from app.core.config import settings
from app.core.errors import NotFound, ValidationError
from app.core.store import DocumentStore
from app.models.invoice_model import Invoice, InvoiceStatus, TERMINAL_STATUSES
from app.services.settlement import SettlementScheduler

logger = logging.getLogger("campusflow.invoices")

INVOICES = "invoices"


class InvoiceService:
    """
    Owns invoice status. Everything that moves an invoice out of PENDING
    goes through a store transaction that re-reads the current status, so a
    late timer or a replayed callback never overwrites a settled invoice.
    """

    def __init__(self, store: DocumentStore, scheduler: Optional[SettlementScheduler] = None):
        self.store = store
        self.scheduler = scheduler

    async def create(self, amount: Decimal, description: str, reference: str) -> Invoice:
        now = datetime.now(timezone.utc)
        invoice = Invoice(
            id=f"inv_{uuid.uuid4().hex[:8]}",
            payToken=secrets.token_urlsafe(16),
            amount=amount,
            description=description,
            reference=reference,
            dialCode=settings.MOMO_DIAL_CODE,
            status="PENDING",
            createdAt=now,
            expiresAt=now + timedelta(minutes=settings.INVOICE_TTL_MINUTES),
        )

        await self.store.create(INVOICES, invoice.to_document(), doc_id=invoice.id)
        logger.info(f"🧾 Created invoice {invoice.id} | GHS {invoice.amount} | ref={reference} | PENDING")

        if self.scheduler:
            self.scheduler.schedule(invoice.id, self.mark_paid)

        return invoice

    async def get(self, invoice_id: str) -> Invoice:
        doc = await self.store.get(INVOICES, invoice_id)
        if doc is None:
            raise NotFound("Invoice not found")
        return Invoice(**doc)

    async def get_status(self, invoice_id: str) -> InvoiceStatus:
        invoice = await self.get(invoice_id)
        logger.debug(f"Polling status for invoice {invoice_id}: {invoice.status}")
        return invoice.status

    async def mark_paid(self, invoice_id: str) -> bool:
        """Simulated settlement. Returns True only for the call that moved the invoice."""
        return await self._transition(invoice_id, "PAID")

    async def apply_provider_status(
        self,
        invoice_id: str,
        status: str,
        provider_invoice_no: Optional[str] = None,
        provider_timestamp: Optional[str] = None,
    ) -> bool:
        status = (status or "").strip().upper()
        if status not in TERMINAL_STATUSES:
            raise ValidationError(f"Unsupported invoice status: {status or 'empty'}")

        extra = {}
        if provider_invoice_no is not None:
            extra["naloInvoiceNo"] = provider_invoice_no
        if provider_timestamp is not None:
            extra["naloStatusTimestamp"] = provider_timestamp

        moved = await self._transition(invoice_id, status, extra)
        if moved and self.scheduler:
            # Provider got there first; the simulated timer has nothing left to do
            self.scheduler.cancel(invoice_id)
        return moved

    async def _transition(self, invoice_id: str, status: str, extra: Optional[dict] = None) -> bool:
        now = datetime.now(timezone.utc)

        def txn(tx):
            doc = tx.get(INVOICES, invoice_id)
            if doc is None:
                raise NotFound("Invoice not found")
            current = doc.get("status")
            if current != "PENDING":
                return current, False

            update = {"status": status, **(extra or {})}
            if status == "PAID":
                update["paidAt"] = now.isoformat()
            tx.update(INVOICES, invoice_id, update)
            return current, True

        previous, moved = await self.store.run_transaction(txn)
        if moved:
            logger.info(f"✅ Invoice {invoice_id}: {previous} → {status}")
        else:
            logger.info(f"♻️ Invoice {invoice_id} already {previous}; {status} ignored")
        return moved
