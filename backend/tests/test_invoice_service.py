import asyncio
from decimal import Decimal

import pytest

from app.core.errors import NotFound, ValidationError
from app.services.invoice_service import INVOICES, InvoiceService
from app.services.settlement import SettlementScheduler


def test_create_stores_pending_invoice(store):
    async def scenario():
        service = InvoiceService(store)
        invoice = await service.create(Decimal("20.00"), "500 SMS Credits (Starter)", "cf-sms-abc12345")
        doc = await store.get(INVOICES, invoice.id)
        return invoice, doc, await service.get_status(invoice.id)

    invoice, doc, status = asyncio.run(scenario())

    assert invoice.id.startswith("inv_")
    assert status == "PENDING"
    assert doc["amount"] == "20.00"
    assert doc["dialCode"] == "*170#"
    assert doc["reference"] == "cf-sms-abc12345"
    assert doc["payToken"]
    assert doc["expiresAt"] > doc["createdAt"]


def test_unknown_invoice_raises_not_found(store):
    with pytest.raises(NotFound):
        asyncio.run(InvoiceService(store).get_status("inv_missing"))


def test_mark_paid_only_moves_once(store):
    async def scenario():
        service = InvoiceService(store)
        invoice = await service.create(Decimal("5"), "d", "r")
        first = await service.mark_paid(invoice.id)
        second = await service.mark_paid(invoice.id)
        return first, second, await store.get(INVOICES, invoice.id)

    first, second, doc = asyncio.run(scenario())

    assert first is True
    assert second is False
    assert doc["status"] == "PAID"
    assert doc["paidAt"]


def test_settled_invoice_ignores_later_status(store):
    async def scenario():
        service = InvoiceService(store)
        invoice = await service.create(Decimal("5"), "d", "r")
        await service.mark_paid(invoice.id)
        moved = await service.apply_provider_status(invoice.id, "FAILED")
        return moved, await service.get_status(invoice.id)

    moved, status = asyncio.run(scenario())

    assert moved is False
    assert status == "PAID"


def test_provider_status_is_recorded(store):
    async def scenario():
        service = InvoiceService(store)
        invoice = await service.create(Decimal("5"), "d", "r")
        await service.apply_provider_status(invoice.id, "expired", provider_invoice_no="NL-9", provider_timestamp="2024-01-01 10:00")
        return await store.get(INVOICES, invoice.id)

    doc = asyncio.run(scenario())

    assert doc["status"] == "EXPIRED"
    assert doc["naloInvoiceNo"] == "NL-9"
    assert doc["naloStatusTimestamp"] == "2024-01-01 10:00"
    assert doc["paidAt"] is None


@pytest.mark.parametrize("status", ["PENDING", "REFUNDED", ""])
def test_unsupported_provider_status(store, status):
    async def scenario():
        service = InvoiceService(store)
        invoice = await service.create(Decimal("5"), "d", "r")
        await service.apply_provider_status(invoice.id, status)

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_simulated_settlement_marks_paid(store):
    async def scenario():
        service = InvoiceService(store, SettlementScheduler(delay_seconds=0.01))
        invoice = await service.create(Decimal("5"), "d", "r")
        before = await service.get_status(invoice.id)
        await asyncio.sleep(0.2)
        return before, await service.get_status(invoice.id)

    before, after = asyncio.run(scenario())

    assert before == "PENDING"
    assert after == "PAID"


def test_provider_status_cancels_simulated_settlement(store):
    async def scenario():
        scheduler = SettlementScheduler(delay_seconds=0.05)
        service = InvoiceService(store, scheduler)
        invoice = await service.create(Decimal("5"), "d", "r")
        assert scheduler.pending() == 1
        await service.apply_provider_status(invoice.id, "FAILED")
        pending = scheduler.pending()
        await asyncio.sleep(0.15)
        return pending, await service.get_status(invoice.id)

    pending, status = asyncio.run(scenario())

    assert pending == 0
    assert status == "FAILED"


def test_scheduler_shutdown_cancels_pending(store):
    async def scenario():
        scheduler = SettlementScheduler(delay_seconds=10)
        service = InvoiceService(store, scheduler)
        await service.create(Decimal("5"), "d", "r")
        await service.create(Decimal("6"), "d", "r2")
        before = scheduler.pending()
        await scheduler.shutdown()
        return before, scheduler.pending()

    assert asyncio.run(scenario()) == (2, 0)
