import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.dependencies import get_invoice_service
from app.models.invoice_model import InvoiceCreate, InvoiceStatusOut
from app.services.invoice_service import InvoiceService

router = APIRouter(tags=["Invoices"])
logger = logging.getLogger("campusflow")


# ----------------------------
# 1. CREATE INVOICE
# ----------------------------
@router.post("/create-invoice", status_code=status.HTTP_200_OK)
async def create_invoice(
    payload: InvoiceCreate,
    invoices: InvoiceService = Depends(get_invoice_service),
):
    invoice = await invoices.create(
        amount=payload.amount,
        description=payload.description,
        reference=payload.reference,
    )
    return invoice.to_document()


# --------------------------------------------------------------
# 2. POLL INVOICE STATUS
# --------------------------------------------------------------
@router.get("/invoice-status", response_model=InvoiceStatusOut)
async def get_invoice_status(
    id: str | None = Query(default=None),
    invoices: InvoiceService = Depends(get_invoice_service),
):
    if not id:
        raise HTTPException(status_code=400, detail="Invoice ID is required")

    return {"status": await invoices.get_status(id)}
