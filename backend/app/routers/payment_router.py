# routers/payment_router.py → GH-QR payload, Nalo prompt, manual instructions, final credit
import logging
from fastapi import APIRouter, Depends

from app.core.dependencies import get_finalization_service, get_frog_client, get_invoice_service, get_nalo_client
from app.models.purchase_model import (
    FinalizePurchaseRequest,
    NaloPaymentRequest,
    PaymentInstructionsRequest,
    QrPayloadOut,
    QrPayloadRequest,
)
from app.services import gh_qr
from app.services.finalization_service import FinalizationService
from app.services.frog import FrogClient
from app.services.invoice_service import InvoiceService
from app.services.nalo import NaloClient
from app.services.otp_service import send_payment_instructions

router = APIRouter(tags=["Payments"])
logger = logging.getLogger("campusflow")


# ========================================
# GH-QR PAYLOAD
# ========================================
@router.post("/generate-qr-payload", response_model=QrPayloadOut)
async def generate_qr_payload(payload: QrPayloadRequest):
    qr_payload = gh_qr.encode(payload.amount, payload.reference_id)
    logger.info(f"🔳 GH-QR payload generated | ref={payload.reference_id}")
    return QrPayloadOut(qr_payload=qr_payload)


# ========================================
# MANUAL MOBILE-MONEY INSTRUCTIONS (SMS)
# ========================================
@router.post("/send-payment-instructions")
async def send_instructions(
    payload: PaymentInstructionsRequest,
    invoices: InvoiceService = Depends(get_invoice_service),
    frog: FrogClient = Depends(get_frog_client),
):
    invoice = await invoices.get(payload.invoice_id)
    message = await send_payment_instructions(frog, invoice, payload.phone)
    return {"success": True, "message": "Instructions sent.", "instructions": message}


# ========================================
# MOBILE-MONEY PROMPT (NALO)
# ========================================
@router.post("/initiate-nalo-payment")
async def initiate_nalo_payment(
    payload: NaloPaymentRequest,
    invoices: InvoiceService = Depends(get_invoice_service),
    nalo: NaloClient = Depends(get_nalo_client),
):
    # order_id comes back as Order_id on the callback
    invoice = await invoices.get(payload.order_id)
    return await nalo.initiate_payment(
        order_id=invoice.id,
        customer_name=payload.customerName,
        amount=payload.amount,
        item_desc=payload.item_desc,
        customer_number=payload.customerNumber,
        payby=payload.payby,
    )


# ========================================
# FINALIZE PURCHASE (OTP-GATED CREDIT)
# ========================================
@router.post("/finalize-purchase")
async def finalize_purchase(
    payload: FinalizePurchaseRequest,
    finalizer: FinalizationService = Depends(get_finalization_service),
):
    return await finalizer.finalize(
        phone=payload.phone,
        otp=payload.otp,
        bundle_credits=payload.bundle_credits,
        invoice_id=payload.invoice_id,
        purchase_type=payload.purchase_type,
    )
