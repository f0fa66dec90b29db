# routers/webhooks.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import logging

from app.core.dependencies import get_invoice_service
from app.core.errors import NotFound, ValidationError
from app.models.purchase_model import NaloCallback
from app.services.invoice_service import InvoiceService

router = APIRouter(tags=["Webhooks"])
logger = logging.getLogger("campusflow.webhooks")


@router.post("/nalo-callback")
async def nalo_callback(
    payload: NaloCallback,
    invoices: InvoiceService = Depends(get_invoice_service),
):
    logger.info(f"📥 Nalo callback: {payload.model_dump()}")

    if not payload.Order_id or not payload.Status:
        return JSONResponse(
            status_code=400,
            content={"Response": "ERROR", "Message": "Missing Order_id or Status"},
        )

    # Nalo's Order_id is our invoice id
    try:
        moved = await invoices.apply_provider_status(
            payload.Order_id,
            payload.Status,
            provider_invoice_no=payload.InvoiceNo,
            provider_timestamp=payload.Timestamp,
        )
    except NotFound:
        logger.warning(f"Nalo callback for unknown invoice {payload.Order_id}")
        return JSONResponse(status_code=404, content={"Response": "ERROR", "Message": "Invoice not found"})
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"Response": "ERROR", "Message": e.message})

    if not moved:
        logger.info(f"♻️ Callback already processed for {payload.Order_id}")

    # Nalo expects this exact acknowledgement
    return {"Response": "OK"}
