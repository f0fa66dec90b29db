from fastapi import APIRouter, Depends

from app.core.dependencies import get_frog_client
from app.models.purchase_model import OtpSendRequest, OtpVerifyRequest
from app.services.frog import FrogClient
from app.services.otp_service import send_otp, verify_otp

router = APIRouter(prefix="/otp", tags=["OTP"])


@router.post("/send")
async def send_code(payload: OtpSendRequest, frog: FrogClient = Depends(get_frog_client)):
    await send_otp(frog, payload.phone)
    return {"success": True, "message": "OTP sent."}


@router.post("/verify")
async def verify_code(payload: OtpVerifyRequest, frog: FrogClient = Depends(get_frog_client)):
    await verify_otp(frog, payload.phone, payload.otp)
    return {"verified": True}
