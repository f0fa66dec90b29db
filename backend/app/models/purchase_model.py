from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from decimal import Decimal
from typing import Literal, Optional, Union


class QrPayloadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Kept as sent: "50.00" must reach the payload as "50.00"
    amount: Union[StrictStr, StrictInt, StrictFloat]
    reference_id: str = Field(..., min_length=1, alias="referenceId")


class QrPayloadOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    qr_payload: str = Field(..., serialization_alias="qrPayload")


class OtpSendRequest(BaseModel):
    phone: str = Field(..., min_length=1)


class OtpVerifyRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    otp: str = Field(..., min_length=1)


class PaymentInstructionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone: str = Field(..., min_length=1)
    invoice_id: str = Field(..., min_length=1, alias="invoiceId")


class FinalizePurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone: str = Field(..., min_length=1)
    otp: str = Field(..., min_length=1)
    bundle_credits: Union[int, str] = Field(..., alias="bundleCredits")
    invoice_id: str = Field(..., min_length=1, alias="invoiceId")
    purchase_type: Literal["sms", "subscription"] = Field(default="sms", alias="purchaseType")


class NaloCallback(BaseModel):
    """Status push from the mobile-money provider. Field names are theirs."""
    Order_id: Optional[str] = None
    Status: Optional[str] = None
    InvoiceNo: Optional[str] = None
    Timestamp: Optional[str] = None


class NaloPaymentRequest(BaseModel):
    """Starts a mobile-money prompt. Field names match Nalo's request body."""
    order_id: str = Field(..., min_length=1)
    customerName: str = Field(default="CampusFlow User", min_length=1)
    amount: Decimal = Field(..., gt=0)
    item_desc: str = Field(..., min_length=1)
    customerNumber: str = Field(..., min_length=1)
    payby: Literal["MTN", "VODAFONE", "AIRTELTIGO"]
