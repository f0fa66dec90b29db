from pydantic import BaseModel, ConfigDict, Field
from typing import Literal, Optional
from datetime import datetime
from decimal import Decimal

InvoiceStatus = Literal["PENDING", "PAID", "FAILED", "EXPIRED"]
TERMINAL_STATUSES = ("PAID", "FAILED", "EXPIRED")


class InvoiceCreate(BaseModel):
    """Payload sent by the purchase wizard when a payment attempt starts."""
    amount: Decimal = Field(..., gt=0, description="Amount in GHS")
    description: str = Field(..., min_length=1, description="What the payment is for")
    reference: str = Field(..., min_length=1, description="Transaction reference, unique per attempt")


class Invoice(BaseModel):
    """Stored representation of one payment attempt."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    pay_token: str = Field(..., alias="payToken")

    amount: Decimal
    description: str
    reference: str
    dial_code: str = Field(..., alias="dialCode")

    status: InvoiceStatus = "PENDING"
    created_at: datetime = Field(..., alias="createdAt")
    expires_at: datetime = Field(..., alias="expiresAt")
    paid_at: Optional[datetime] = Field(default=None, alias="paidAt")

    # Provider callback details
    provider_invoice_no: Optional[str] = Field(default=None, alias="naloInvoiceNo")
    provider_status_timestamp: Optional[str] = Field(default=None, alias="naloStatusTimestamp")

    # Set once finalization has credited the billing record
    applied_at: Optional[datetime] = Field(default=None, alias="appliedAt")
    applied_credits: Optional[str] = Field(default=None, alias="appliedCredits")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class InvoiceStatusOut(BaseModel):
    status: InvoiceStatus
