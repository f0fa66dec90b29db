"""Purchase intent: what the user is buying, plus where the wizard got to."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Mapping, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from app.core.config import settings
from app.core.errors import ValidationError


class PurchaseIntent(BaseModel):
    bundle_name: str = Field(..., min_length=1)
    bundle_credits: int = Field(..., gt=0)
    bundle_price: Decimal = Field(..., gt=0)

    phone_number: Optional[str] = None
    selected_provider: Optional[str] = None
    otp: Optional[str] = None
    step: int = 1
    payment_method: Optional[str] = None
    invoice_id: Optional[str] = None

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "PurchaseIntent":
        """Build from the purchase page's ``bundle``/``credits``/``price`` query parameters."""
        missing = [k for k in ("bundle", "credits", "price") if not params.get(k)]
        if missing:
            raise ValidationError("No bundle selected")
        try:
            return cls(
                bundle_name=params["bundle"],
                bundle_credits=params["credits"],
                bundle_price=params["price"],
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid bundle parameters: {e.errors()[0]['msg']}")

    @property
    def description(self) -> str:
        return f"{self.bundle_credits} SMS Credits ({self.bundle_name})"

    # ------------------------------------------------------------------
    # Restartable token (survives a page reload)
    # ------------------------------------------------------------------

    def to_token(self, secret: Optional[str] = None, expires_minutes: Optional[float] = None) -> str:
        """
        Signed JWT carrying the intent. The OTP never leaves the client.

        Lifetime defaults to the invoice TTL plus the polling window, after
        which there is nothing left to resume.
        """
        if expires_minutes is None:
            expires_minutes = settings.INVOICE_TTL_MINUTES + settings.POLL_TIMEOUT_SECONDS / 60
        claims = self.model_dump(mode="json", exclude={"otp"})
        claims["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
        return jwt.encode(claims, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @classmethod
    def from_token(cls, token: str, secret: Optional[str] = None) -> "PurchaseIntent":
        try:
            claims = jwt.decode(token, secret or settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except ExpiredSignatureError:
            raise ValidationError("Purchase token has expired")
        except JWTError:
            raise ValidationError("Invalid purchase token")

        claims.pop("exp", None)
        try:
            return cls(**claims)
        except PydanticValidationError:
            raise ValidationError("Invalid purchase token")
