# core/errors.py
"""
Error taxonomy for the payment intake flow.

Services raise these; main.py turns them into ``{"error", "code"}`` JSON
bodies and the wizard's client turns such bodies back into exceptions.
"""


class CheckoutError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(CheckoutError):
    """Missing or malformed request fields."""
    status_code = 400
    code = "validation_error"


class InvalidArgument(ValidationError):
    """A value the TLV encoder cannot represent."""
    code = "invalid_argument"


class InvalidOtp(CheckoutError):
    status_code = 400
    code = "invalid_otp"

    def __init__(self, message: str = "Invalid OTP"):
        super().__init__(message)


class NotFound(CheckoutError):
    status_code = 404
    code = "not_found"


class Conflict(CheckoutError):
    status_code = 409
    code = "conflict"


class ProviderError(CheckoutError):
    """Upstream OTP/SMS/payment provider failed or was unreachable."""
    status_code = 502
    code = "provider_error"


class PollingTimeout(CheckoutError):
    status_code = 408
    code = "timeout"


class PaymentFailed(CheckoutError):
    """The invoice settled as FAILED or EXPIRED."""
    status_code = 402
    code = "payment_failed"


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (ValidationError, InvalidArgument, InvalidOtp, NotFound, Conflict, ProviderError, PollingTimeout, PaymentFailed)
}
