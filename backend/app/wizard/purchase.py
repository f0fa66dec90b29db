"""
Purchase wizard for SMS bundles.

Steps::

    SELECT_METHOD ──qr──────────────────────────────────► POLLING ──PAID──► SUCCESS
          │                                                   ▲
          └──momo──► ENTER_DETAILS ──otp ok──► MANUAL_INSTRUCTIONS
                     (send/verify OTP)          (user confirms payment sent)

POLLING goes to ABORTED on FAILED/EXPIRED, an unknown invoice, or when
``poll_timeout`` passes without a terminal status. ``back()`` is allowed
before POLLING and throws away the step's sub-state.

Public operations never raise CheckoutError: they return False and leave the
error in ``wizard.error`` with the wizard still in its last safe step.
"""
import asyncio
import logging
import uuid
from enum import IntEnum
from typing import Any, Callable, Dict, Optional

from app.core.config import settings
from app.core.errors import (
    CheckoutError,
    Conflict,
    NotFound,
    PaymentFailed,
    PollingTimeout,
    ValidationError,
)
from app.utils.phone import normalize_phone
from app.wizard.client import CheckoutClient
from app.wizard.intent import PurchaseIntent

logger = logging.getLogger("campusflow.wizard")

MOMO_PROVIDERS = {
    "MTN": "MTN Mobile Money",
    "VODAFONE": "Vodafone Cash",
    "AIRTELTIGO": "AirtelTigo Money",
}

BUNDLE_SELECTION = "bundle-selection"


class WizardStep(IntEnum):
    ABORTED = 0
    SELECT_METHOD = 1
    ENTER_DETAILS = 2
    MANUAL_INSTRUCTIONS = 3
    POLLING = 4
    SUCCESS = 5


def new_reference() -> str:
    return f"cf-sms-{uuid.uuid4().hex[:8]}"


class PurchaseWizard:
    def __init__(
        self,
        api: CheckoutClient,
        intent: PurchaseIntent,
        poll_interval: Optional[float] = None,
        poll_timeout: Optional[float] = None,
        reference_factory: Callable[[], str] = new_reference,
    ):
        self.api = api
        self.intent = intent
        self.poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.poll_timeout = settings.POLL_TIMEOUT_SECONDS if poll_timeout is None else poll_timeout
        self.reference_factory = reference_factory

        self.step = WizardStep.SELECT_METHOD
        self.payment_method: Optional[str] = None
        self.invoice: Optional[Dict[str, Any]] = None
        self.invoice_id: Optional[str] = None
        self.qr_payload: Optional[str] = None

        self.phone: Optional[str] = intent.phone_number
        self.provider: Optional[str] = intent.selected_provider
        self.otp_sent = False
        self.otp_verified = False
        self.instructions: Optional[str] = None

        self.polling = False
        self.error: Optional[CheckoutError] = None
        self.aborted_to: Optional[str] = None
        self.result: Optional[Dict[str, Any]] = None

        self._poll_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _fail(self, exc: CheckoutError) -> bool:
        self.error = exc
        logger.warning(f"Step {self.step.name}: {exc.code} {exc.message}")
        return False

    def _expect(self, step: WizardStep) -> bool:
        if self.step != step:
            return self._fail(ValidationError(f"Not allowed at step {self.step.name}"))
        return True

    def _enter(self, step: WizardStep) -> None:
        logger.info(f"🧭 {self.step.name} → {step.name} | invoice={self.invoice_id}")
        self.step = step
        self.intent.step = int(step)

    def _abort(self, exc: CheckoutError) -> None:
        self.error = exc
        logger.error(f"❌ Purchase aborted | invoice={self.invoice_id} | {exc.message}")
        self._enter(WizardStep.ABORTED)
        self.aborted_to = BUNDLE_SELECTION

    async def _create_invoice(self) -> Dict[str, Any]:
        invoice = await self.api.create_invoice(
            self.intent.bundle_price,
            self.intent.description,
            self.reference_factory(),
        )
        self.invoice = invoice
        self.invoice_id = invoice["id"]
        self.intent.invoice_id = invoice["id"]
        return invoice

    # ------------------------------------------------------------------
    # step 1: payment method
    # ------------------------------------------------------------------

    async def choose_qr(self) -> bool:
        if not self._expect(WizardStep.SELECT_METHOD):
            return False
        self.error = None
        self.payment_method = "qr"
        try:
            invoice = await self._create_invoice()
            self.qr_payload = await self.api.generate_qr_payload(invoice["amount"], invoice["reference"])
        except CheckoutError as e:
            self.payment_method = None
            self.qr_payload = None
            return self._fail(e)

        self.intent.payment_method = "qr"
        self._enter(WizardStep.POLLING)
        self.start_polling()
        return True

    async def choose_momo(self) -> bool:
        if not self._expect(WizardStep.SELECT_METHOD):
            return False
        self.error = None
        self.payment_method = "momo"
        try:
            await self._create_invoice()
        except CheckoutError as e:
            self.payment_method = None
            return self._fail(e)

        self.intent.payment_method = "momo"
        self._enter(WizardStep.ENTER_DETAILS)
        return True

    # ------------------------------------------------------------------
    # step 2: provider, phone, OTP
    # ------------------------------------------------------------------

    def select_provider(self, code: str) -> bool:
        if code not in MOMO_PROVIDERS:
            return self._fail(ValidationError(f"Unknown provider: {code}"))
        self.provider = code
        self.intent.selected_provider = code
        return True

    def set_phone(self, phone: str) -> bool:
        if phone != self.phone:
            # A new number needs a new code
            self.otp_sent = False
            self.otp_verified = False
        self.phone = phone
        self.intent.phone_number = phone
        return True

    async def send_otp(self) -> bool:
        if not self._expect(WizardStep.ENTER_DETAILS):
            return False
        if not self.provider:
            return self._fail(ValidationError("Please select a Mobile Money provider."))
        try:
            msisdn = normalize_phone(self.phone)
            await self.api.send_otp(msisdn)
        except CheckoutError as e:
            return self._fail(e)

        self.error = None
        self.otp_sent = True
        logger.info(f"📲 OTP requested for {msisdn}")
        return True

    async def verify_otp(self, code: str) -> bool:
        if not self._expect(WizardStep.ENTER_DETAILS):
            return False
        if not self.otp_sent:
            return self._fail(ValidationError("Request a verification code first."))
        if not code or not code.strip():
            return self._fail(ValidationError("Enter the verification code."))
        try:
            await self.api.verify_otp(normalize_phone(self.phone), code.strip())
        except CheckoutError as e:
            return self._fail(e)

        self.error = None
        self.otp_verified = True
        self._enter(WizardStep.MANUAL_INSTRUCTIONS)
        await self._deliver_instructions()
        return True

    # ------------------------------------------------------------------
    # step 3: manual instructions
    # ------------------------------------------------------------------

    async def _deliver_instructions(self) -> None:
        # SMS delivery is a courtesy; a failure is reported but does not move the wizard
        try:
            self.instructions = await self.api.send_payment_instructions(
                normalize_phone(self.phone), self.invoice_id
            )
        except CheckoutError as e:
            self.instructions = None
            self._fail(e)

    async def confirm_manual_payment(self) -> bool:
        if not self._expect(WizardStep.MANUAL_INSTRUCTIONS):
            return False
        self.error = None
        self._enter(WizardStep.POLLING)
        self.start_polling()
        return True

    # ------------------------------------------------------------------
    # step 4: polling
    # ------------------------------------------------------------------

    def start_polling(self) -> None:
        if not self.invoice_id:
            raise RuntimeError("start_polling() needs an invoice")
        self._cancel_polling()
        self.polling = True
        self._poll_task = asyncio.create_task(self._poll(self.invoice_id))

    def _cancel_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task and not task.done():
            task.cancel()
        self.polling = False

    async def _poll(self, invoice_id: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.poll_timeout
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    self._abort(PollingTimeout("Did not receive payment confirmation in time."))
                    return

                await asyncio.sleep(min(self.poll_interval, remaining))

                try:
                    status = await self.api.invoice_status(invoice_id)
                except NotFound as e:
                    self._abort(e)
                    return
                except CheckoutError as e:
                    logger.warning(f"Polling error for {invoice_id}: {e.message}")
                    continue

                if status == "PAID":
                    self.error = None
                    self._enter(WizardStep.SUCCESS)
                    return
                if status in ("FAILED", "EXPIRED"):
                    self._abort(PaymentFailed("Your payment could not be processed."))
                    return
        finally:
            if self._poll_task is asyncio.current_task():
                self.polling = False

    async def wait_for_polling(self) -> None:
        """Wait until the current polling run ends (paid, aborted or cancelled)."""
        task = self._poll_task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------

    def back(self) -> bool:
        if self.step == WizardStep.MANUAL_INSTRUCTIONS:
            self.otp_sent = False
            self.otp_verified = False
            self.instructions = None
            self._enter(WizardStep.ENTER_DETAILS)
        elif self.step == WizardStep.ENTER_DETAILS:
            self.otp_sent = False
            self.otp_verified = False
            self.payment_method = None
            self.invoice = None
            self.invoice_id = None
            self.intent.invoice_id = None
            self.intent.payment_method = None
            self._enter(WizardStep.SELECT_METHOD)
        else:
            return False
        self.error = None
        return True

    # ------------------------------------------------------------------
    # step 5: OTP-gated finalization
    # ------------------------------------------------------------------

    async def request_final_otp(self, phone: Optional[str] = None) -> bool:
        if not self._expect(WizardStep.SUCCESS):
            return False
        try:
            await self.api.send_otp(normalize_phone(phone or self.phone))
        except CheckoutError as e:
            return self._fail(e)
        self.error = None
        return True

    async def finalize(self, otp: str, phone: Optional[str] = None, purchase_type: str = "sms") -> bool:
        if self.step != WizardStep.SUCCESS:
            return self._fail(Conflict("Payment has not been confirmed yet."))
        try:
            self.result = await self.api.finalize_purchase(
                phone=normalize_phone(phone or self.phone),
                otp=otp,
                bundle_credits=self.intent.bundle_credits,
                invoice_id=self.invoice_id,
                purchase_type=purchase_type,
            )
        except CheckoutError as e:
            return self._fail(e)

        self.error = None
        logger.info(f"🎉 Purchase applied | invoice={self.invoice_id} | {self.result}")
        return True

    # ------------------------------------------------------------------
    # persistence / teardown
    # ------------------------------------------------------------------

    def to_token(self) -> str:
        return self.intent.to_token()

    @classmethod
    async def resume(cls, api: CheckoutClient, token: str, **kwargs) -> "PurchaseWizard":
        """
        Rebuild a wizard from ``to_token()`` output after a reload.

        OTP state is never carried over, so steps 2 and 3 resume at step 2.
        An attempt that was polling starts polling again.
        """
        intent = PurchaseIntent.from_token(token)
        wizard = cls(api, intent, **kwargs)
        wizard.payment_method = intent.payment_method
        wizard.invoice_id = intent.invoice_id

        step = WizardStep(intent.step)
        if step >= WizardStep.POLLING and intent.invoice_id:
            wizard._enter(WizardStep.POLLING)
            wizard.start_polling()
        elif step >= WizardStep.ENTER_DETAILS and intent.invoice_id:
            wizard._enter(WizardStep.ENTER_DETAILS)
        else:
            wizard.payment_method = None
            wizard.invoice_id = None
            wizard._enter(WizardStep.SELECT_METHOD)
        return wizard

    async def close(self) -> None:
        task = self._poll_task
        self._cancel_polling()
        if task:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.debug(f"Wizard closed | invoice={self.invoice_id} | step={self.step.name}")

    async def __aenter__(self) -> "PurchaseWizard":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
