"""
Payment Lifecycle - Creation and status reconciliation for Swish payments.

A payment starts CREATED and ends in exactly one terminal status (PAID,
DECLINED, ERROR, CANCELLED). Three signals can move it there:

1. Swish callbacks, applied as soon as they arrive.
2. Status queries: when the Swish client is enabled the engine first asks
   Swish directly; a 404 from Swish means the request was cancelled or
   expired.
3. Elapsed time: a payment still open after CANCELLATION_TIMEOUT_SECONDS is
   treated as abandoned in the Swish app and marked CANCELLED, since Swish
   does not call back when the payer simply walks away.

Users can also cancel an open payment explicitly. Every write goes through
PaymentStore.update_by_provider_id, so a terminal status is never
overwritten no matter which signal arrives first.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from app.config import Settings
from app.exceptions import (
    InvalidTransitionError,
    PaymentNotFoundError,
    PaymentValidationError,
    ProviderUnavailableError,
)
from app.schemas.schemas import Payment, PaymentStatus
from app.services.payment_store import PaymentStore, UpdateOutcome
from app.services.swish_client import StatusOutcome, SwishClient
from app.utils.identifiers import (
    build_payment_request,
    generate_instruction_id,
    generate_payment_reference,
)
from app.utils.validators import is_valid_phone, normalize_phone, validate_amount, validate_message

logger = logging.getLogger(__name__)

INSTRUCTION_ID_LENGTH = 32


class PaymentLifecycle:
    """Owns every status transition of a payment."""

    def __init__(
        self,
        store: PaymentStore,
        client: SwishClient,
        settings: Settings,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.client = client
        self.settings = settings
        self.clock = clock
        self.cancellation_timeout = timedelta(seconds=settings.CANCELLATION_TIMEOUT_SECONDS)

    # ─── Creation ────────────────────────────────────────────────────

    def create_payment(
        self,
        phone_number: Optional[Union[str, int]],
        amount,
        message: Optional[str] = None,
        instruction_id: Optional[str] = None,
    ) -> Payment:
        """Validate input, create the Swish payment request and store it.

        Args:
            phone_number: Payer number in any local/international format.
            amount: Amount as string or number, at most 2 decimals.
            message: Optional message shown to the payer.
            instruction_id: Optional idempotency id. A repeated id returns
                the stored payment without calling Swish again.

        Returns:
            The stored payment, status CREATED.

        Raises:
            PaymentValidationError: bad phone number, amount or message.
            ProviderError subclasses: Swish disabled, unreachable or rejecting.
        """
        if not self.client.enabled:
            raise ProviderUnavailableError(details="Certificate configuration is missing")

        if phone_number is None or str(phone_number).strip() == "" or amount in (None, ""):
            raise PaymentValidationError(
                "Missing required fields", details={"required": ["phoneNumber", "amount"]}
            )

        payer_alias = normalize_phone(phone_number, self.settings.COUNTRY_CODE)
        if not is_valid_phone(payer_alias):
            raise PaymentValidationError(
                "Invalid phone number format. Must be 8-15 digits, "
                f"format: country code + cellphone number. Got: {payer_alias}"
            )

        canonical_amount = validate_amount(amount)
        text = validate_message(message, self.settings.PAYMENT_MESSAGE)

        if instruction_id:
            instruction_id = instruction_id.strip().upper()
            if len(instruction_id) != INSTRUCTION_ID_LENGTH or any(
                c not in "0123456789ABCDEF" for c in instruction_id
            ):
                raise PaymentValidationError("instructionId must be 32 hexadecimal characters")
            existing = self.store.get(instruction_id)
            if existing is not None:
                logger.info("Repeated create for existing payment", extra={"token": instruction_id})
                return existing
        else:
            instruction_id = generate_instruction_id()

        payment_reference = generate_payment_reference(self.settings.REFERENCE_PREFIX)
        payload = build_payment_request(
            payment_reference=payment_reference,
            payer_alias=payer_alias,
            payee_alias=self.settings.SWISH_PAYEE_ALIAS,
            amount=canonical_amount,
            currency=self.settings.CURRENCY,
            message=text,
            callback_url=self.settings.SWISH_CALLBACK_URL or None,
        )
        if not self.settings.SWISH_CALLBACK_URL:
            logger.warning("SWISH_CALLBACK_URL not set; status will rely on polling only")

        provider_payment_id = self.client.create_payment(instruction_id, payload)

        payment = self.store.create(
            token=instruction_id,
            provider_payment_id=provider_payment_id,
            payer_alias=payer_alias,
            amount=canonical_amount,
            payment_reference=payment_reference,
            currency=self.settings.CURRENCY,
        )
        logger.info(
            "Payment created",
            extra={"token": payment.token, "provider_payment_id": provider_payment_id, "status": payment.status},
        )
        return payment

    # ─── Reconciliation ─────────────────────────────────────────────

    def get_status(self, token: str) -> Payment:
        """Return the payment, resolving an open one against Swish and the clock."""
        payment = self.store.get(token)
        if payment is None:
            raise PaymentNotFoundError()

        if payment.is_terminal:
            return payment

        payment = self._refresh_from_provider(payment)
        if payment.is_terminal:
            return payment

        age = self.clock() - payment.created_at
        if age > self.cancellation_timeout:
            logger.info(
                "Payment still open after %ss, marking CANCELLED", int(age.total_seconds()),
                extra={"token": token, "provider_payment_id": payment.provider_payment_id},
            )
            payment = self._transition(payment.provider_payment_id, PaymentStatus.CANCELLED.value) or payment

        return payment

    def _refresh_from_provider(self, payment: Payment) -> Payment:
        result = self.client.check_status(payment.provider_payment_id)

        if result.outcome is StatusOutcome.UNAVAILABLE:
            return payment

        if result.outcome is StatusOutcome.ERROR:
            # Keep serving the cached record
            logger.warning(
                "Swish status check failed: %s", result.error,
                extra={"token": payment.token, "provider_payment_id": payment.provider_payment_id},
            )
            return payment

        if result.outcome is StatusOutcome.NOT_FOUND:
            status = PaymentStatus.CANCELLED.value
        else:
            status = result.status

        if status == payment.status:
            return payment

        return self._transition(
            payment.provider_payment_id,
            status,
            provider_reference=result.payment_reference,
            error_code=result.error_code,
            error_message=result.error_message,
        ) or payment

    def _transition(self, provider_payment_id: str, status: str, **details) -> Optional[Payment]:
        outcome, payment = self.store.update_by_provider_id(provider_payment_id, status, **details)
        if outcome is UpdateOutcome.APPLIED:
            logger.info(
                "Payment status changed",
                extra={"token": payment.token, "provider_payment_id": provider_payment_id, "status": status},
            )
        elif outcome is UpdateOutcome.REJECTED:
            logger.info(
                "Ignoring %s for payment already %s", status, payment.status,
                extra={"token": payment.token, "provider_payment_id": provider_payment_id},
            )
        return payment

    # ─── Callbacks & cancellation ───────────────────────────────────

    def apply_callback(
        self,
        provider_payment_id: str,
        status: str,
        provider_reference: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Payment:
        """Apply a status pushed by Swish.

        Raises:
            PaymentNotFoundError: no payment carries this Swish id.
        """
        payment = self._transition(
            provider_payment_id,
            status.upper(),
            provider_reference=provider_reference,
            error_code=error_code,
            error_message=error_message,
        )
        if payment is None:
            logger.warning("Callback for unknown payment", extra={"provider_payment_id": provider_payment_id})
            raise PaymentNotFoundError(f"Unknown payment id {provider_payment_id}")
        return payment

    def cancel(self, token: str) -> Payment:
        """Cancel an open payment on the user's request.

        Only local state changes; an in-flight Swish request is not recalled.

        Raises:
            PaymentNotFoundError: unknown token.
            InvalidTransitionError: the payment already reached a terminal status.
        """
        payment = self.store.get(token)
        if payment is None:
            raise PaymentNotFoundError()
        if payment.is_terminal:
            raise InvalidTransitionError(details={"currentStatus": payment.status})

        outcome, updated = self.store.update_by_provider_id(
            payment.provider_payment_id, PaymentStatus.CANCELLED.value
        )
        if outcome is not UpdateOutcome.APPLIED:
            # Lost a race against a callback or the timeout
            current = updated.status if updated else payment.status
            raise InvalidTransitionError(details={"currentStatus": current})

        logger.info("Payment cancelled by user", extra={"token": token})
        return updated

    def list_payments(self) -> List[Payment]:
        return self.store.list_all()
