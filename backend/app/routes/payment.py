"""
Payment Routes - Swish payment creation, status polling, cancellation and callbacks.
"""
from fastapi import APIRouter, Depends

from app.config import get_settings
from app.dependencies import get_lifecycle
from app.exceptions import PaymentNotFoundError, PaymentValidationError
from app.schemas.schemas import (
    CallbackAck, Payment, PaymentCancelResponse, PaymentCreateRequest,
    PaymentCreateResponse, SwishCallback,
)
from app.services.lifecycle import PaymentLifecycle
from app.utils.rate_limiter import rate_limit

settings = get_settings()

router = APIRouter(prefix="/payments", tags=["Payment"])


@router.post("", response_model=PaymentCreateResponse)
def create_payment(
    payload: PaymentCreateRequest,
    lifecycle: PaymentLifecycle = Depends(get_lifecycle),
    _throttle: bool = Depends(rate_limit(
        requests=settings.CREATE_RATE_LIMIT_REQUESTS,
        window=settings.CREATE_RATE_LIMIT_WINDOW,
        scope="create-payment",
    )),
):
    """Create a Swish payment request for the payer's phone number."""
    payment = lifecycle.create_payment(
        payload.phone_number,
        payload.amount,
        message=payload.message,
        instruction_id=payload.instruction_id,
    )
    return PaymentCreateResponse(token=payment.token, provider_payment_id=payment.provider_payment_id)


@router.get("", response_model=list[Payment])
def list_payments(lifecycle: PaymentLifecycle = Depends(get_lifecycle)):
    """All stored payments, newest first (diagnostics)."""
    return lifecycle.list_payments()


@router.post("/callback", response_model=CallbackAck)
def swish_callback(
    payload: SwishCallback,
    lifecycle: PaymentLifecycle = Depends(get_lifecycle),
):
    """Receive a payment status update pushed by Swish."""
    if not payload.id:
        raise PaymentValidationError("Missing payment id")
    if not payload.status:
        raise PaymentValidationError("Missing payment status")

    try:
        payment = lifecycle.apply_callback(
            payload.id,
            payload.status,
            provider_reference=payload.payment_reference,
            error_code=payload.error_code,
            error_message=payload.error_message,
        )
    except PaymentNotFoundError:
        raise PaymentValidationError(f"Unknown payment id {payload.id}")

    return CallbackAck(status=payment.status)


@router.get("/{token}", response_model=Payment)
def get_payment_status(token: str, lifecycle: PaymentLifecycle = Depends(get_lifecycle)):
    """Current payment status; open payments are reconciled first."""
    return lifecycle.get_status(token)


@router.post("/{token}/cancel", response_model=PaymentCancelResponse)
def cancel_payment(token: str, lifecycle: PaymentLifecycle = Depends(get_lifecycle)):
    """Cancel a payment that has not reached a final status."""
    payment = lifecycle.cancel(token)
    return PaymentCancelResponse(payment=payment)
