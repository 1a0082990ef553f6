"""
Diagnostics Routes - Test-support endpoints, only served when DEBUG is on.
Not part of the production API.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from app.config import get_settings
from app.dependencies import get_lifecycle
from app.schemas.schemas import CallbackAck, SimulatedCallbackRequest
from app.services.lifecycle import PaymentLifecycle
from app.utils.certificates import load_certificate_pair


def require_debug():
    if not get_settings().DEBUG:
        raise HTTPException(status_code=404, detail="Not Found")


router = APIRouter(
    prefix="/diagnostics",
    tags=["Diagnostics"],
    dependencies=[Depends(require_debug)],
    include_in_schema=False,
)


@router.get("/cert-status")
def cert_status(lifecycle: PaymentLifecycle = Depends(get_lifecycle)):
    """Which certificate material is configured, without exposing it."""
    settings = get_settings()
    pair = load_certificate_pair(settings.SWISH_CERT, settings.SWISH_KEY)

    return {
        "timestamp": datetime.utcnow().isoformat(),
        "cert_configured": bool(settings.SWISH_CERT),
        "key_configured": bool(settings.SWISH_KEY),
        "pem_valid": pair is not None,
        "certificate": pair.describe() if pair else None,
        "client_enabled": lifecycle.client.enabled,
        "callback_url": settings.SWISH_CALLBACK_URL or None,
    }


@router.post("/payments/{token}/callback", response_model=CallbackAck)
def simulate_callback(
    token: str,
    payload: SimulatedCallbackRequest,
    lifecycle: PaymentLifecycle = Depends(get_lifecycle),
):
    """Apply a fake Swish callback to a payment, addressed by our token."""
    payment = lifecycle.store.get(token)
    if payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")

    updated = lifecycle.apply_callback(payment.provider_payment_id, payload.status)
    return CallbackAck(message="Test callback processed successfully", status=updated.status)
