"""
Pydantic Schemas - Payment record and request/response models.
Wire format is camelCase, matching the Swish API and the frontend.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class PaymentStatus(str, Enum):
    CREATED = "CREATED"
    PAID = "PAID"
    DECLINED = "DECLINED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({
    PaymentStatus.PAID.value,
    PaymentStatus.DECLINED.value,
    PaymentStatus.ERROR.value,
    PaymentStatus.CANCELLED.value,
})


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ──────────────── Payment record ────────────────

class Payment(CamelModel):
    token: str
    provider_payment_id: str
    status: str = PaymentStatus.CREATED.value   # open set: unknown provider statuses pass through
    payer_alias: str
    amount: str
    currency: str = "SEK"
    payment_reference: str
    provider_reference: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)


# ──────────────── Create ────────────────

class PaymentCreateRequest(CamelModel):
    phone_number: Optional[Union[str, int]] = Field(None, description="Payer mobile number, local or international")
    amount: Optional[Union[str, int, float]] = Field(None, description="Amount, at most 2 decimals")
    message: Optional[str] = Field(None, description="Message shown in the Swish app")
    instruction_id: Optional[str] = Field(
        None, description="Idempotency id (32 uppercase hex chars); generated when omitted"
    )


class PaymentCreateResponse(CamelModel):
    token: str
    provider_payment_id: str
    status: str = "created"


# ──────────────── Cancel ────────────────

class PaymentCancelResponse(BaseModel):
    message: str = "Payment cancelled successfully"
    payment: Payment


# ──────────────── Callback ────────────────

class SwishCallback(CamelModel):
    """Body Swish POSTs to callbackUrl. Unknown fields are ignored."""

    id: Optional[str] = None
    payee_payment_reference: Optional[str] = None
    payment_reference: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[Union[str, float]] = None
    currency: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    date_paid: Optional[str] = None


class CallbackAck(BaseModel):
    message: str = "Callback processed successfully"
    status: str


class SimulatedCallbackRequest(BaseModel):
    status: str = PaymentStatus.PAID.value


# ──────────────── Health ────────────────

class HealthResponse(BaseModel):
    status: str
    swish_api: str
    payment_store: str
    environment: str
    uptime_seconds: float
    version: str
