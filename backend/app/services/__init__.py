from app.services.payment_store import PaymentStore, InMemoryPaymentStore, SqlPaymentStore, UpdateOutcome
from app.services.swish_client import SwishClient, StatusCheck, StatusOutcome
from app.services.lifecycle import PaymentLifecycle

__all__ = [
    "PaymentStore", "InMemoryPaymentStore", "SqlPaymentStore", "UpdateOutcome",
    "SwishClient", "StatusCheck", "StatusOutcome",
    "PaymentLifecycle",
]
