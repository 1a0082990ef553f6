"""
Payment Store - Where payment records live between creation and completion.

PaymentStore is the interface the lifecycle engine talks to. The default
InMemoryPaymentStore keeps records for the lifetime of the process;
SqlPaymentStore persists them through SQLAlchemy. Both enforce the
forward-only status rule inside update_by_provider_id, which is the only
concurrency guard the service relies on.
"""
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import sessionmaker

from app.exceptions import DuplicatePaymentError
from app.models.payment import PaymentRecord
from app.schemas.schemas import Payment, PaymentStatus, is_terminal

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class UpdateOutcome(str, Enum):
    APPLIED = "applied"        # status changed
    UNCHANGED = "unchanged"    # same status re-applied, no-op
    REJECTED = "rejected"      # record already terminal
    NOT_FOUND = "not_found"


def next_state(current: str, new: str) -> UpdateOutcome:
    """Forward-only transition rule shared by every backend."""
    if current == new:
        return UpdateOutcome.UNCHANGED
    if is_terminal(current):
        return UpdateOutcome.REJECTED
    return UpdateOutcome.APPLIED


class PaymentStore:
    """Interface for payment storage backends."""

    name = "abstract"

    def create(
        self,
        token: str,
        provider_payment_id: str,
        payer_alias: str,
        amount: str,
        payment_reference: str,
        currency: str = "SEK",
    ) -> Payment:
        raise NotImplementedError

    def get(self, token: str) -> Optional[Payment]:
        raise NotImplementedError

    def get_by_provider_id(self, provider_payment_id: str) -> Optional[Payment]:
        raise NotImplementedError

    def update_by_provider_id(
        self,
        provider_payment_id: str,
        status: str,
        provider_reference: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Tuple[UpdateOutcome, Optional[Payment]]:
        raise NotImplementedError

    def list_all(self) -> List[Payment]:
        raise NotImplementedError


class InMemoryPaymentStore(PaymentStore):
    """Dict-backed store with a provider-id index, guarded by one lock."""

    name = "memory"

    def __init__(self, clock: Clock = datetime.utcnow):
        self._clock = clock
        self._lock = threading.RLock()
        self._payments: Dict[str, Payment] = {}
        self._by_provider_id: Dict[str, str] = {}

    def create(
        self,
        token: str,
        provider_payment_id: str,
        payer_alias: str,
        amount: str,
        payment_reference: str,
        currency: str = "SEK",
    ) -> Payment:
        with self._lock:
            if token in self._payments or provider_payment_id in self._by_provider_id:
                raise DuplicatePaymentError(f"Payment {token} already exists")

            payment = Payment(
                token=token,
                provider_payment_id=provider_payment_id,
                status=PaymentStatus.CREATED.value,
                payer_alias=payer_alias,
                amount=amount,
                currency=currency,
                payment_reference=payment_reference,
                created_at=self._clock(),
            )
            self._payments[token] = payment
            self._by_provider_id[provider_payment_id] = token
            return payment.model_copy()

    def get(self, token: str) -> Optional[Payment]:
        with self._lock:
            payment = self._payments.get(token)
            return payment.model_copy() if payment else None

    def get_by_provider_id(self, provider_payment_id: str) -> Optional[Payment]:
        with self._lock:
            token = self._by_provider_id.get(provider_payment_id)
            return self.get(token) if token else None

    def update_by_provider_id(
        self,
        provider_payment_id: str,
        status: str,
        provider_reference: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Tuple[UpdateOutcome, Optional[Payment]]:
        with self._lock:
            token = self._by_provider_id.get(provider_payment_id)
            if token is None:
                return UpdateOutcome.NOT_FOUND, None

            current = self._payments[token]
            outcome = next_state(current.status, status)
            if outcome is not UpdateOutcome.APPLIED:
                return outcome, current.model_copy()

            changes = {"status": status}
            if provider_reference:
                changes["provider_reference"] = provider_reference
            if error_code:
                changes["error_code"] = error_code
            if error_message:
                changes["error_message"] = error_message
            if is_terminal(status):
                changes["completed_at"] = self._clock()
            else:
                changes["updated_at"] = self._clock()

            updated = current.model_copy(update=changes)
            self._payments[token] = updated
            return outcome, updated.model_copy()

    def list_all(self) -> List[Payment]:
        with self._lock:
            payments = [p.model_copy() for p in self._payments.values()]
        return sorted(payments, key=lambda p: p.created_at, reverse=True)


class SqlPaymentStore(PaymentStore):
    """SQLAlchemy-backed store; survives restarts and can be shared across workers."""

    name = "sql"

    def __init__(self, session_factory: sessionmaker, clock: Clock = datetime.utcnow):
        self._session_factory = session_factory
        self._clock = clock
        self._lock = threading.RLock()

    @staticmethod
    def _to_payment(record: PaymentRecord) -> Payment:
        return Payment.model_validate(record)

    def create(
        self,
        token: str,
        provider_payment_id: str,
        payer_alias: str,
        amount: str,
        payment_reference: str,
        currency: str = "SEK",
    ) -> Payment:
        with self._lock, self._session_factory() as db:
            exists = db.query(PaymentRecord).filter(
                (PaymentRecord.token == token)
                | (PaymentRecord.provider_payment_id == provider_payment_id)
            ).first()
            if exists:
                raise DuplicatePaymentError(f"Payment {token} already exists")

            record = PaymentRecord(
                token=token,
                provider_payment_id=provider_payment_id,
                status=PaymentStatus.CREATED.value,
                payer_alias=payer_alias,
                amount=amount,
                currency=currency,
                payment_reference=payment_reference,
                created_at=self._clock(),
            )
            db.add(record)
            db.commit()
            return self._to_payment(record)

    def get(self, token: str) -> Optional[Payment]:
        with self._session_factory() as db:
            record = db.get(PaymentRecord, token)
            return self._to_payment(record) if record else None

    def get_by_provider_id(self, provider_payment_id: str) -> Optional[Payment]:
        with self._session_factory() as db:
            record = db.query(PaymentRecord).filter(
                PaymentRecord.provider_payment_id == provider_payment_id
            ).first()
            return self._to_payment(record) if record else None

    def update_by_provider_id(
        self,
        provider_payment_id: str,
        status: str,
        provider_reference: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Tuple[UpdateOutcome, Optional[Payment]]:
        with self._lock, self._session_factory() as db:
            record = (
                db.query(PaymentRecord)
                .filter(PaymentRecord.provider_payment_id == provider_payment_id)
                .with_for_update()
                .first()
            )
            if record is None:
                return UpdateOutcome.NOT_FOUND, None

            outcome = next_state(record.status, status)
            if outcome is not UpdateOutcome.APPLIED:
                return outcome, self._to_payment(record)

            record.status = status
            if provider_reference:
                record.provider_reference = provider_reference
            if error_code:
                record.error_code = error_code
            if error_message:
                record.error_message = error_message[:256]
            if is_terminal(status):
                record.completed_at = self._clock()
            else:
                record.updated_at = self._clock()

            db.commit()
            return outcome, self._to_payment(record)

    def list_all(self) -> List[Payment]:
        with self._session_factory() as db:
            records = db.query(PaymentRecord).order_by(PaymentRecord.created_at.desc()).all()
            return [self._to_payment(r) for r in records]
