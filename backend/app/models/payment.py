"""
Payment Record Model - Durable row behind SqlPaymentStore.
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime

from app.database import Base


class PaymentRecord(Base):
    __tablename__ = "payments"

    token = Column(String(32), primary_key=True, index=True)
    provider_payment_id = Column(String(64), nullable=False, unique=True, index=True)

    status = Column(String(16), nullable=False, default="CREATED")  # CREATED | PAID | DECLINED | ERROR | CANCELLED
    payer_alias = Column(String(15), nullable=False)
    amount = Column(String(16), nullable=False)                     # "100.00", never a float
    currency = Column(String(3), nullable=False, default="SEK")

    payment_reference = Column(String(64), nullable=False)          # ours, immutable
    provider_reference = Column(String(64))                         # Swish paymentReference
    error_code = Column(String(16))
    error_message = Column(String(256))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
