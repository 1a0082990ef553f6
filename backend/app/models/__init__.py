from app.models.payment import PaymentRecord

__all__ = ["PaymentRecord"]
