"""
Dependencies - Builds the payment services once and hands them to routes.
"""
import logging

from fastapi import Request

from app.config import Settings, get_settings
from app.database import build_engine, build_sessionmaker, init_db
from app.services.lifecycle import PaymentLifecycle
from app.services.payment_store import InMemoryPaymentStore, PaymentStore, SqlPaymentStore
from app.services.swish_client import create_swish_client

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> PaymentStore:
    """Pick the storage backend named by PAYMENT_STORE."""
    if settings.PAYMENT_STORE == "sql":
        engine = build_engine(settings.DATABASE_URL)
        init_db(engine)
        return SqlPaymentStore(build_sessionmaker(engine))
    if settings.PAYMENT_STORE != "memory":
        logger.warning("Unknown PAYMENT_STORE %r, using in-memory store", settings.PAYMENT_STORE)
    return InMemoryPaymentStore()


def build_lifecycle(settings: Settings) -> PaymentLifecycle:
    return PaymentLifecycle(build_store(settings), create_swish_client(settings), settings)


def get_lifecycle(request: Request) -> PaymentLifecycle:
    """FastAPI dependency: the application's lifecycle engine."""
    lifecycle = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        lifecycle = build_lifecycle(get_settings())
        request.app.state.lifecycle = lifecycle
    return lifecycle
