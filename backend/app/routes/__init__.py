from app.routes.payment import router as payment_router
from app.routes.diagnostics import router as diagnostics_router

__all__ = ["payment_router", "diagnostics_router"]
