"""
Swish Payment Gateway - FastAPI Application Entry Point

Aggregates routers, configures middleware and error handling, serves the
built frontend, and builds the payment services on startup.
"""
import logging
import time
from datetime import datetime
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import get_settings
from app.dependencies import build_lifecycle, get_lifecycle
from app.exceptions import PaymentError, ProviderError
from app.logging_config import setup_logging
from app.routes import payment_router, diagnostics_router
from app.schemas.schemas import HealthResponse
from app.services.lifecycle import PaymentLifecycle

settings = get_settings()
logger = logging.getLogger("swish-gateway")

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Payment-initiation backend for Swish. Creates payment requests over "
        "mutual TLS, receives Swish callbacks and reconciles payment status "
        "for a polling frontend."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Configure logging and build the payment services."""
    setup_logging("swish-gateway")

    if getattr(app.state, "lifecycle", None) is None:
        app.state.lifecycle = build_lifecycle(settings)

    lifecycle: PaymentLifecycle = app.state.lifecycle
    logger.info(
        "%s v%s started (environment=%s, swish_api=%s, store=%s, cancel_after=%ss)",
        settings.APP_NAME,
        settings.APP_VERSION,
        settings.ENVIRONMENT,
        "enabled" if lifecycle.client.enabled else "disabled",
        lifecycle.store.name,
        settings.CANCELLATION_TIMEOUT_SECONDS,
    )


@app.on_event("shutdown")
def on_shutdown():
    lifecycle = getattr(app.state, "lifecycle", None)
    if lifecycle is not None:
        lifecycle.client.close()


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith(("/payments", "/diagnostics")):
        logger.info(
            "%s %s -> %s", request.method, request.url.path, response.status_code,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration,
            },
        )

    return response


# ─── Error Handling ──────────────────────────────────────────────────
def _error_body(error: str, details) -> dict:
    return {
        "error": error,
        "details": details,
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.exception_handler(PaymentError)
async def payment_error_handler(request: Request, exc: PaymentError):
    message, details = exc.message, exc.details
    if settings.is_production and isinstance(exc, ProviderError):
        message, details = exc.default_message, None
    return JSONResponse(status_code=exc.status_code, content=_error_body(message, details))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed request bodies get the same 400 error body."""
    errors = jsonable_encoder(exc.errors())
    missing = any(e.get("type") == "missing" for e in errors)
    message = "Missing required fields" if missing else "Invalid request body"
    return JSONResponse(status_code=400, content=_error_body(message, errors))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    details = None if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content=_error_body("Internal server error", details))


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(payment_router)
app.include_router(diagnostics_router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health(lifecycle: PaymentLifecycle = Depends(get_lifecycle)):
    """Liveness plus Swish client and store state."""
    return HealthResponse(
        status="healthy" if lifecycle.client.enabled else "degraded",
        swish_api="available" if lifecycle.client.enabled else "unavailable",
        payment_store=lifecycle.store.name,
        environment=settings.ENVIRONMENT,
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
        version=settings.APP_VERSION,
    )


# ─── Serve Frontend (Static Files) ──────────────────────────────────
FRONTEND_DIR = Path(__file__).resolve().parent.parent.parent / "frontend" / "build"

if FRONTEND_DIR.exists():
    # Mounted last so the API routes above take precedence
    app.mount("/", StaticFiles(directory=str(FRONTEND_DIR), html=True), name="frontend")
