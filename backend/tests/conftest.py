import os
from datetime import datetime, timedelta

# Diagnostics routes are only mounted-in when DEBUG is on; set before app imports
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ENVIRONMENT", "test")

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.dependencies import get_lifecycle
from app.main import app
from app.services.lifecycle import PaymentLifecycle
from app.services.payment_store import InMemoryPaymentStore
from app.services.swish_client import SwishClient
from app.utils.rate_limiter import reset_rate_limits

SWISH_BASE_URL = "https://swish.test"


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class SwishStub:
    """In-process stand-in for the Swish API, served through httpx.MockTransport."""

    def __init__(self):
        self.statuses = {}
        self.requests = []
        self.create_response = None    # (status_code, json_body, headers) override for PUT
        self.status_response = None    # (status_code, json_body) override for GET
        self.raise_on_create = None    # exception class raised instead of responding
        self.raise_on_status = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        instruction_id = request.url.path.rsplit("/", 1)[-1]

        if request.method == "PUT":
            if self.raise_on_create:
                raise self.raise_on_create("swish down", request=request)
            if self.create_response:
                status_code, body, headers = self.create_response
                return httpx.Response(status_code, json=body, headers=headers)
            self.statuses[instruction_id] = "CREATED"
            location = f"{SWISH_BASE_URL}/swish-cpcapi/api/v1/paymentrequests/{instruction_id}"
            return httpx.Response(201, headers={"Location": location})

        if request.method == "GET":
            if self.raise_on_status:
                raise self.raise_on_status("swish down", request=request)
            if self.status_response:
                status_code, body = self.status_response
                return httpx.Response(status_code, json=body)
            if instruction_id not in self.statuses:
                return httpx.Response(404)
            return httpx.Response(
                200, json={"id": instruction_id, "status": self.statuses[instruction_id]}
            )

        return httpx.Response(405)

    @property
    def puts(self):
        return [r for r in self.requests if r.method == "PUT"]

    @property
    def gets(self):
        return [r for r in self.requests if r.method == "GET"]


def make_swish_client(stub: SwishStub, status_retries: int = 0) -> SwishClient:
    http_client = httpx.Client(base_url=SWISH_BASE_URL, transport=httpx.MockTransport(stub.handler))
    return SwishClient(http_client, status_retries=status_retries, retry_backoff=0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        SWISH_PAYEE_ALIAS="1231181189",
        SWISH_CALLBACK_URL="https://shop.test/payments/callback",
        CANCELLATION_TIMEOUT_SECONDS=60,
    )


@pytest.fixture
def swish():
    return SwishStub()


@pytest.fixture
def store(clock):
    return InMemoryPaymentStore(clock=clock)


@pytest.fixture
def lifecycle(store, swish, settings, clock):
    return PaymentLifecycle(store, make_swish_client(swish), settings, clock=clock)


@pytest.fixture
def disabled_lifecycle(store, settings, clock):
    return PaymentLifecycle(store, SwishClient(), settings, clock=clock)


@pytest.fixture
def api(lifecycle):
    reset_rate_limits()
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def disabled_api(disabled_lifecycle):
    reset_rate_limits()
    app.dependency_overrides[get_lifecycle] = lambda: disabled_lifecycle
    yield TestClient(app)
    app.dependency_overrides.clear()
