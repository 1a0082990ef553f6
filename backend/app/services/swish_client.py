"""
Swish Client - Mutual-TLS calls to the Swish Commerce API.

Payment requests are created with PUT on the v2 endpoint (the instruction id
in the URL makes the call idempotent on Swish's side) and read back with GET
on the v1 endpoint.
"""
import logging
import ssl
import time
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from app.config import Settings
from app.exceptions import (
    ProviderConnectionError,
    ProviderRejectedError,
    ProviderServerError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from app.utils.certificates import load_certificate_pair

logger = logging.getLogger(__name__)

CREATE_PATH = "/swish-cpcapi/api/v2/paymentrequests"
STATUS_PATH = "/swish-cpcapi/api/v1/paymentrequests"


class StatusOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"        # Swish no longer knows the request: cancelled or expired
    ERROR = "error"
    UNAVAILABLE = "unavailable"    # client disabled, no certificates


class StatusCheck(BaseModel):
    outcome: StatusOutcome
    status: Optional[str] = None
    payment_reference: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    error: Optional[str] = None


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _error_message(body: Any) -> Optional[str]:
    """Swish returns validation errors as [{"errorCode", "errorMessage"}, ...]."""
    if isinstance(body, list):
        messages = [e.get("errorMessage") for e in body if isinstance(e, dict) and e.get("errorMessage")]
        return "; ".join(messages) or None
    if isinstance(body, dict):
        return body.get("errorMessage") or body.get("message")
    return None


class SwishClient:
    """Thin wrapper over an httpx.Client configured with the merchant certificate.

    A client built without an HTTP client is disabled: create_payment raises
    ProviderUnavailableError and check_status returns UNAVAILABLE.
    """

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        status_retries: int = 2,
        retry_backoff: float = 0.5,
    ):
        self._http = http_client
        self.status_retries = max(0, status_retries)
        self.retry_backoff = retry_backoff

    @property
    def enabled(self) -> bool:
        return self._http is not None

    def create_payment(self, instruction_id: str, payload: dict) -> str:
        """Create a payment request and return the id Swish assigned to it.

        Args:
            instruction_id: 32 uppercase hex chars; reuse it when retrying.
            payload: Request body from build_payment_request().

        Returns:
            Swish payment id: response "id", else the Location header's last
            segment, else the instruction id itself.
        """
        if not self.enabled:
            raise ProviderUnavailableError(details="Certificate configuration is missing")

        try:
            response = self._http.put(f"{CREATE_PATH}/{instruction_id}", json=payload)
        except httpx.TimeoutException as exc:
            logger.error("Swish create timed out", extra={"token": instruction_id})
            raise ProviderTimeoutError(details=str(exc)) from exc
        except httpx.RequestError as exc:
            logger.error("Swish create failed: %s", exc, extra={"token": instruction_id})
            raise ProviderConnectionError(details=str(exc)) from exc

        if response.status_code >= 500:
            logger.error(
                "Swish create returned %s", response.status_code,
                extra={"token": instruction_id, "status_code": response.status_code},
            )
            raise ProviderServerError(details=_body(response))

        if response.status_code >= 400:
            body = _body(response)
            logger.warning(
                "Swish rejected payment request: %s", body,
                extra={"token": instruction_id, "status_code": response.status_code},
            )
            raise ProviderRejectedError(response.status_code, _error_message(body), details=body)

        provider_id = self._resolve_id(response, instruction_id)
        logger.info(
            "Swish payment request created",
            extra={"token": instruction_id, "provider_payment_id": provider_id},
        )
        return provider_id

    @staticmethod
    def _resolve_id(response: httpx.Response, instruction_id: str) -> str:
        body = _body(response)
        if isinstance(body, dict) and body.get("id"):
            return str(body["id"])

        location = response.headers.get("location")
        if location:
            segment = location.rstrip("/").rsplit("/", 1)[-1]
            if segment:
                return segment

        return instruction_id

    def check_status(self, provider_payment_id: str) -> StatusCheck:
        """Ask Swish for the current status. Never raises.

        Connection errors and 5xx responses are retried with exponential
        backoff; timeouts are not retried. A 404 is reported as NOT_FOUND
        rather than as an error.
        """
        if not self.enabled:
            return StatusCheck(outcome=StatusOutcome.UNAVAILABLE)

        error = None
        for attempt in range(self.status_retries + 1):
            try:
                response = self._http.get(f"{STATUS_PATH}/{provider_payment_id}")
            except httpx.TimeoutException as exc:
                return StatusCheck(outcome=StatusOutcome.ERROR, error=str(exc) or "Swish request timed out")
            except httpx.RequestError as exc:
                error = str(exc) or exc.__class__.__name__
            else:
                if response.status_code == 404:
                    return StatusCheck(outcome=StatusOutcome.NOT_FOUND, error="Payment request not found")

                if response.is_success:
                    data = _body(response)
                    if not isinstance(data, dict) or not data.get("status"):
                        return StatusCheck(outcome=StatusOutcome.ERROR, error="Unexpected status response")
                    return StatusCheck(
                        outcome=StatusOutcome.FOUND,
                        status=data["status"],
                        payment_reference=data.get("paymentReference"),
                        error_code=data.get("errorCode"),
                        error_message=data.get("errorMessage"),
                    )

                error = _error_message(_body(response)) or f"HTTP {response.status_code}"
                if response.status_code < 500:
                    return StatusCheck(outcome=StatusOutcome.ERROR, error=error)

            if attempt < self.status_retries:
                logger.warning(
                    "Swish status check failed (attempt %d): %s", attempt + 1, error,
                    extra={"provider_payment_id": provider_payment_id},
                )
                time.sleep(self.retry_backoff * (2 ** attempt))

        return StatusCheck(outcome=StatusOutcome.ERROR, error=error)

    def close(self) -> None:
        if self._http is not None:
            self._http.close()


def create_swish_client(settings: Settings) -> SwishClient:
    """Build the client from settings, disabled if the certificates are unusable."""
    pair = load_certificate_pair(settings.SWISH_CERT, settings.SWISH_KEY)
    if pair is None:
        return SwishClient(status_retries=settings.SWISH_STATUS_RETRIES)

    try:
        context = ssl.create_default_context()
        context.load_cert_chain(*pair.as_files())
    except (ssl.SSLError, OSError) as exc:
        logger.warning("Swish certificate could not be loaded into TLS context: %s", exc)
        return SwishClient(status_retries=settings.SWISH_STATUS_RETRIES)
    finally:
        # The context holds the key in memory once loaded
        pair.cleanup()

    http_client = httpx.Client(
        base_url=settings.SWISH_API_URL.rstrip("/"),
        verify=context,
        timeout=settings.SWISH_TIMEOUT_SECONDS,
        headers={"Content-Type": "application/json"},
    )
    logger.info("Swish client ready for %s", settings.SWISH_API_URL)
    return SwishClient(
        http_client,
        status_retries=settings.SWISH_STATUS_RETRIES,
        retry_backoff=settings.SWISH_RETRY_BACKOFF_SECONDS,
    )
