import httpx
import pytest

from app.exceptions import (
    ProviderConnectionError,
    ProviderRejectedError,
    ProviderServerError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from app.services.swish_client import StatusOutcome, SwishClient

from conftest import make_swish_client

INSTRUCTION_ID = "11A86BE70EA346E4B1C39C874173F088"
PAYLOAD = {"payeePaymentReference": "YMP1", "payerAlias": "46761234567", "amount": "100.00"}


def test_create_uses_v2_put_with_instruction_id(swish):
    client = make_swish_client(swish)
    provider_id = client.create_payment(INSTRUCTION_ID, PAYLOAD)

    request = swish.puts[0]
    assert request.url.path == f"/swish-cpcapi/api/v2/paymentrequests/{INSTRUCTION_ID}"
    assert provider_id == INSTRUCTION_ID


def test_create_prefers_id_from_body(swish):
    swish.create_response = (201, {"id": "SWISH-ASSIGNED"}, None)
    assert make_swish_client(swish).create_payment(INSTRUCTION_ID, PAYLOAD) == "SWISH-ASSIGNED"


def test_create_uses_location_header(swish):
    swish.create_response = (201, None, {"Location": "https://swish.test/api/v1/paymentrequests/LOC123"})
    assert make_swish_client(swish).create_payment(INSTRUCTION_ID, PAYLOAD) == "LOC123"


def test_create_falls_back_to_instruction_id(swish):
    swish.create_response = (201, None, None)
    assert make_swish_client(swish).create_payment(INSTRUCTION_ID, PAYLOAD) == INSTRUCTION_ID


def test_create_rejected_carries_provider_body(swish):
    errors = [{"errorCode": "BE18", "errorMessage": "Payer alias is invalid", "additionalInformation": None}]
    swish.create_response = (422, errors, None)

    with pytest.raises(ProviderRejectedError) as exc:
        make_swish_client(swish).create_payment(INSTRUCTION_ID, PAYLOAD)

    assert exc.value.status_code == 422
    assert exc.value.message == "Payer alias is invalid"
    assert exc.value.details == errors


def test_create_server_error(swish):
    swish.create_response = (500, None, None)
    with pytest.raises(ProviderServerError):
        make_swish_client(swish).create_payment(INSTRUCTION_ID, PAYLOAD)


@pytest.mark.parametrize("failure,error", [
    (httpx.ConnectError, ProviderConnectionError),
    (httpx.ReadTimeout, ProviderTimeoutError),
])
def test_create_transport_failures(swish, failure, error):
    swish.raise_on_create = failure
    with pytest.raises(error):
        make_swish_client(swish).create_payment(INSTRUCTION_ID, PAYLOAD)
    assert len(swish.puts) == 1


def test_disabled_client():
    client = SwishClient()
    assert client.enabled is False
    with pytest.raises(ProviderUnavailableError):
        client.create_payment(INSTRUCTION_ID, PAYLOAD)
    assert client.check_status(INSTRUCTION_ID).outcome is StatusOutcome.UNAVAILABLE


def test_check_status_found(swish):
    swish.status_response = (200, {"id": "X", "status": "PAID", "paymentReference": "REF9"})
    result = make_swish_client(swish).check_status("X")

    assert result.outcome is StatusOutcome.FOUND
    assert result.status == "PAID"
    assert result.payment_reference == "REF9"
    assert swish.gets[0].url.path == "/swish-cpcapi/api/v1/paymentrequests/X"


def test_check_status_not_found(swish):
    result = make_swish_client(swish).check_status("UNKNOWN")
    assert result.outcome is StatusOutcome.NOT_FOUND


def test_check_status_retries_server_errors(swish):
    swish.status_response = (503, None)
    result = make_swish_client(swish, status_retries=2).check_status("X")

    assert result.outcome is StatusOutcome.ERROR
    assert len(swish.gets) == 3


def test_check_status_retries_transport_errors(swish):
    swish.raise_on_status = httpx.ConnectError
    result = make_swish_client(swish, status_retries=1).check_status("X")

    assert result.outcome is StatusOutcome.ERROR
    assert "swish down" in result.error
    assert len(swish.gets) == 2


def test_check_status_does_not_retry_client_errors(swish):
    swish.status_response = (401, [{"errorCode": "PA01", "errorMessage": "Unauthorized"}])
    result = make_swish_client(swish, status_retries=3).check_status("X")

    assert result.outcome is StatusOutcome.ERROR
    assert result.error == "Unauthorized"
    assert len(swish.gets) == 1


def test_check_status_does_not_retry_timeouts(swish):
    swish.raise_on_status = httpx.ReadTimeout
    result = make_swish_client(swish, status_retries=3).check_status("X")

    assert result.outcome is StatusOutcome.ERROR
    assert len(swish.gets) == 1
