"""
Identifiers - Instruction ids, merchant references and the Swish request body.
"""
import secrets
import string
import time
import uuid
from typing import Optional

_BASE36 = string.digits + string.ascii_uppercase


def generate_instruction_id() -> str:
    """32 uppercase hex characters, the format Swish requires for PUT ids."""
    return uuid.uuid4().hex.upper()


def generate_payment_reference(prefix: str) -> str:
    """Merchant reference: prefix + epoch millis + 6 random base36 chars."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


def build_payment_request(
    payment_reference: str,
    payer_alias: str,
    payee_alias: str,
    amount: str,
    currency: str,
    message: str,
    callback_url: Optional[str] = None,
) -> dict:
    """Body of the Swish payment request (e-commerce flow)."""
    payload = {
        "payeePaymentReference": payment_reference,
        "payerAlias": payer_alias,
        "payeeAlias": payee_alias,
        "amount": amount,
        "currency": currency,
        "message": message,
    }
    # Swish rejects an empty callbackUrl
    if callback_url:
        payload["callbackUrl"] = callback_url
    return payload
