"""
Validators - Phone number normalization and amount/message rules for Swish.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Union

from app.exceptions import PaymentValidationError

MIN_AMOUNT = Decimal("0.01")
MAX_AMOUNT = Decimal("999999999999.99")

# Characters Swish accepts in the payment message
MESSAGE_PATTERN = re.compile(r"^[a-zA-Z0-9åäöÅÄÖ:;.,?!()\"\- ]*$")
MESSAGE_MAX_LENGTH = 50


def normalize_phone(phone: object, country_code: str = "46") -> str:
    """Format a phone number as country code + subscriber number.

    "0761234567", "+46761234567" and "46 76 123 45 67" all become
    "46761234567". Never raises; validity is checked by is_valid_phone().
    """
    formatted = re.sub(r"\s+", "", str(phone if phone is not None else ""))
    if formatted.startswith("+"):
        formatted = formatted[1:]

    # Trunk prefix
    if formatted.startswith("0"):
        formatted = country_code + formatted[1:]

    if not formatted.startswith(country_code):
        formatted = country_code + formatted

    return formatted


def is_valid_phone(phone: str | None) -> bool:
    """8-15 ASCII digits, no separators."""
    if not phone:
        return False
    return bool(re.fullmatch(r"[0-9]{8,15}", phone))


def validate_amount(amount: Union[str, int, float, Decimal, None]) -> str:
    """Validate a payment amount and return it as a two-decimal string.

    Raises:
        PaymentValidationError: non-numeric, more than 2 decimals, or outside
            0.01 - 999999999999.99.
    """
    if amount is None or isinstance(amount, bool):
        raise PaymentValidationError("Amount is required")

    text = str(amount).strip()
    if not re.fullmatch(r"[0-9]+(\.[0-9]{1,2})?", text):
        raise PaymentValidationError(
            f"Invalid amount '{text}'. Use a positive number with at most 2 decimals"
        )

    try:
        value = Decimal(text)
    except InvalidOperation:
        raise PaymentValidationError(f"Invalid amount '{text}'")

    if value < MIN_AMOUNT:
        raise PaymentValidationError(f"Minimum amount is {MIN_AMOUNT}")
    if value > MAX_AMOUNT:
        raise PaymentValidationError("Maximum amount is 999,999,999,999.99")

    return f"{value.quantize(Decimal('0.01'))}"


def validate_message(message: str | None, default: str = "") -> str:
    """Return the payee message, falling back to the default when empty."""
    text = (message or "").strip() or default
    if len(text) > MESSAGE_MAX_LENGTH:
        raise PaymentValidationError(f"Message must be at most {MESSAGE_MAX_LENGTH} characters")
    if not MESSAGE_PATTERN.match(text):
        raise PaymentValidationError("Message contains characters Swish does not accept")
    return text
