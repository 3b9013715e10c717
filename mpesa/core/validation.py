"""Pre-flight Validation — pure field checks run before any network call.

Invariants:
    - Every check either returns a normalised value or raises ValidationError
    - ValidationError.field names the payload field as the caller passed it
    - No IO, no async: validation failures surface synchronously to the caller
"""

import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TypeVar
from urllib.parse import urlparse

from mpesa.core.domain_types import PhoneNumber, ShortCode
from mpesa.core.errors import ValidationError

_PHONE_RE = re.compile(r"^2517\d{8}$")
_SHORT_CODE_RE = re.compile(r"^\d{5,7}$")

E = TypeVar("E", bound=Enum)

TRANSACTION_DESC_MAX = 100
ACCOUNT_REFERENCE_MAX = 12
REMARKS_MIN = 2
REMARKS_MAX = 100


def validate_phone_number(value: str | int, field: str = "phone_number") -> PhoneNumber:
    """Normalise 07…, +2517…, 2517… to 2517XXXXXXXX."""
    raw = re.sub(r"[\s-]", "", str(value or ""))
    if raw.startswith("+"):
        raw = raw[1:]
    if raw.startswith("0") and len(raw) == 10:
        raw = "251" + raw[1:]
    elif raw.startswith("7") and len(raw) == 9:
        raw = "251" + raw
    if not _PHONE_RE.match(raw):
        raise ValidationError(
            f"Invalid phone number '{value}': expected format 2517XXXXXXXX", field,
        )
    return PhoneNumber(raw)


def validate_amount(value: int | float | str | Decimal, field: str = "amount") -> int:
    """Amounts are whole birr, strictly positive."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Amount '{value}' is not a number", field)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"Amount must be a positive number, got '{value}'", field)
    if amount != amount.to_integral_value():
        raise ValidationError(f"Amount must be a whole number, got '{value}'", field)
    return int(amount)


def validate_short_code(value: str | int, field: str = "short_code") -> ShortCode:
    raw = str(value or "").strip()
    if not _SHORT_CODE_RE.match(raw):
        raise ValidationError(f"Invalid short code '{value}': expected 5-7 digits", field)
    return ShortCode(raw)


def validate_url(value: str, field: str) -> str:
    parsed = urlparse(value or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"'{value}' is not an absolute http(s) URL", field)
    return value


def validate_text(
    value: str | None, field: str, min_len: int = 1, max_len: int | None = None,
) -> str:
    text = (value or "").strip()
    if len(text) < min_len:
        raise ValidationError(f"{field} must be at least {min_len} character(s)", field)
    if max_len is not None and len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters", field)
    return text


def validate_choice(value: str | E, choices: type[E], field: str) -> E:
    try:
        return choices(value)
    except ValueError:
        allowed = ", ".join(c.value for c in choices)
        raise ValidationError(f"Invalid {field} '{value}': expected one of {allowed}", field)
