"""Domain Types — rich types that replace bare primitives across the client.

Invariants:
    - PhoneNumber is always normalised to 2517XXXXXXXX before it reaches a payload
    - ShortCode is 5–7 digits
    - All provider enumerations encoded as str Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize straight into JSON payloads
"""

from enum import Enum
from typing import NewType


# ─── Value Types ─────────────────────────────────────────────────

PhoneNumber = NewType("PhoneNumber", str)   # 2517XXXXXXXX
ShortCode = NewType("ShortCode", str)       # 5–7 digits


# ─── Enums ───────────────────────────────────────────────────────

class Environment(str, Enum):
    """Gateway environment — selects the default base URL."""
    SANDBOX = "sandbox"
    PRODUCTION = "production"


BASE_URLS: dict[Environment, str] = {
    Environment.SANDBOX: "https://apisandbox.safaricom.et",
    Environment.PRODUCTION: "https://api.safaricom.et",
}


class TransactionType(str, Enum):
    """STK push transaction types."""
    PAYBILL = "CustomerPayBillOnline"
    BUY_GOODS = "CustomerBuyGoodsOnline"


class PayoutCommand(str, Enum):
    """B2C command identifiers."""
    BUSINESS_PAYMENT = "BusinessPayment"
    SALARY_PAYMENT = "SalaryPayment"
    PROMOTION_PAYMENT = "PromotionPayment"


class ResponseType(str, Enum):
    """C2B default action when the validation URL is unreachable."""
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
