"""mpesa — resilient async client for the Safaricom M-Pesa Ethiopia gateway.

Invariants:
    - Importing the package has no side effects (no logging config, no network, no env reads)
"""

from mpesa.client import MpesaClient
from mpesa.config import Settings
from mpesa.core.errors import (
    AuthenticationError,
    ErrorKind,
    MpesaError,
    NetworkError,
    PayoutError,
    RegisterUrlError,
    StkPushError,
    ValidationError,
)

__all__ = [
    "AuthenticationError",
    "ErrorKind",
    "MpesaClient",
    "MpesaError",
    "NetworkError",
    "PayoutError",
    "RegisterUrlError",
    "Settings",
    "StkPushError",
    "ValidationError",
]
