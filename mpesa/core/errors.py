"""Error Taxonomy — closed, typed failure kinds for every M-Pesa operation.

Invariants:
    - Every error has a kind (ErrorKind), a code (str), a message and a fields map
    - fields holds only the keys relevant to the kind; unknown values are omitted
    - Errors are never mutated after creation (fields is a read-only mapping)
    - str(error) is stable: "[KIND] message (key=value, ...)" with sorted keys

Design Decisions:
    - Single hierarchy with MpesaError base: callers catch one type and match on .kind
    - Provider field names kept verbatim (merchantRequestId, conversationId, ...):
      correlate with async result callbacks without translation
"""

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class ErrorKind(str, Enum):
    """The closed set of failure kinds."""
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    VALIDATION = "validation"
    STK_PUSH = "stk_push"
    PAYOUT = "payout"
    REGISTER_URL = "register_url"


def _compact(fields: Mapping[str, Any]) -> dict[str, str]:
    return {k: str(v) for k, v in fields.items() if v is not None and v != ""}


class MpesaError(Exception):
    """Base exception for all M-Pesa client errors."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        code: str,
        kind: ErrorKind,
        fields: Mapping[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.kind = kind
        self._fields = MappingProxyType(_compact(fields or {}))
        self.timestamp = datetime.now(timezone.utc)

    @property
    def fields(self) -> Mapping[str, str]:
        return self._fields

    def __str__(self) -> str:
        base = f"[{self.kind.name}] {self.message}"
        if not self._fields:
            return base
        detail = ", ".join(f"{k}={v}" for k, v in sorted(self._fields.items()))
        return f"{base} ({detail})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, fields={dict(self._fields)!r})"

    def to_dict(self) -> dict:
        """Convert to the standard error envelope."""
        return {
            "error": {
                "kind": self.kind.value,
                "code": self.code,
                "message": self.message,
                "fields": dict(self._fields),
                "timestamp": self.timestamp.isoformat(),
            }
        }


# ─── Core Errors ────────────────────────────────────────────────

class AuthenticationError(MpesaError):
    """Credentials or access token rejected by the provider."""
    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(
            message, "AUTHENTICATION_ERROR", ErrorKind.AUTHENTICATION,
            {"errorCode": error_code},
        )
        self.error_code = error_code


class NetworkError(MpesaError):
    """Transport failure, timeout, or unusable provider response."""
    def __init__(
        self,
        message: str,
        reason: str = "transport",
        status_code: int | None = None,
    ):
        super().__init__(
            message, "NETWORK_ERROR", ErrorKind.NETWORK,
            {"reason": reason, "statusCode": status_code},
        )
        self.reason = reason
        self.status_code = status_code


class ValidationError(MpesaError):
    """Pre-flight input check failed; the request never left the process."""
    def __init__(self, message: str, field: str):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorKind.VALIDATION,
            {"field": field},
        )
        self.field = field


# ─── Operation Errors ───────────────────────────────────────────

class StkPushError(MpesaError):
    """STK push request rejected by the provider."""
    def __init__(
        self,
        message: str,
        response_code: str | None = None,
        merchant_request_id: str | None = None,
        checkout_request_id: str | None = None,
    ):
        super().__init__(
            message, "STK_PUSH_FAILED", ErrorKind.STK_PUSH,
            {
                "responseCode": response_code,
                "merchantRequestId": merchant_request_id,
                "checkoutRequestId": checkout_request_id,
            },
        )
        self.response_code = response_code
        self.merchant_request_id = merchant_request_id
        self.checkout_request_id = checkout_request_id


class PayoutError(MpesaError):
    """B2C payout request rejected by the provider."""
    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        request_id: str | None = None,
        response_code: str | None = None,
        conversation_id: str | None = None,
    ):
        super().__init__(
            message, "PAYOUT_FAILED", ErrorKind.PAYOUT,
            {
                "errorCode": error_code,
                "requestId": request_id,
                "responseCode": response_code,
                "conversationId": conversation_id,
            },
        )
        self.error_code = error_code
        self.request_id = request_id
        self.response_code = response_code
        self.conversation_id = conversation_id


class RegisterUrlError(MpesaError):
    """C2B URL registration rejected by the provider."""
    def __init__(
        self,
        message: str,
        response_code: str | None = None,
        short_code: str | None = None,
    ):
        super().__init__(
            message, "REGISTER_URL_FAILED", ErrorKind.REGISTER_URL,
            {"responseCode": response_code, "shortCode": short_code},
        )
        self.response_code = response_code
        self.short_code = short_code
