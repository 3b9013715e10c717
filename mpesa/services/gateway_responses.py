"""Gateway Responses — decoding rules shared by every operation caller.

Invariants:
    - HTTP 401 or errorCode 404.001.03 → cached token invalidated + AuthenticationError
    - Non-JSON bodies → NetworkError(reason="invalid_response") (gateway HTML error pages)
    - 5xx without a provider code → NetworkError(reason="server_error"), retryable
    - Anything else is handed back to the service to classify as its own failure variant
"""

import logging
from typing import Any

import httpx

from mpesa.core.errors import AuthenticationError, NetworkError
from mpesa.infrastructure.token_manager import TokenManager
from mpesa.infrastructure.transport import read_json, read_json_or_empty

logger = logging.getLogger(__name__)

INVALID_TOKEN_CODES = frozenset({"404.001.03"})


def provider_code(body: dict[str, Any]) -> str | None:
    """First provider code present in an error or acknowledgement body."""
    for key in ("errorCode", "ResponseCode", "responseCode", "resultCode"):
        val = body.get(key)
        if val is not None and val != "":
            return str(val)
    return None


def provider_message(body: dict[str, Any], default: str) -> str:
    for key in ("errorMessage", "ResponseDescription", "responseMessage", "resultDesc"):
        val = body.get(key)
        if val:
            return str(val)
    return default


def decode_gateway_response(
    response: httpx.Response, token_manager: TokenManager | None = None,
) -> dict[str, Any]:
    """Decode a body and raise the failures that are not operation-specific."""
    status = response.status_code
    if status == 401:
        body = read_json_or_empty(response)
        _reject_token(token_manager, body)

    body = read_json(response)
    if body.get("errorCode") in INVALID_TOKEN_CODES:
        _reject_token(token_manager, body)

    if status >= 500 and provider_code(body) is None:
        raise NetworkError(
            f"Gateway error (HTTP {status})", "server_error", status_code=status,
        )
    return body


def _reject_token(token_manager: TokenManager | None, body: dict[str, Any]) -> None:
    if token_manager is not None:
        token_manager.invalidate()
    code = body.get("errorCode")
    message = provider_message(body, "Access token rejected")
    logger.warning(f"Access token rejected: {message}", extra={"error_code": code})
    raise AuthenticationError(message, error_code=code)
