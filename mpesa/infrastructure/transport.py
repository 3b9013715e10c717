"""HTTP Transport — one HTTP call per send(), httpx failures mapped to NetworkError.

Invariants:
    - send() performs exactly one request; it never retries
    - httpx.TimeoutException → NetworkError(reason="timeout")
    - Any other httpx.HTTPError → NetworkError(reason="transport")
    - HTTP status codes are NOT interpreted here; operation callers own that

Design Decisions:
    - Transport is a Protocol: TokenManager and services depend on the shape, tests
      inject httpx.MockTransport through HttpTransport instead of patching
"""

import logging
from typing import Any, Protocol

import httpx

from mpesa.core.errors import NetworkError

logger = logging.getLogger(__name__)

USER_AGENT = "mpesa-python/1.0.0"


class Transport(Protocol):
    async def send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response: ...


class HttpTransport:
    """Wraps httpx.AsyncClient bound to the gateway base URL."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
        )

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"HTTP timeout on {method} {path}: {e}")
            raise NetworkError(f"Request to {path} timed out", "timeout") from e
        except httpx.HTTPError as e:
            logger.warning(f"HTTP transport error on {method} {path}: {e}")
            raise NetworkError(f"Request to {path} failed: {e}", "transport") from e
        logger.debug(
            f"{method} {path} -> {response.status_code}",
            extra={"status_code": response.status_code},
        )
        return response

    async def close(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()


def read_json(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body; anything else is an unusable response."""
    try:
        body = response.json()
    except ValueError as e:
        raise NetworkError(
            f"Non-JSON response (HTTP {response.status_code})",
            "invalid_response",
            status_code=response.status_code,
        ) from e
    if not isinstance(body, dict):
        raise NetworkError(
            f"Unexpected response shape (HTTP {response.status_code})",
            "invalid_response",
            status_code=response.status_code,
        )
    return body


def read_json_or_empty(response: httpx.Response) -> dict[str, Any]:
    """Error bodies may be gateway HTML pages; treat those as carrying no detail."""
    try:
        return read_json(response)
    except NetworkError:
        return {}
