"""Register URL Service — registers C2B confirmation and validation callback URLs.

Invariants:
    - Authenticated by the apikey query parameter (consumer key), not a bearer token:
      runs through RequestCore with needs_auth=False
    - Success iff header.responseCode == 200; otherwise RegisterUrlError(responseCode, shortCode)
"""

import logging

import httpx
from pydantic import ValidationError as SchemaError

from mpesa.core.domain_types import ResponseType
from mpesa.core.errors import RegisterUrlError
from mpesa.core.validation import validate_choice, validate_short_code, validate_url
from mpesa.infrastructure.request_core import RequestCore
from mpesa.infrastructure.transport import Transport
from mpesa.schemas.register_url import RegisterUrlPayload, RegisterUrlResponse
from mpesa.services.gateway_responses import (
    decode_gateway_response, provider_code, provider_message,
)

logger = logging.getLogger(__name__)

REGISTER_URL_PATH = "/v1/c2b-register-url/register"


class RegisterUrlService:
    """C2B callback URL registration for a short code."""

    def __init__(self, core: RequestCore, transport: Transport, api_key: str):
        self._core = core
        self._transport = transport
        self._api_key = api_key

    async def register(
        self,
        *,
        short_code: str,
        confirmation_url: str,
        validation_url: str,
        response_type: ResponseType = ResponseType.COMPLETED,
        admission_timeout: float | None = None,
    ) -> RegisterUrlResponse:
        payload = RegisterUrlPayload(
            short_code=validate_short_code(short_code),
            response_type=validate_choice(response_type, ResponseType, "response_type").value,
            confirmation_url=validate_url(confirmation_url, "confirmation_url"),
            validation_url=validate_url(validation_url, "validation_url"),
        )
        body = payload.model_dump(by_alias=True)

        async def call(_token: str | None) -> RegisterUrlResponse:
            response = await self._transport.send(
                "POST", REGISTER_URL_PATH, params={"apikey": self._api_key}, json=body,
            )
            return self._decode(response, payload.short_code)

        return await self._core.execute(
            call, needs_auth=False, admission_timeout=admission_timeout,
            operation="register_url",
        )

    def _decode(self, response: httpx.Response, short_code: str) -> RegisterUrlResponse:
        body = decode_gateway_response(response)
        header = body.get("header")
        header = header if isinstance(header, dict) else {}
        code = header.get("responseCode")
        if response.status_code == 200 and str(code) == "200":
            try:
                ack = RegisterUrlResponse.model_validate({**body, "short_code": short_code})
            except SchemaError as e:
                raise RegisterUrlError(
                    f"Malformed registration acknowledgement: {e.error_count()} field error(s)",
                    response_code="200",
                    short_code=short_code,
                ) from e
            logger.info(
                f"Callback URLs registered for {short_code}",
                extra={"operation": "register_url"},
            )
            return ack

        raise RegisterUrlError(
            provider_message(
                header or body, f"URL registration rejected (HTTP {response.status_code})",
            ),
            response_code=provider_code(header) or provider_code(body),
            short_code=short_code,
        )
