"""Payout Service — business-to-customer (B2C) disbursement.

Invariants:
    - All inputs validated before RequestCore is invoked
    - Success iff HTTP 200 and ResponseCode == "0"; otherwise PayoutError with
      errorCode / requestId / responseCode / conversationId when the provider sent them
    - The same OriginatorConversationID is sent on every retry of one disburse() call
"""

import logging
import uuid

import httpx
from pydantic import ValidationError as SchemaError

from mpesa.core.domain_types import PayoutCommand
from mpesa.core.errors import PayoutError
from mpesa.core.validation import (
    REMARKS_MAX,
    REMARKS_MIN,
    validate_amount,
    validate_choice,
    validate_phone_number,
    validate_short_code,
    validate_text,
    validate_url,
)
from mpesa.infrastructure.request_core import RequestCore
from mpesa.infrastructure.token_manager import TokenManager
from mpesa.infrastructure.transport import Transport
from mpesa.schemas.payout import PayoutPayload, PayoutResponse
from mpesa.services.gateway_responses import (
    decode_gateway_response, provider_message,
)

logger = logging.getLogger(__name__)

PAYOUT_PATH = "/mpesa/b2c/v2/paymentrequest"


class PayoutService:
    """Disburses funds from a business short code to a customer wallet."""

    def __init__(
        self, core: RequestCore, transport: Transport, token_manager: TokenManager,
    ):
        self._core = core
        self._transport = transport
        self._tokens = token_manager

    async def disburse(
        self,
        *,
        initiator_name: str,
        security_credential: str,
        short_code: str,
        phone_number: str,
        amount: int,
        remarks: str,
        result_url: str,
        queue_timeout_url: str,
        command_id: PayoutCommand = PayoutCommand.BUSINESS_PAYMENT,
        occasion: str = "",
        originator_conversation_id: str | None = None,
        admission_timeout: float | None = None,
    ) -> PayoutResponse:
        payload = PayoutPayload(
            originator_conversation_id=originator_conversation_id or str(uuid.uuid4()),
            initiator_name=validate_text(initiator_name, "initiator_name"),
            security_credential=validate_text(security_credential, "security_credential"),
            command_id=validate_choice(command_id, PayoutCommand, "command_id").value,
            party_a=validate_short_code(short_code),
            party_b=validate_phone_number(phone_number),
            amount=validate_amount(amount),
            remarks=validate_text(remarks, "remarks", min_len=REMARKS_MIN, max_len=REMARKS_MAX),
            occasion=(occasion or "").strip(),
            queue_timeout_url=validate_url(queue_timeout_url, "queue_timeout_url"),
            result_url=validate_url(result_url, "result_url"),
        )
        body = payload.model_dump(by_alias=True)

        async def call(token: str | None) -> PayoutResponse:
            response = await self._transport.send(
                "POST", PAYOUT_PATH, json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
            return self._decode(response)

        return await self._core.execute(
            call, admission_timeout=admission_timeout, operation="payout",
        )

    def _decode(self, response: httpx.Response) -> PayoutResponse:
        body = decode_gateway_response(response, self._tokens)
        response_code = body.get("ResponseCode")
        if response.status_code == 200 and str(response_code) == "0":
            try:
                ack = PayoutResponse.model_validate(body)
            except SchemaError as e:
                raise PayoutError(
                    f"Malformed payout acknowledgement: {e.error_count()} field error(s)",
                    response_code="0",
                    conversation_id=body.get("ConversationID"),
                ) from e
            logger.info(
                "Payout accepted",
                extra={"operation": "payout", "request_id": ack.conversation_id},
            )
            return ack

        raise PayoutError(
            provider_message(body, f"Payout rejected (HTTP {response.status_code})"),
            error_code=body.get("errorCode"),
            request_id=body.get("requestId"),
            response_code=None if response_code is None else str(response_code),
            conversation_id=body.get("ConversationID"),
        )
