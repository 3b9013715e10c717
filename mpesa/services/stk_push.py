"""STK Push Service — initiates a USSD push payment prompt on the customer's phone.

Invariants:
    - All inputs validated before RequestCore is invoked
    - Password = base64(short_code + passkey + timestamp), timestamp YYYYMMDDHHmmss
    - Success iff HTTP 200 and ResponseCode == "0"; any other decision → StkPushError
      carrying merchantRequestId / checkoutRequestId for callback correlation
    - The same MerchantRequestID is sent on every retry of one initiate() call

Design Decisions:
    - MerchantRequestID generated client-side when not supplied: the caller always
      has an identifier to match against the asynchronous result callback
"""

import base64
import logging
import uuid
from datetime import datetime
from typing import Callable, Mapping

import httpx
from pydantic import ValidationError as SchemaError

from mpesa.core.domain_types import TransactionType
from mpesa.core.errors import StkPushError
from mpesa.core.validation import (
    ACCOUNT_REFERENCE_MAX,
    TRANSACTION_DESC_MAX,
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
from mpesa.schemas.stk_push import ReferenceItem, StkPushPayload, StkPushResponse
from mpesa.services.gateway_responses import (
    decode_gateway_response, provider_code, provider_message,
)

logger = logging.getLogger(__name__)

STK_PUSH_PATH = "/mpesa/stkpush/v3/processrequest"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def build_password(short_code: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{short_code}{passkey}{timestamp}".encode()).decode()


class StkPushService:
    """Customer push-payment initiation (STK push)."""

    def __init__(
        self,
        core: RequestCore,
        transport: Transport,
        token_manager: TokenManager,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._core = core
        self._transport = transport
        self._tokens = token_manager
        self._now = now

    async def initiate(
        self,
        *,
        business_short_code: str,
        passkey: str,
        phone_number: str,
        amount: int,
        callback_url: str,
        account_reference: str,
        transaction_desc: str,
        party_b: str | None = None,
        transaction_type: TransactionType = TransactionType.PAYBILL,
        merchant_request_id: str | None = None,
        reference_data: Mapping[str, str] | None = None,
        admission_timeout: float | None = None,
    ) -> StkPushResponse:
        payload = self._build_payload(
            business_short_code=business_short_code,
            passkey=passkey,
            phone_number=phone_number,
            amount=amount,
            callback_url=callback_url,
            account_reference=account_reference,
            transaction_desc=transaction_desc,
            party_b=party_b,
            transaction_type=transaction_type,
            merchant_request_id=merchant_request_id,
            reference_data=reference_data,
        )
        body = payload.model_dump(by_alias=True)

        async def call(token: str | None) -> StkPushResponse:
            response = await self._transport.send(
                "POST", STK_PUSH_PATH, json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
            return self._decode(response, payload.merchant_request_id)

        return await self._core.execute(
            call, admission_timeout=admission_timeout, operation="stk_push",
        )

    def _build_payload(
        self,
        *,
        business_short_code: str,
        passkey: str,
        phone_number: str,
        amount: int,
        callback_url: str,
        account_reference: str,
        transaction_desc: str,
        party_b: str | None,
        transaction_type: TransactionType,
        merchant_request_id: str | None,
        reference_data: Mapping[str, str] | None,
    ) -> StkPushPayload:
        short_code = validate_short_code(business_short_code, "business_short_code")
        secret = validate_text(passkey, "passkey")
        phone = validate_phone_number(phone_number)
        receiver = validate_short_code(party_b, "party_b") if party_b else short_code
        timestamp = self._now().strftime(TIMESTAMP_FORMAT)
        return StkPushPayload(
            merchant_request_id=merchant_request_id or str(uuid.uuid4()),
            business_short_code=short_code,
            password=build_password(short_code, secret, timestamp),
            timestamp=timestamp,
            transaction_type=validate_choice(
                transaction_type, TransactionType, "transaction_type",
            ).value,
            amount=validate_amount(amount),
            party_a=phone,
            party_b=receiver,
            phone_number=phone,
            transaction_desc=validate_text(
                transaction_desc, "transaction_desc", max_len=TRANSACTION_DESC_MAX,
            ),
            callback_url=validate_url(callback_url, "callback_url"),
            account_reference=validate_text(
                account_reference, "account_reference", max_len=ACCOUNT_REFERENCE_MAX,
            ),
            reference_data=[
                ReferenceItem(key=k, value=str(v))
                for k, v in (reference_data or {}).items()
            ],
        )

    def _decode(
        self, response: httpx.Response, merchant_request_id: str,
    ) -> StkPushResponse:
        body = decode_gateway_response(response, self._tokens)
        if response.status_code == 200 and str(body.get("ResponseCode")) == "0":
            try:
                ack = StkPushResponse.model_validate(body)
            except SchemaError as e:
                raise StkPushError(
                    f"Malformed STK push acknowledgement: {e.error_count()} field error(s)",
                    response_code="0",
                    merchant_request_id=body.get("MerchantRequestID") or merchant_request_id,
                ) from e
            logger.info(
                "STK push accepted",
                extra={"operation": "stk_push", "request_id": ack.checkout_request_id},
            )
            return ack

        raise StkPushError(
            provider_message(body, f"STK push rejected (HTTP {response.status_code})"),
            response_code=provider_code(body),
            merchant_request_id=body.get("MerchantRequestID") or merchant_request_id,
            checkout_request_id=body.get("CheckoutRequestID"),
        )
