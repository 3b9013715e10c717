"""STK Push Service — payload construction, decoding, and resilience paths.

Tests:
    - Payload uses provider field names, normalised phone, password and timestamp
    - ResponseCode "0" (string or int) → StkPushResponse
    - Provider decisions → StkPushError with correlation ids, attempted once
    - Transient codes and network failures retried with the same MerchantRequestID
    - Invalid-token rejections invalidate the cache and raise AuthenticationError
    - Validation failures never reach the network
"""

import base64
from datetime import datetime

import httpx
import pytest

from mpesa.core.domain_types import TransactionType
from mpesa.core.errors import (
    AuthenticationError, ErrorKind, NetworkError, StkPushError, ValidationError,
)
from mpesa.services.stk_push import StkPushService, build_password

from tests.fakes import (
    STK_PUSH_PATH, TOKEN_PATH, body_of, provider_error, stk_ok, token_ok,
)

FIXED_NOW = datetime(2024, 9, 18, 5, 58, 23)


def _request(**overrides):
    params = dict(
        business_short_code="554433",
        passkey="secret-passkey",
        phone_number="0700100150",
        amount=10,
        callback_url="https://example.com/mpesa/callback",
        account_reference="DATA",
        transaction_desc="Monthly data package",
    )
    params.update(overrides)
    return params


def test_build_password_is_base64_of_concatenation():
    expected = base64.b64encode(b"554433pk20240918055823").decode()
    assert build_password("554433", "pk", "20240918055823") == expected


async def test_initiate_sends_provider_payload(client, gateway):
    gateway.queue(STK_PUSH_PATH, stk_ok("m-42", "ws_CO_42"))
    service = StkPushService(
        client.core, client.transport, client.token_manager, now=lambda: FIXED_NOW,
    )

    ack = await service.initiate(
        **_request(merchant_request_id="m-42", reference_data={"ItemName": "Data"}),
    )

    (request,) = gateway.calls(STK_PUSH_PATH)
    assert request.headers["Authorization"] == "Bearer tok-1"
    body = body_of(request)
    assert body["MerchantRequestID"] == "m-42"
    assert body["BusinessShortCode"] == "554433"
    assert body["Timestamp"] == "20240918055823"
    assert body["Password"] == build_password("554433", "secret-passkey", "20240918055823")
    assert body["TransactionType"] == "CustomerPayBillOnline"
    assert body["Amount"] == 10
    assert body["PartyA"] == "251700100150"
    assert body["PartyB"] == "554433"
    assert body["PhoneNumber"] == "251700100150"
    assert body["CallBackURL"] == "https://example.com/mpesa/callback"
    assert body["AccountReference"] == "DATA"
    assert body["TransactionDesc"] == "Monthly data package"
    assert body["ReferenceData"] == [{"Key": "ItemName", "Value": "Data"}]

    assert ack.merchant_request_id == "m-42"
    assert ack.checkout_request_id == "ws_CO_42"
    assert ack.response_code == "0"


async def test_buy_goods_uses_explicit_party_b(client, gateway):
    gateway.queue(STK_PUSH_PATH, stk_ok())

    await client.stk_push.initiate(
        **_request(party_b="112233", transaction_type=TransactionType.BUY_GOODS),
    )

    body = body_of(gateway.calls(STK_PUSH_PATH)[0])
    assert body["PartyB"] == "112233"
    assert body["TransactionType"] == "CustomerBuyGoodsOnline"


async def test_merchant_request_id_generated_when_absent(client, gateway):
    gateway.queue(STK_PUSH_PATH, stk_ok())

    await client.stk_push.initiate(**_request())

    body = body_of(gateway.calls(STK_PUSH_PATH)[0])
    assert body["MerchantRequestID"]


async def test_integer_response_code_accepted(client, gateway):
    gateway.queue(STK_PUSH_PATH, httpx.Response(200, json={
        "MerchantRequestID": "m-1", "CheckoutRequestID": "ws_CO_1", "ResponseCode": 0,
    }))

    ack = await client.stk_push.initiate(**_request())

    assert ack.response_code == "0"


async def test_provider_decision_raises_stk_push_error(client, gateway, fake_clock):
    gateway.queue(STK_PUSH_PATH, httpx.Response(200, json={
        "MerchantRequestID": "m-1",
        "CheckoutRequestID": "ws_CO_1",
        "ResponseCode": "1",
        "ResponseDescription": "The balance is insufficient for the transaction",
    }))

    with pytest.raises(StkPushError) as excinfo:
        await client.stk_push.initiate(**_request())

    err = excinfo.value
    assert err.kind is ErrorKind.STK_PUSH
    assert err.message == "The balance is insufficient for the transaction"
    assert dict(err.fields) == {
        "responseCode": "1", "merchantRequestId": "m-1", "checkoutRequestId": "ws_CO_1",
    }
    assert len(gateway.calls(STK_PUSH_PATH)) == 1
    assert fake_clock.sleeps == []


async def test_error_body_keeps_our_merchant_request_id(client, gateway):
    gateway.queue(STK_PUSH_PATH, provider_error(400, "400.002.02", "Bad Request - Invalid Amount"))

    with pytest.raises(StkPushError) as excinfo:
        await client.stk_push.initiate(**_request(merchant_request_id="ours-1"))

    assert excinfo.value.fields["responseCode"] == "400.002.02"
    assert excinfo.value.merchant_request_id == "ours-1"


async def test_transient_code_retried_with_same_request_id(client, gateway, fake_clock):
    gateway.queue(
        STK_PUSH_PATH,
        provider_error(500, "500.003.02", "System is busy"),
        stk_ok(),
    )

    ack = await client.stk_push.initiate(**_request(merchant_request_id="m-7"))

    calls = gateway.calls(STK_PUSH_PATH)
    assert len(calls) == 2
    assert {body_of(c)["MerchantRequestID"] for c in calls} == {"m-7"}
    assert fake_clock.sleeps == [0.1]
    assert ack.response_code == "0"


async def test_network_failures_exhaust_retries(client, gateway, fake_clock):
    gateway.queue(STK_PUSH_PATH, httpx.Response(502, text="<html>Bad Gateway</html>"))

    with pytest.raises(NetworkError) as excinfo:
        await client.stk_push.initiate(**_request())

    assert excinfo.value.reason == "invalid_response"
    assert len(gateway.calls(STK_PUSH_PATH)) == 3
    assert fake_clock.sleeps == [0.1, 0.2]
    assert client.rate_limiter.snapshot().active_count == 0


async def test_connection_error_then_success(client, gateway):
    gateway.queue(STK_PUSH_PATH, httpx.ConnectError("connection reset"), stk_ok())

    ack = await client.stk_push.initiate(**_request())

    assert ack.checkout_request_id == "ws_CO_1"
    assert len(gateway.calls(STK_PUSH_PATH)) == 2


async def test_invalid_token_invalidates_cache(client, gateway):
    gateway.queue(STK_PUSH_PATH, provider_error(404, "404.001.03", "Invalid Access Token"), stk_ok())
    gateway.queue(TOKEN_PATH, token_ok("tok-2"))

    with pytest.raises(AuthenticationError) as excinfo:
        await client.stk_push.initiate(**_request())

    assert excinfo.value.fields["errorCode"] == "404.001.03"
    assert client.token_manager.cached_token is None
    assert len(gateway.calls(STK_PUSH_PATH)) == 1

    await client.stk_push.initiate(**_request())
    assert gateway.calls(STK_PUSH_PATH)[-1].headers["Authorization"] == "Bearer tok-2"


async def test_http_401_invalidates_cache(client, gateway):
    gateway.queue(STK_PUSH_PATH, httpx.Response(401, text="Unauthorized"))

    with pytest.raises(AuthenticationError):
        await client.stk_push.initiate(**_request())

    assert client.token_manager.cached_token is None


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"phone_number": "254708374149"}, "phone_number"),
        ({"amount": 0}, "amount"),
        ({"amount": 12.5}, "amount"),
        ({"business_short_code": "12"}, "business_short_code"),
        ({"callback_url": "not-a-url"}, "callback_url"),
        ({"account_reference": "x" * 13}, "account_reference"),
        ({"transaction_desc": ""}, "transaction_desc"),
        ({"passkey": ""}, "passkey"),
        ({"transaction_type": "CustomerRefund"}, "transaction_type"),
    ],
)
async def test_validation_never_reaches_network(client, gateway, overrides, field):
    with pytest.raises(ValidationError) as excinfo:
        await client.stk_push.initiate(**_request(**overrides))

    assert excinfo.value.field == field
    assert gateway.requests == []
