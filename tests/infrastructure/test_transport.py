"""HTTP Transport — single request per send, httpx failures mapped to NetworkError.

Tests:
    - Requests go to the base URL with JSON content type and user agent
    - Timeouts → reason "timeout"; other httpx errors → reason "transport"
    - Status codes pass through uninterpreted
    - read_json rejects non-JSON and non-object bodies
"""

import httpx
import pytest

from mpesa.core.errors import NetworkError
from mpesa.infrastructure.transport import (
    USER_AGENT, HttpTransport, read_json, read_json_or_empty,
)

from tests.fakes import body_of


async def test_send_targets_base_url_with_default_headers(gateway):
    gateway.queue("/echo", httpx.Response(200, json={"ok": True}))
    transport = HttpTransport("https://gateway.test/", transport=gateway.transport())

    response = await transport.send(
        "POST", "/echo", params={"apikey": "k"}, json={"Amount": 10},
        headers={"Authorization": "Bearer t"},
    )

    assert response.status_code == 200
    (request,) = gateway.requests
    assert str(request.url) == "https://gateway.test/echo?apikey=k"
    assert request.headers["User-Agent"] == USER_AGENT
    assert request.headers["Authorization"] == "Bearer t"
    assert request.headers["Content-Type"] == "application/json"
    assert body_of(request) == {"Amount": 10}
    await transport.close()


async def test_status_codes_not_interpreted(gateway):
    gateway.queue("/fail", httpx.Response(500, json={"errorCode": "500.003.02"}))
    transport = HttpTransport("https://gateway.test", transport=gateway.transport())

    response = await transport.send("GET", "/fail")

    assert response.status_code == 500
    assert len(gateway.requests) == 1


async def test_timeout_maps_to_timeout_reason(gateway):
    gateway.queue("/slow", httpx.ReadTimeout("read timed out"))
    transport = HttpTransport("https://gateway.test", transport=gateway.transport())

    with pytest.raises(NetworkError) as excinfo:
        await transport.send("GET", "/slow")

    assert excinfo.value.reason == "timeout"
    assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)


async def test_connection_error_maps_to_transport_reason(gateway):
    gateway.queue("/down", httpx.ConnectError("connection refused"))
    transport = HttpTransport("https://gateway.test", transport=gateway.transport())

    with pytest.raises(NetworkError) as excinfo:
        await transport.send("GET", "/down")

    assert excinfo.value.reason == "transport"
    assert len(gateway.requests) == 1


async def test_close_is_idempotent(gateway):
    transport = HttpTransport("https://gateway.test", transport=gateway.transport())
    await transport.close()
    await transport.close()


def test_read_json_returns_object():
    assert read_json(httpx.Response(200, json={"a": 1})) == {"a": 1}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(502, text="<html>Bad Gateway</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
def test_read_json_rejects_unusable_bodies(response):
    with pytest.raises(NetworkError) as excinfo:
        read_json(response)
    assert excinfo.value.reason == "invalid_response"
    assert excinfo.value.status_code == response.status_code


def test_read_json_or_empty_tolerates_html_error_pages():
    assert read_json_or_empty(httpx.Response(401, text="<html>Unauthorized</html>")) == {}
    assert read_json_or_empty(httpx.Response(400, json={"errorCode": "x"})) == {"errorCode": "x"}
