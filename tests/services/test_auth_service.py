"""Auth Service — token generation through RequestCore.

Tests:
    - generate_token returns the cached token and its remaining lifetime
    - force_refresh performs a new exchange
    - Token generation is admitted by the rate limiter but needs no bearer token
"""

import httpx
import pytest

from mpesa.client import MpesaClient
from mpesa.core.errors import AuthenticationError

from tests.fakes import TOKEN_PATH, token_ok, token_rejected


async def test_generate_token_returns_access_token(client, gateway):
    token = await client.auth.generate_token()

    assert token.access_token == "tok-1"
    assert token.token_type == "Bearer"
    assert token.expires_in == 3599
    assert "tok-1" not in repr(token)
    assert len(gateway.calls(TOKEN_PATH)) == 1


async def test_generate_token_reuses_cache(client, gateway, fake_clock):
    await client.auth.generate_token()
    fake_clock.advance(100)

    token = await client.auth.generate_token()

    assert token.expires_in == 3499
    assert len(gateway.calls(TOKEN_PATH)) == 1


async def test_force_refresh_exchanges_again(client, gateway):
    gateway.queue(TOKEN_PATH, token_ok("tok-2"))
    await client.auth.generate_token()

    token = await client.auth.generate_token(force_refresh=True)

    assert token.access_token == "tok-2"
    assert len(gateway.calls(TOKEN_PATH)) == 2


async def test_generate_token_counts_against_quota(client):
    await client.auth.generate_token()

    snap = client.rate_limiter.snapshot()
    assert snap.admitted_in_window == 1
    assert snap.active_count == 0


async def test_rejected_credentials_not_retried(settings, gateway, fake_clock):
    gateway.queue(TOKEN_PATH, token_rejected("999991", "Invalid client id passed"))
    async with MpesaClient(
        settings, http_transport=gateway.transport(), clock=fake_clock,
    ) as mpesa:
        with pytest.raises(AuthenticationError) as excinfo:
            await mpesa.auth.generate_token()

    assert excinfo.value.fields["errorCode"] == "999991"
    assert len(gateway.calls(TOKEN_PATH)) == 1
    assert fake_clock.sleeps == []


async def test_html_rejection_not_retried(settings, gateway, fake_clock):
    gateway.queue(TOKEN_PATH, httpx.Response(401, text="<html>Unauthorized</html>"))
    async with MpesaClient(
        settings, http_transport=gateway.transport(), clock=fake_clock,
    ) as mpesa:
        with pytest.raises(AuthenticationError):
            await mpesa.auth.generate_token()

    assert len(gateway.calls(TOKEN_PATH)) == 1
    assert fake_clock.sleeps == []
