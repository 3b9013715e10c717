"""Service test fixtures — MpesaClient wired to the in-memory gateway.

Invariants:
    - Every test gets a fresh client: empty token cache, fresh quota window
    - The token endpoint answers with a valid token unless a test queues otherwise
    - Retry sleeps advance the fake clock instantly

Design Decisions:
    - Real client wiring over per-service mocks: services, RequestCore and
      HttpTransport are exercised together; only the network is faked
"""

import pytest

from mpesa.client import MpesaClient

from tests.fakes import TOKEN_PATH, token_ok


@pytest.fixture
async def client(settings, gateway, fake_clock):
    """MpesaClient against FakeGateway with a valid token queued."""
    gateway.queue(TOKEN_PATH, token_ok("tok-1"))
    async with MpesaClient(
        settings, http_transport=gateway.transport(), clock=fake_clock,
    ) as mpesa:
        yield mpesa
