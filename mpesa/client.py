"""M-Pesa Client — owns one instance of every core component and wires the services.

Invariants:
    - Token cache and quota window live on this instance only (no module-level state)
    - Every service receives the same RequestCore, TokenManager and Transport by reference
    - Settings are read once here; changing the environment later has no effect

Design Decisions:
    - Async context manager closes the underlying httpx client on exit
    - transport/clock injectable: tests pass httpx.MockTransport and a fake clock
    - configure_logging=True installs the package log handler from settings
      (log_level, log_format) and close() removes it; off by default

Example:
    async with MpesaClient(Settings(consumer_key="...", consumer_secret="...")) as client:
        ack = await client.stk_push.initiate(
            business_short_code="554433", passkey="...", phone_number="251700100150",
            amount=10, callback_url="https://example.com/cb",
            account_reference="DATA", transaction_desc="Monthly package",
        )
"""

import logging

import httpx

from mpesa.config import Settings, get_settings
from mpesa.infrastructure.clock import Clock
from mpesa.infrastructure.observability import remove_logging, setup_logging
from mpesa.infrastructure.rate_limiter import RateLimiter
from mpesa.infrastructure.request_core import RequestCore
from mpesa.infrastructure.retry import RetryOrchestrator
from mpesa.infrastructure.token_manager import Credentials, TokenManager
from mpesa.infrastructure.transport import HttpTransport
from mpesa.services.auth import AuthService
from mpesa.services.payout import PayoutService
from mpesa.services.register_url import RegisterUrlService
from mpesa.services.stk_push import StkPushService

logger = logging.getLogger(__name__)


class MpesaClient:
    """Entry point: client.auth, client.stk_push, client.payouts, client.register_url."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock | None = None,
        configure_logging: bool = False,
    ):
        self.settings = settings or get_settings()
        if not self.settings.consumer_key or not self.settings.consumer_secret:
            raise ValueError("consumer_key and consumer_secret are required")
        s = self.settings
        clock = clock or Clock()
        self._log_handler = (
            setup_logging(s.log_level, s.log_format) if configure_logging else None
        )

        self.transport = HttpTransport(
            s.resolved_base_url, s.request_timeout_seconds, transport=http_transport,
        )
        self.token_manager = TokenManager(
            Credentials(s.consumer_key, s.consumer_secret),
            self.transport,
            clock=clock,
            refresh_margin_seconds=s.token_refresh_margin_seconds,
        )
        self.rate_limiter = RateLimiter(
            max_concurrent=s.max_concurrent,
            window_budget=s.window_budget,
            window_duration_ms=s.window_duration_ms,
            clock=clock,
        )
        self.retry = RetryOrchestrator(
            max_retries=s.max_retries,
            initial_delay_ms=s.initial_delay_ms,
            max_delay_ms=s.max_delay_ms,
            backoff_factor=s.backoff_factor,
            max_jitter_ms=s.max_jitter_ms,
            clock=clock,
        )
        self.core = RequestCore(self.token_manager, self.rate_limiter, self.retry)

        self.auth = AuthService(self.core, self.token_manager)
        self.stk_push = StkPushService(self.core, self.transport, self.token_manager)
        self.payouts = PayoutService(self.core, self.transport, self.token_manager)
        self.register_url = RegisterUrlService(self.core, self.transport, s.consumer_key)

        logger.info(
            f"MpesaClient initialized for {s.environment.value} ({s.resolved_base_url})",
        )

    async def close(self) -> None:
        await self.transport.close()
        if self._log_handler is not None:
            remove_logging(self._log_handler)
            self._log_handler = None

    async def __aenter__(self) -> "MpesaClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
