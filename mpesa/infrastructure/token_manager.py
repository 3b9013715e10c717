"""Token Manager — exchanges consumer credentials for an OAuth access token and caches it.

Invariants:
    - A cached token is reused only while now < expires_at − margin (margin ≥ 60 s)
    - A returned token always satisfies now < expires_at: a non-positive expires_in
      is an unusable response (NetworkError), never a cached token
    - At most one exchange in flight per instance; concurrent callers share its outcome
    - CachedToken is replaced on successful exchange only, never patched
    - Any 4xx → AuthenticationError(errorCode), even when the body is not JSON;
      transport/5xx → NetworkError
    - No retries here: retry policy is layered outside by RetryOrchestrator

Design Decisions:
    - Shared asyncio.Task for single-flight: waiters use asyncio.shield so one
      cancelled caller never cancels the exchange other callers depend on
    - Expiry math on the injected Clock's monotonic source: immune to wall-clock jumps
"""

import asyncio
import base64
import logging
import math
from dataclasses import dataclass, field

from mpesa.core.errors import AuthenticationError, NetworkError
from mpesa.infrastructure.clock import Clock
from mpesa.infrastructure.transport import Transport, read_json, read_json_or_empty

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1/token/generate"
DEFAULT_EXPIRES_IN_SECONDS = 3599
MIN_REFRESH_MARGIN_SECONDS = 60.0


@dataclass(frozen=True)
class Credentials:
    key: str
    secret: str = field(repr=False)

    def basic_auth(self) -> str:
        raw = f"{self.key}:{self.secret}".encode()
        return "Basic " + base64.b64encode(raw).decode()


@dataclass(frozen=True)
class CachedToken:
    value: str = field(repr=False)
    issued_at: float
    expires_at: float


class TokenManager:
    """Owns the credentials and the cached access token for one client."""

    def __init__(
        self,
        credentials: Credentials,
        transport: Transport,
        clock: Clock | None = None,
        refresh_margin_seconds: float = MIN_REFRESH_MARGIN_SECONDS,
    ):
        if refresh_margin_seconds < MIN_REFRESH_MARGIN_SECONDS:
            raise ValueError(
                f"refresh margin must be at least {MIN_REFRESH_MARGIN_SECONDS:.0f}s",
            )
        self._credentials = credentials
        self._transport = transport
        self._clock = clock or Clock()
        self._margin = refresh_margin_seconds
        self._cached: CachedToken | None = None
        self._inflight: asyncio.Task[CachedToken] | None = None
        self._lock = asyncio.Lock()

    @property
    def cached_token(self) -> CachedToken | None:
        return self._cached

    def invalidate(self) -> None:
        """Drop the cached token so the next caller performs an exchange."""
        if self._cached is not None:
            logger.info("Access token invalidated")
        self._cached = None

    async def get_valid_token(self, force_refresh: bool = False) -> str:
        token = await self.get_token(force_refresh)
        return token.value

    async def get_token(self, force_refresh: bool = False) -> CachedToken:
        """Cached token if still inside its margin, else the outcome of one shared exchange."""
        if not force_refresh:
            token = self._usable()
            if token is not None:
                return token

        async with self._lock:
            if not force_refresh:
                token = self._usable()
                if token is not None:
                    return token
            if self._inflight is None or self._inflight.done():
                self._inflight = asyncio.create_task(self._exchange())
            task = self._inflight

        return await asyncio.shield(task)

    def seconds_remaining(self, token: CachedToken) -> float:
        return max(0.0, token.expires_at - self._clock.monotonic())

    def _usable(self) -> CachedToken | None:
        token = self._cached
        if token is None:
            return None
        if self._clock.monotonic() < token.expires_at - self._margin:
            return token
        return None

    async def _exchange(self) -> CachedToken:
        logger.info("Requesting new access token")
        response = await self._transport.send(
            "GET",
            TOKEN_PATH,
            params={"grant_type": "client_credentials"},
            headers={"Authorization": self._credentials.basic_auth()},
        )
        status = response.status_code
        if status >= 500:
            raise NetworkError(
                f"Token endpoint unavailable (HTTP {status})",
                "server_error",
                status_code=status,
            )
        body = read_json_or_empty(response) if status >= 400 else read_json(response)
        if status >= 400 or "access_token" not in body:
            code = body.get("errorCode") or body.get("resultCode")
            message = (
                body.get("errorMessage")
                or body.get("resultDesc")
                or f"Token request rejected (HTTP {status})"
            )
            logger.error(
                f"Token request rejected: {message}",
                extra={"error_code": code, "status_code": status},
            )
            raise AuthenticationError(message, error_code=code)

        expires_in = _lifetime_seconds(body, status)
        now = self._clock.monotonic()
        token = CachedToken(
            value=str(body["access_token"]),
            issued_at=now,
            expires_at=now + expires_in,
        )
        self._cached = token
        logger.info(
            f"Access token acquired, expires in {expires_in:.0f}s",
            extra={"expires_in": expires_in},
        )
        return token


def _lifetime_seconds(body: dict, status: int) -> float:
    """expires_in as seconds; absent means the provider default."""
    raw = body.get("expires_in")
    if raw is None or raw == "":
        return float(DEFAULT_EXPIRES_IN_SECONDS)
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        seconds = math.nan
    if not math.isfinite(seconds) or seconds <= 0:
        logger.error(f"Token response has unusable expires_in: {raw!r}")
        raise NetworkError(
            f"Token response has unusable expires_in {raw!r}",
            "invalid_response",
            status_code=status,
        )
    return seconds
