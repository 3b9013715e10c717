"""Auth Service — token generation exposed as an operation.

Invariants:
    - Runs through RequestCore with needs_auth=False: quota and retries apply,
      but the call never asks TokenManager for a token it is itself producing
    - The token returned is the one TokenManager cached (single source of truth)
"""

from mpesa.infrastructure.request_core import RequestCore
from mpesa.infrastructure.token_manager import TokenManager
from mpesa.schemas.auth import AccessToken


class AuthService:
    """Generates (or returns the cached) OAuth access token."""

    def __init__(self, core: RequestCore, token_manager: TokenManager):
        self._core = core
        self._tokens = token_manager

    async def generate_token(
        self, force_refresh: bool = False, admission_timeout: float | None = None,
    ) -> AccessToken:
        async def call(_token: str | None) -> AccessToken:
            cached = await self._tokens.get_token(force_refresh=force_refresh)
            return AccessToken(
                access_token=cached.value,
                expires_in=int(self._tokens.seconds_remaining(cached)),
            )

        return await self._core.execute(
            call, needs_auth=False, admission_timeout=admission_timeout,
            operation="generate_token",
        )
