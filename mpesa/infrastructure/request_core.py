"""Request Core — single entry point composing admission, authentication, and retries.

Invariants:
    - One rate-limit slot per logical operation, held across all of its retries and
      released on every exit path (success, error, cancellation)
    - Token failures propagate immediately and consume no retry attempt
    - No untyped error escapes: unexpected exceptions from an attempt are wrapped
      as NetworkError(reason="unexpected") with the original chained

Design Decisions:
    - Slot acquired before the token: a refresh storm is itself rate limited
    - fn receives the token per call, not per attempt: callers needing a fresh
      token after an auth rejection re-invoke execute()
    - admission_timeout bounds only the wait for a rate-limit slot; a deadline for
      the whole call (token wait, attempts, backoff) is the caller's asyncio.timeout()
"""

import logging
from typing import Awaitable, Callable, TypeVar

from mpesa.core.errors import MpesaError, NetworkError
from mpesa.infrastructure.rate_limiter import RateLimiter
from mpesa.infrastructure.retry import RetryOrchestrator, RetryPredicate
from mpesa.infrastructure.token_manager import TokenManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[str | None], Awaitable[T]]


class RequestCore:
    """Runs operation closures under quota, with credentials, with retries."""

    def __init__(
        self,
        token_manager: TokenManager,
        rate_limiter: RateLimiter,
        retry: RetryOrchestrator,
    ):
        self.token_manager = token_manager
        self.rate_limiter = rate_limiter
        self.retry = retry

    async def execute(
        self,
        fn: Operation[T],
        *,
        needs_auth: bool = True,
        admission_timeout: float | None = None,
        operation: str = "request",
        retry_predicate: RetryPredicate | None = None,
    ) -> T:
        async with self.rate_limiter.slot(admission_timeout):
            token = None
            if needs_auth:
                token = await self.token_manager.get_valid_token()

            async def attempt() -> T:
                try:
                    return await fn(token)
                except MpesaError:
                    raise
                except Exception as e:
                    logger.error(
                        f"Unexpected error during {operation}: {e}",
                        exc_info=True,
                        extra={"operation": operation},
                    )
                    raise NetworkError(
                        f"Unexpected failure during {operation}: {e}", "unexpected",
                    ) from e

            return await self.retry.execute(
                attempt, retry_predicate, operation=operation,
            )
