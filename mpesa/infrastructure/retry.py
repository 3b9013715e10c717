"""Retry Orchestrator — bounded, classified retries with exponential backoff and jitter.

Invariants:
    - At most max_retries additional attempts after the first
    - Delay before retry n (1-indexed) = min(max_delay, initial × factor^(n−1)) + jitter,
      jitter uniform in [0, max_jitter_ms]
    - Only errors accepted by the predicate consume a retry; others propagate at once
    - Exhaustion re-raises the last error object verbatim (never wrapped)
    - Cancellation during the backoff sleep aborts it and raises CancelledError
    - Never constructs errors: classification and construction happen at failure sites

Design Decisions:
    - Additive jitter bounded at 100 ms by default: desynchronises concurrent
      callers without stretching the documented backoff schedule
    - Transient provider codes are matched on the error's fields, independent of kind
    - NetworkError(reason="unexpected") wraps a programming fault, not a blip: never retried
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from mpesa.core.errors import ErrorKind, MpesaError
from mpesa.infrastructure.clock import Clock

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]

# Provider codes that signal a gateway-side blip rather than a decision.
TRANSIENT_PROVIDER_CODES = frozenset({
    "500.001.1001",  # internal server error
    "500.003.02",    # system busy
    "500.003.03",    # spike arrest violation
})

_NEVER_RETRY = frozenset({ErrorKind.VALIDATION, ErrorKind.AUTHENTICATION})


def is_transient(error: BaseException) -> bool:
    """Default retry predicate."""
    if not isinstance(error, MpesaError):
        return False
    if error.kind in _NEVER_RETRY:
        return False
    if error.kind is ErrorKind.NETWORK:
        return error.fields.get("reason") != "unexpected"
    return any(
        error.fields.get(key) in TRANSIENT_PROVIDER_CODES
        for key in ("errorCode", "responseCode")
    )


@dataclass
class RetryAttempt:
    attempt_number: int
    delay_ms: float = 0.0
    last_error: BaseException | None = None


class RetryOrchestrator:
    """Runs one logical operation, retrying transient failures."""

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay_ms: float = 1000,
        max_delay_ms: float = 10_000,
        backoff_factor: float = 2.0,
        max_jitter_ms: float = 100,
        clock: Clock | None = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.initial_delay_ms = initial_delay_ms
        self.max_delay_ms = max_delay_ms
        self.backoff_factor = backoff_factor
        self.max_jitter_ms = max_jitter_ms
        self._clock = clock or Clock()

    def backoff_ms(self, retry_number: int) -> float:
        """Delay before retry `retry_number` (1-indexed), jitter included."""
        base = self.initial_delay_ms * (self.backoff_factor ** (retry_number - 1))
        return min(self.max_delay_ms, base) + self._clock.jitter_ms(self.max_jitter_ms)

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        retry_predicate: RetryPredicate | None = None,
        *,
        operation: str = "request",
    ) -> T:
        predicate = retry_predicate or is_transient
        attempt = RetryAttempt(attempt_number=1)

        while True:
            try:
                result = await fn()
            except Exception as e:
                attempt.last_error = e
                if not predicate(e):
                    raise
                if attempt.attempt_number > self.max_retries:
                    logger.error(
                        f"{operation} failed after {attempt.attempt_number} attempts: {e}",
                        extra=_error_extra(operation, attempt.attempt_number, e),
                    )
                    raise
                attempt.delay_ms = self.backoff_ms(attempt.attempt_number)
                logger.warning(
                    f"Transient error on {operation}, retry after "
                    f"{attempt.delay_ms:.0f}ms (attempt {attempt.attempt_number}): {e}",
                    extra={
                        **_error_extra(operation, attempt.attempt_number, e),
                        "delay_ms": round(attempt.delay_ms),
                    },
                )
                await self._clock.sleep(attempt.delay_ms / 1000)
                attempt.attempt_number += 1
                continue

            if attempt.attempt_number > 1:
                logger.info(
                    f"{operation} succeeded on attempt {attempt.attempt_number}",
                    extra={"operation": operation, "attempt": attempt.attempt_number},
                )
            return result


def _error_extra(operation: str, attempt: int, error: BaseException) -> dict:
    extra = {"operation": operation, "attempt": attempt}
    if isinstance(error, MpesaError):
        extra["error_kind"] = error.kind.value
        extra["error_code"] = error.fields.get("errorCode") or error.fields.get("responseCode")
    return extra
