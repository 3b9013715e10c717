"""Clock — monotonic time, cancellable sleep, and bounded jitter behind one seam.

Invariants:
    - monotonic() never goes backwards; all expiry and window math uses it
    - sleep() is asyncio.sleep: cancelling the awaiting task aborts it immediately
    - jitter_ms(bound) is uniform in [0, bound]
"""

import asyncio
import random
import time


class Clock:
    """Time and randomness source; tests substitute a controllable fake."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.Random()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))

    def jitter_ms(self, bound_ms: float) -> float:
        if bound_ms <= 0:
            return 0.0
        return self._rng.uniform(0.0, bound_ms)  # nosec B311
