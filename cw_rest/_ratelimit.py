# /cw_rest/_ratelimit.py
# CrossWatch REST - process-wide token bucket
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import math
import threading
import time
from typing import Callable

from ._errors import ConfigError


class RateLimiter:
    """Token bucket: `rate` tokens per second, at most `burst` stored.

    wait() reserves a token under the lock and sleeps outside it, so a
    caller's place in line is fixed when it arrives.
    """

    def __init__(
        self,
        rate: float = math.inf,
        burst: int = 1,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        rate = float(rate)
        if math.isnan(rate) or rate <= 0:
            raise ConfigError(f"rate_limit must be a positive number, got {rate!r}")
        self.rate = rate
        self.burst = max(1, int(burst))
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(self.burst)
        self._last = clock()

    @property
    def unlimited(self) -> bool:
        return math.isinf(self.rate)

    def reserve(self) -> float:
        if self.unlimited:
            return 0.0
        with self._lock:
            now = self._clock()
            self._tokens = min(float(self.burst), self._tokens + (now - self._last) * self.rate)
            self._last = now
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def wait(self) -> float:
        delay = self.reserve()
        if delay > 0:
            self._sleep(delay)
        return delay


__all__ = ["RateLimiter"]
