from __future__ import annotations

import math
import threading

import pytest

from cw_rest._errors import ConfigError
from cw_rest._ratelimit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, s: float) -> None:
        self.sleeps.append(s)


def test_bucket_of_one_spaces_requests() -> None:
    clock = FakeClock()
    rl = RateLimiter(2.0, clock=clock, sleep=clock.sleep)
    assert rl.wait() == 0.0
    assert rl.wait() == pytest.approx(0.5)
    assert rl.wait() == pytest.approx(1.0)
    assert clock.sleeps == [pytest.approx(0.5), pytest.approx(1.0)]


def test_bucket_refills_but_never_above_burst() -> None:
    clock = FakeClock()
    rl = RateLimiter(1.0, clock=clock, sleep=clock.sleep)
    rl.wait()
    clock.now += 60
    assert rl.wait() == 0.0
    assert rl.wait() == pytest.approx(1.0)


def test_unlimited_never_sleeps() -> None:
    clock = FakeClock()
    rl = RateLimiter(math.inf, clock=clock, sleep=clock.sleep)
    assert rl.unlimited
    for _ in range(100):
        rl.wait()
    assert clock.sleeps == []


@pytest.mark.parametrize("rate", [0, -1, float("nan")])
def test_non_positive_rate_rejected(rate: float) -> None:
    with pytest.raises(ConfigError):
        RateLimiter(rate)


def test_concurrent_callers_get_distinct_slots() -> None:
    clock = FakeClock()
    rl = RateLimiter(4.0, clock=clock, sleep=clock.sleep)
    workers = 10
    start = threading.Barrier(workers)
    delays: list[float] = []
    lock = threading.Lock()

    def call() -> None:
        start.wait()
        d = rl.wait()
        with lock:
            delays.append(d)

    threads = [threading.Thread(target=call) for _ in range(workers)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert sorted(delays) == [pytest.approx(i * 0.25) for i in range(workers)]
    assert len(clock.sleeps) == workers - 1
