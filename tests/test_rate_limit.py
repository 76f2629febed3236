import pytest

from sitecms.errors import RateLimited
from sitecms.services.rate_limit import RateLimiter


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    rl = RateLimiter(3, 60, clock=clock)
    assert [rl.hit("a") for _ in range(3)] == [2, 1, 0]
    with pytest.raises(RateLimited) as ei:
        rl.hit("a")
    assert ei.value.status_code == 429
    assert ei.value.retry_after == 60


def test_keys_are_independent():
    rl = RateLimiter(1, 60, clock=FakeClock())
    rl.hit("a")
    rl.hit("b")
    with pytest.raises(RateLimited):
        rl.hit("a")


def test_window_resets():
    clock = FakeClock()
    rl = RateLimiter(2, 60, clock=clock)
    rl.hit("a")
    rl.hit("a")
    clock.t = 45
    with pytest.raises(RateLimited) as ei:
        rl.hit("a")
    assert ei.value.retry_after == 15
    clock.t = 60
    assert rl.hit("a") == 1


def test_expired_windows_are_evicted_when_full():
    clock = FakeClock()
    rl = RateLimiter(5, 10, max_keys=3, clock=clock)
    for k in ("a", "b", "c"):
        rl.hit(k)
    clock.t = 11
    rl.hit("d")
    assert len(rl) == 1


def test_rejects_bad_configuration():
    with pytest.raises(ValueError):
        RateLimiter(0, 60)
