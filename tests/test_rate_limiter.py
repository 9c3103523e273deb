import threading

import pytest

from phone_auth.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from phone_auth.infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_memory_rate_limiter_allows_then_blocks():
    rl = InMemoryRateLimiter()
    key = "send-otp:+15551230000"
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is True
    assert rl.allow(key, max_requests=2, window_seconds=60) is False


def test_memory_rate_limiter_window_slides():
    clock = FakeClock()
    rl = InMemoryRateLimiter(clock=clock)
    assert rl.allow("k", 1, 60) is True
    assert rl.allow("k", 1, 60) is False
    clock.now += 61
    assert rl.allow("k", 1, 60) is True


def test_memory_rate_limiter_keys_are_independent():
    rl = InMemoryRateLimiter()
    assert rl.allow("a", 1, 60) is True
    assert rl.allow("b", 1, 60) is True
    assert rl.allow("a", 1, 60) is False


def test_memory_rate_limiter_drops_idle_keys():
    clock = FakeClock()
    rl = InMemoryRateLimiter(clock=clock, sweep_interval=30)
    assert rl.allow("send-otp:+15551230000", 1, 60) is True
    clock.now += 61
    assert rl.allow("send-otp:+15559990000", 1, 60) is True
    assert list(rl._store) == ["send-otp:+15559990000"]


def test_memory_rate_limiter_is_consistent_across_threads():
    rl = InMemoryRateLimiter()
    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(rl.allow("k", 1, 60))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1


class FakePipe:
    def __init__(self, client):
        self.client = client
        self.ops = []

    def incr(self, key, amount):
        self.ops.append(("incr", key, amount))
        return self

    def expire(self, key, seconds, nx=False):
        self.ops.append(("expire", key, seconds, nx))
        return self

    def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "incr":
                self.client.store[op[1]] = self.client.store.get(op[1], 0) + op[2]
                results.append(self.client.store[op[1]])
            else:
                results.append(True)
        self.client.executed.extend(self.ops)
        return results


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.executed = []

    def pipeline(self):
        return FakePipe(self)


def test_redis_rate_limiter_counts_per_window():
    client = FakeRedis()
    rl = RedisRateLimiter(client=client)
    assert rl.allow("k1", 2, 60) is True
    assert rl.allow("k1", 2, 60) is True
    assert rl.allow("k1", 2, 60) is False
    assert client.store == {"rl:k1:60": 3}
    assert ("expire", "rl:k1:60", 60, True) in client.executed


def test_redis_rate_limiter_requires_url_or_client():
    with pytest.raises(ValueError):
        RedisRateLimiter()
