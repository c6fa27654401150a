import pytest

from utils.ratelimit import (
    RATE_LIMIT_PRESETS, MemoryRateLimitStore, RateLimitConfig, check_rate_limit,
)


@pytest.fixture()
def store():
    return MemoryRateLimitStore(sweep_interval=60, clock=lambda: 1000.0)


def test_presets_are_named_fixed_windows():
    assert set(RATE_LIMIT_PRESETS) == {"strict", "normal", "relaxed", "auth", "ai"}
    assert RATE_LIMIT_PRESETS["auth"].max_requests == 5
    assert all(c.window_seconds == 60 for c in RATE_LIMIT_PRESETS.values())


def test_max_requests_allowed_then_rejected(store):
    cfg = RateLimitConfig(window_seconds=60, max_requests=3)
    results = [check_rate_limit("1.2.3.4", cfg, store=store, now=1000.0 + i) for i in range(4)]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[-1].reset_at == 1060.0
    assert results[-1].retry_after(1003.0) == 57


def test_injected_store_receives_the_hit():
    mine = MemoryRateLimitStore()
    check_rate_limit("10.0.0.1", RateLimitConfig(window_seconds=60, max_requests=5), store=mine, now=1000.0)
    assert len(mine) == 1
    assert mine.get("10.0.0.1").count == 1


def test_identities_are_independent(store):
    cfg = RateLimitConfig(window_seconds=60, max_requests=1)
    assert check_rate_limit("a", cfg, store=store, now=1000.0).allowed
    assert not check_rate_limit("a", cfg, store=store, now=1001.0).allowed
    assert check_rate_limit("b", cfg, store=store, now=1001.0).allowed


def test_window_resets_after_reset_at(store):
    cfg = RateLimitConfig(window_seconds=60, max_requests=2)
    for i in range(5):
        check_rate_limit("x", cfg, store=store, now=1000.0 + i)
    assert store.get("x").count == 5

    fresh = check_rate_limit("x", cfg, store=store, now=1061.0)
    assert fresh.allowed
    assert store.get("x").count == 1
    assert fresh.reset_at == 1121.0


def test_sweep_removes_only_expired_entries(store):
    store.hit("old", 10, 1000.0)
    store.hit("new", 100, 1000.0)
    assert store.sweep(now=1050.0) == 1
    assert store.get("old") is None
    assert store.get("new") is not None


def test_hit_sweeps_lazily_once_interval_elapsed():
    s = MemoryRateLimitStore(sweep_interval=60, clock=lambda: 0.0)
    s.hit("a", 5, 0.0)
    s.hit("b", 5, 30.0)
    assert len(s) == 2
    s.hit("c", 5, 61.0)
    assert s.get("a") is None and s.get("b") is None
    assert len(s) == 1


class _FakePipeline:
    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def incr(self, key):
        self._ops.append(("incr", key))

    def pttl(self, key):
        self._ops.append(("pttl", key))

    def execute(self):
        out = []
        for op, key in self._ops:
            if op == "incr":
                self._redis.values[key] = self._redis.values.get(key, 0) + 1
                out.append(self._redis.values[key])
            else:
                out.append(self._redis.ttls.get(key, -1))
        return out


class _FakeRedis:
    def __init__(self):
        self.values, self.ttls = {}, {}

    def pipeline(self):
        return _FakePipeline(self)

    def pexpire(self, key, ms):
        self.ttls[key] = ms


def test_redis_store_counts_and_sets_expiry():
    from utils.ratelimit import RedisRateLimitStore

    fake = _FakeRedis()
    s = RedisRateLimitStore(fake)
    cfg = RateLimitConfig(window_seconds=60, max_requests=2)
    results = [check_rate_limit("ip", cfg, store=s, now=500.0) for _ in range(3)]
    assert [r.allowed for r in results] == [True, True, False]
    assert fake.ttls == {"rl:ip": 60000}
    assert results[0].reset_at == 560.0
