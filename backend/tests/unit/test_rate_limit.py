"""
Unit Tests: Rate Limiting

Test cases:
- Fixed-window counting and reset
- Independent identifiers and endpoints
- Memory and SQL stores behave the same
- Fail open on store errors, including repeated insert collisions
- Retry-After derived from the limiter clock
- Expired window cleanup
- Client IP resolution
"""

from datetime import datetime, timezone

import pytest

from wagr.rate_limit import (
    MemoryRateLimitStore,
    RateLimiter,
    SQLRateLimitStore,
    create_store_engine,
    get_client_ip,
)
from wagr.rate_limit.stores import rate_limits_table


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class BrokenStore:
    def consume(self, identifier, endpoint, window_start, limit):
        raise RuntimeError("database unavailable")

    def purge_before(self, cutoff):
        raise RuntimeError("database unavailable")


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return MemoryRateLimitStore()
    return SQLRateLimitStore(create_store_engine("sqlite://"))


def test_allows_up_to_limit_then_blocks(store) -> None:
    limiter = RateLimiter(store, clock=FakeClock(125.0))

    results = [limiter.check("1.2.3.4", "/api/wagers", 3, 60) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[-1].reset_at == datetime.fromtimestamp(180, tz=timezone.utc)


def test_new_window_resets_count(store) -> None:
    clock = FakeClock(125.0)
    limiter = RateLimiter(store, clock=clock)

    for _ in range(2):
        limiter.check("user-1", "/api/wagers", 2, 60)
    assert not limiter.check("user-1", "/api/wagers", 2, 60).allowed

    clock.now = 181.0
    result = limiter.check("user-1", "/api/wagers", 2, 60)

    assert result.allowed
    assert result.remaining == 1


def test_identifiers_and_endpoints_are_counted_separately(store) -> None:
    limiter = RateLimiter(store, clock=FakeClock(10.0))

    assert limiter.check("a", "/x", 1, 60).allowed
    assert not limiter.check("a", "/x", 1, 60).allowed
    assert limiter.check("b", "/x", 1, 60).allowed
    assert limiter.check("a", "/y", 1, 60).allowed


def test_store_failure_fails_open() -> None:
    limiter = RateLimiter(BrokenStore(), clock=FakeClock(10.0))

    result = limiter.check("a", "/x", 5, 60)

    assert result.allowed
    assert result.remaining == 5


def test_purge_drops_old_windows(store) -> None:
    clock = FakeClock(30.0)
    limiter = RateLimiter(store, clock=clock, retention_seconds=3600)
    limiter.check("a", "/x", 5, 60)

    clock.now = 7200.0
    assert limiter.purge_expired() == 1

    result = limiter.check("a", "/x", 5, 60)
    assert result.remaining == 4


def test_check_triggers_periodic_purge() -> None:
    store = MemoryRateLimitStore()
    clock = FakeClock(30.0)
    limiter = RateLimiter(
        store, clock=clock, purge_interval_seconds=60, retention_seconds=120
    )
    limiter.check("a", "/x", 5, 60)

    clock.now = 1000.0
    limiter.check("b", "/x", 5, 60)

    assert store.purge_before(10_000) == 1


def test_get_client_ip_prefers_forwarded_header() -> None:
    headers = {"x-forwarded-for": "203.0.113.9, 10.0.0.1", "x-real-ip": "10.0.0.2"}
    assert get_client_ip(headers) == "203.0.113.9"


def test_get_client_ip_fallbacks() -> None:
    assert get_client_ip({"x-real-ip": "198.51.100.7"}) == "198.51.100.7"
    assert get_client_ip({}, fallback="127.0.0.1") == "127.0.0.1"
    assert get_client_ip({}) == "unknown"


def test_retry_after_follows_injected_clock(store) -> None:
    limiter = RateLimiter(store, clock=FakeClock(125.0))
    limiter.check("a", "/x", 1, 60)

    blocked = limiter.check("a", "/x", 1, 60)

    assert not blocked.allowed
    assert blocked.retry_after_seconds == 55


def test_retry_after_is_at_least_one_second() -> None:
    limiter = RateLimiter(MemoryRateLimitStore(), clock=FakeClock(179.6))

    assert limiter.check("a", "/x", 1, 60).retry_after_seconds == 1


class CollidingSQLStore(SQLRateLimitStore):
    """Never sees the existing window row, so every insert collides with it."""

    def _key(self, identifier, endpoint, window_start):
        return rate_limits_table.c.identifier == "nobody"


def test_sql_store_raises_when_insert_keeps_colliding() -> None:
    engine = create_store_engine("sqlite://")
    SQLRateLimitStore(engine).consume("a", "/x", 0, 5)
    store = CollidingSQLStore(engine)

    with pytest.raises(RuntimeError):
        store.consume("a", "/x", 0, 5)

    result = RateLimiter(store, clock=FakeClock(10.0)).check("a", "/x", 5, 60)
    assert result.allowed
    assert result.remaining == 5
