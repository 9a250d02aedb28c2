import math
from dataclasses import dataclass

import pytest

from mcpservers.ratelimit import (
    OverloadedError,
    RateLimiter,
    global_rate_limiter_middleware,
    per_method_rate_limiter_middleware,
    per_session_rate_limiter_middleware,
)


@dataclass
class FakeSession:
    id: str


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def echo(session, method, params):
    return (method, params)


def test_burst_then_denied_without_refill():
    limiter = RateLimiter(0, 2)
    assert [limiter.allow() for _ in range(3)] == [True, True, False]


def test_refills_over_time():
    clock = FakeClock()
    limiter = RateLimiter(1, 1, clock=clock)
    assert limiter.allow() is True
    assert limiter.allow() is False
    clock.now += 1.0
    assert limiter.allow() is True
    assert limiter.allow() is False


def test_refill_capped_at_burst():
    clock = FakeClock()
    limiter = RateLimiter(1, 2, clock=clock)
    assert limiter.allow() and limiter.allow()
    clock.now += 100.0
    results = [limiter.allow() for _ in range(3)]
    assert results == [True, True, False]


def test_infinite_rate_always_allows():
    limiter = RateLimiter(math.inf, 0)
    assert all(limiter.allow() for _ in range(50))


def test_negative_values_rejected():
    with pytest.raises(ValueError):
        RateLimiter(-1, 1)
    with pytest.raises(ValueError):
        RateLimiter(1, -1)


def test_global_middleware_rejects_when_exhausted():
    handler = global_rate_limiter_middleware(RateLimiter(0, 1))(echo)
    assert handler(FakeSession("s"), "tools/list", {"a": 1}) == ("tools/list", {"a": 1})
    with pytest.raises(OverloadedError) as info:
        handler(FakeSession("s"), "tools/list", None)
    assert str(info.value) == "JSON RPC overloaded"


def test_per_method_only_limits_listed_methods():
    handler = per_method_rate_limiter_middleware({"callTool": RateLimiter(0, 1)})(echo)
    session = FakeSession("s")
    assert handler(session, "callTool", None) == ("callTool", None)
    with pytest.raises(OverloadedError):
        handler(session, "callTool", None)
    for _ in range(5):
        assert handler(session, "listTools", None) == ("listTools", None)


def test_per_session_limits_each_session_separately():
    handler = per_session_rate_limiter_middleware(0, 1)(echo)
    assert handler(FakeSession("one"), "m", None) == ("m", None)
    assert handler(FakeSession("two"), "m", None) == ("m", None)
    with pytest.raises(OverloadedError):
        handler(FakeSession("one"), "m", None)
    with pytest.raises(OverloadedError):
        handler(FakeSession("two"), "m", None)


def test_per_session_skips_empty_id():
    handler = per_session_rate_limiter_middleware(0, 0)(echo)
    for _ in range(3):
        assert handler(FakeSession(""), "initialize", 7) == ("initialize", 7)


def test_per_session_accepts_id_method():
    class MethodSession:
        def id(self):
            return "abc"

    handler = per_session_rate_limiter_middleware(0, 1)(echo)
    assert handler(MethodSession(), "m", None) == ("m", None)
    with pytest.raises(OverloadedError):
        handler(MethodSession(), "m", None)


def test_middlewares_compose():
    handler = global_rate_limiter_middleware(RateLimiter(0, 5))(
        per_method_rate_limiter_middleware({"m": RateLimiter(0, 1)})(echo)
    )
    assert handler(FakeSession("s"), "m", None) == ("m", None)
    with pytest.raises(OverloadedError):
        handler(FakeSession("s"), "m", None)
    assert handler(FakeSession("s"), "other", None) == ("other", None)