from app.core.config import Settings
from app.services.rate_limit import SlidingWindowLimiter, build_rate_limiters


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_blocks_after_limit_within_window():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(limit=2, window_seconds=60, message="slow down", clock=clock)
    assert limiter.allow("client-1") is True
    assert limiter.allow("client-1") is True
    assert limiter.allow("client-1") is False
    assert limiter.allow("client-2") is True


def test_limiter_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(limit=1, window_seconds=60, message="slow down", clock=clock)
    assert limiter.allow("k") is True
    clock.now += 30
    assert limiter.allow("k") is False
    clock.now += 31
    assert limiter.allow("k") is True


def test_forgive_returns_the_last_hit():
    limiter = SlidingWindowLimiter(limit=1, window_seconds=60, message="slow down", clock=FakeClock())
    assert limiter.allow("k") is True
    limiter.forgive("k")
    assert limiter.allow("k") is True
    limiter.forgive("unknown")


def test_stale_keys_are_evicted():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(limit=5, window_seconds=10, message="m", clock=clock, max_keys=2)
    limiter.allow("a")
    limiter.allow("b")
    clock.now += 20
    limiter.allow("c")
    assert set(limiter._bucket) == {"c"}


def test_build_rate_limiters_uses_settings():
    limiters = build_rate_limiters(Settings())
    assert (limiters.login.limit, limiters.login.window_seconds) == (5, 900)
    assert (limiters.upload.limit, limiters.upload.window_seconds) == (3, 300)
    assert limiters.login.message == "Demasiados intentos de login. Intenta en 15 minutos."


def test_consume_reports_remaining_quota_and_reset():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(limit=2, window_seconds=60, message="slow down", clock=clock)

    first = limiter.consume("k")
    assert (first.allowed, first.remaining, first.reset_seconds) == (True, 1, 60)

    clock.now += 20.5
    second = limiter.consume("k")
    assert (second.allowed, second.remaining, second.reset_seconds) == (True, 0, 40)

    blocked = limiter.consume("k")
    assert blocked.allowed is False
    assert blocked.headers() == {
        "RateLimit-Limit": "2",
        "RateLimit-Remaining": "0",
        "RateLimit-Reset": "40",
        "Retry-After": "40",
    }
