import pytest


@pytest.fixture
def clock(monkeypatch):
    from sharebox.core import rate_limit

    now = {"value": 1000.0}
    monkeypatch.setattr(rate_limit, "REDIS_URL", "")
    monkeypatch.setattr(rate_limit, "monotonic", lambda: now["value"])
    return now


def test_limit_applies_per_client_within_window(clock):
    from sharebox.core.rate_limit import RateLimiter

    limiter = RateLimiter(2, window_seconds=60)
    assert limiter.hit("a")[0] is True
    assert limiter.hit("a")[0] is True
    allowed, retry_after = limiter.hit("a")
    assert allowed is False
    assert retry_after == 60
    assert limiter.hit("b")[0] is True

    clock["value"] += 61
    assert limiter.hit("a")[0] is True


def test_expired_windows_are_evicted(clock):
    from sharebox.core.rate_limit import RateLimiter

    limiter = RateLimiter(5, window_seconds=60)
    for client_ip in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
        limiter.hit(client_ip)
    assert len(limiter._clients) == 3

    clock["value"] += 120
    limiter.hit("10.0.0.9")
    assert set(limiter._clients) == {"10.0.0.9"}
