import pytest

from codequest.config import settings
from codequest.core.exceptions import RateLimitExceededError
from codequest.services.rate_limiter import InMemoryRateLimiter


def test_allow_enforces_limit_per_key():
    limiter = InMemoryRateLimiter()
    assert limiter.allow("k", 2, 60) is True
    assert limiter.allow("k", 2, 60) is True
    assert limiter.allow("k", 2, 60) is False
    assert limiter.allow("other", 2, 60) is True
    assert limiter.remaining("k", 2, 60) == 0
    assert limiter.remaining("fresh", 2, 60) == 2


def test_window_slides(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr("codequest.services.rate_limiter.time.time", lambda: now[0])
    limiter = InMemoryRateLimiter()
    assert limiter.allow("k", 1, 60) is True
    assert limiter.allow("k", 1, 60) is False
    now[0] += 61
    assert limiter.allow("k", 1, 60) is True


def test_check_run_per_minute_budget(monkeypatch):
    monkeypatch.setattr(settings, "RUN_RATE_LIMIT_PER_MINUTE", 2)
    limiter = InMemoryRateLimiter()
    limiter.check_run("learning", "10.0.0.1", "ada")
    limiter.check_run("learning", "10.0.0.1", "ada")
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check_run("learning", "10.0.0.1", "ada")
    assert exc_info.value.status_code == 429

    # separate budgets per learner and per endpoint family
    limiter.check_run("learning", "10.0.0.1", "grace")
    limiter.check_run("execution", "10.0.0.1")

    limiter.reset()
    limiter.check_run("learning", "10.0.0.1", "ada")


def test_check_run_hourly_budget(monkeypatch):
    monkeypatch.setattr(settings, "RUN_RATE_LIMIT_PER_MINUTE", 100)
    monkeypatch.setattr(settings, "RUN_RATE_LIMIT_PER_HOUR", 1)
    limiter = InMemoryRateLimiter()
    limiter.check_run("execution", "10.0.0.2")
    with pytest.raises(RateLimitExceededError) as exc_info:
        limiter.check_run("execution", "10.0.0.2")
    assert "Hourly" in exc_info.value.message
