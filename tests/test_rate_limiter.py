from unittest.mock import MagicMock

import pytest
import redis
from fastapi import HTTPException
from starlette.requests import Request

from app.services import rate_limiter
from app.services.rate_limiter import RateLimiter, get_client_identifier, rate_limit


def redis_with_count(count):
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [0, count, 1, True]
    return client


def make_request(headers=None, host="10.0.0.1"):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/auth/login",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (host, 5000),
    }
    return Request(scope)


def test_allows_until_limit_reached():
    allowed, remaining, _ = RateLimiter(redis_with_count(3)).check("auth:1.2.3.4", 10, 60)
    assert allowed is True
    assert remaining == 6

    allowed, remaining, _ = RateLimiter(redis_with_count(10)).check("auth:1.2.3.4", 10, 60)
    assert allowed is False
    assert remaining == 0


def test_window_is_trimmed_and_key_expires():
    client = redis_with_count(0)
    RateLimiter(client).check("otp:1.2.3.4", 5, 300)

    pipe = client.pipeline.return_value
    key = pipe.zremrangebyscore.call_args[0][0]
    assert key == "rate_limit:otp:1.2.3.4"
    pipe.expire.assert_called_once_with(key, 300)


def test_fails_open_when_redis_is_down():
    client = MagicMock()
    client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")

    allowed, remaining, _ = RateLimiter(client).check("ai:1.2.3.4", 20, 60)
    assert allowed is True
    assert remaining == 19


def test_client_identifier_ignores_forwarded_for_from_untrusted_peer(monkeypatch):
    monkeypatch.setattr(rate_limiter.settings, "trusted_proxies", [])
    spoofed = make_request({"X-Forwarded-For": "198.51.100.7"}, host="203.0.113.9")
    assert get_client_identifier(spoofed) == "203.0.113.9"
    assert get_client_identifier(make_request()) == "10.0.0.1"


def test_client_identifier_reads_forwarded_for_behind_trusted_proxy(monkeypatch):
    monkeypatch.setattr(rate_limiter.settings, "trusted_proxies", ["10.0.0.1", "10.0.0.2"])
    request = make_request({"X-Forwarded-For": "198.51.100.7, 203.0.113.9, 10.0.0.2"})
    assert get_client_identifier(request) == "203.0.113.9"

    only_proxies = make_request({"X-Forwarded-For": "10.0.0.2"})
    assert get_client_identifier(only_proxies) == "10.0.0.1"


def test_dependency_raises_429_with_retry_after(monkeypatch):
    monkeypatch.setattr(rate_limiter.settings, "rate_limit_enabled", True)
    monkeypatch.setattr(rate_limiter, "get_redis", lambda: redis_with_count(10))

    with pytest.raises(HTTPException) as exc_info:
        rate_limit("auth")(make_request())

    assert exc_info.value.status_code == 429
    assert int(exc_info.value.headers["Retry-After"]) >= 1


def test_dependency_is_a_no_op_when_disabled(monkeypatch):
    monkeypatch.setattr(rate_limiter.settings, "rate_limit_enabled", False)
    monkeypatch.setattr(rate_limiter, "get_redis", lambda: pytest.fail("redis should not be used"))

    assert rate_limit("auth")(make_request()) is None
