"""
Unit Tests - API Middleware
"""
from fastapi import Request, Response

from cardlink.serving.api.middleware import RateLimitMiddleware


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def make_request(ip: str) -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/v1/health",
        "query_string": b"",
        "headers": [],
        "client": (ip, 50000),
    })


async def ok(request: Request) -> Response:
    return Response(content="ok")


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware"""

    async def test_limit_enforced_per_client(self):
        limiter = RateLimitMiddleware(app=None, max_requests=2, window_seconds=60, clock=FakeClock())

        first = await limiter.dispatch(make_request("10.0.0.1"), ok)
        second = await limiter.dispatch(make_request("10.0.0.1"), ok)
        blocked = await limiter.dispatch(make_request("10.0.0.1"), ok)
        other = await limiter.dispatch(make_request("10.0.0.2"), ok)

        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.headers["X-RateLimit-Remaining"] == "0"
        assert blocked.status_code == 429
        assert blocked.headers["Retry-After"] == "60"
        assert other.status_code == 200

    async def test_window_resets_after_expiry(self):
        clock = FakeClock()
        limiter = RateLimitMiddleware(app=None, max_requests=1, window_seconds=60, clock=clock)

        await limiter.dispatch(make_request("10.0.0.1"), ok)
        clock.now += 61

        response = await limiter.dispatch(make_request("10.0.0.1"), ok)

        assert response.status_code == 200

    async def test_idle_clients_are_dropped(self):
        clock = FakeClock()
        limiter = RateLimitMiddleware(app=None, max_requests=10, window_seconds=60, clock=clock)

        for index in range(500):
            await limiter.dispatch(make_request(f"10.0.{index // 250}.{index % 250}"), ok)
        assert len(limiter._requests) == 500

        clock.now += 61
        await limiter.dispatch(make_request("192.0.2.1"), ok)

        assert list(limiter._requests) == ["192.0.2.1"]

    async def test_active_clients_survive_sweep(self):
        clock = FakeClock()
        limiter = RateLimitMiddleware(app=None, max_requests=10, window_seconds=60, clock=clock)

        await limiter.dispatch(make_request("10.0.0.1"), ok)
        clock.now += 30
        await limiter.dispatch(make_request("10.0.0.2"), ok)
        clock.now += 31
        await limiter.dispatch(make_request("10.0.0.3"), ok)

        assert set(limiter._requests) == {"10.0.0.2", "10.0.0.3"}
