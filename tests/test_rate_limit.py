"""Tests for the sliding-window rate limiter."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.middleware.rate_limit import RateLimitMiddleware


def _limiter(app: FastAPI) -> RateLimitMiddleware:
    node = app.middleware_stack
    while node is not None and not isinstance(node, RateLimitMiddleware):
        node = getattr(node, "app", None)
    return node


@pytest.fixture
def limited(clock):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, requests_per_minute=2, clock=clock)

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app, TestClient(app)


def tenant(tenant_id):
    return {"X-Tenant-Id": str(tenant_id)}


def test_blocks_after_limit(limited):
    _, client = limited

    first = client.get("/ping", headers=tenant(1))
    client.get("/ping", headers=tenant(1))
    blocked = client.get("/ping", headers=tenant(1))

    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert blocked.status_code == 429
    assert blocked.headers["Retry-After"] == "60"


def test_tenants_have_separate_windows(limited):
    _, client = limited
    client.get("/ping", headers=tenant(1))
    client.get("/ping", headers=tenant(1))
    assert client.get("/ping", headers=tenant(2)).status_code == 200


def test_window_slides(limited, clock):
    _, client = limited
    client.get("/ping", headers=tenant(1))
    client.get("/ping", headers=tenant(1))
    clock.advance(61)
    assert client.get("/ping", headers=tenant(1)).status_code == 200


def test_idle_clients_are_forgotten(limited, clock):
    app, client = limited
    for tenant_id in range(1, 6):
        client.get("/ping", headers=tenant(tenant_id))
    assert _limiter(app).tracked_clients == 5

    clock.advance(61)
    client.get("/ping", headers=tenant(99))

    assert _limiter(app).tracked_clients == 1


def test_exempt_paths_are_not_counted(limited):
    app, client = limited
    for _ in range(5):
        assert client.get("/health", headers=tenant(1)).status_code == 200
    assert _limiter(app).tracked_clients == 0
