"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-the-console-api-0123456789")

from tests.sample_data import (  # noqa: E402
    make_flat_movement_records,
    make_movement_records,
    make_product_records,
    make_user_records,
)


class FakeStockService:
    """In-memory stand-in for the remote stock service, served through httpx.MockTransport."""

    USERS = {"alice": "ROLE_USER", "admin": "ROLE_ADMIN,ROLE_USER"}

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.revoked: set[str] = set()
        self.failing: dict[str, int] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/auth/login":
            body = json.loads(request.content)
            if body.get("password") != "secret" or body.get("username") not in self.USERS:
                return httpx.Response(401, json={"message": "Bad credentials"})
            username = body["username"]
            return httpx.Response(
                200, json={"token": f"upstream-{username}", "username": username, "roles": self.USERS[username]}
            )

        token = (request.headers.get("Authorization") or "").removeprefix("Bearer ")
        if not token.startswith("upstream-") or token in self.revoked:
            return httpx.Response(401, json={"message": "Token expired"})
        if path in self.failing:
            return httpx.Response(self.failing[path], json={"message": "upstream failure"})

        if path == "/api/movements":
            return httpx.Response(200, json=make_movement_records())
        if path == "/api/stock-movements":
            return httpx.Response(200, json=make_flat_movement_records())
        if path == "/api/products":
            products = make_product_records()
            return httpx.Response(
                200,
                json={
                    "content": products[:2],
                    "number": int(request.url.params.get("page", 0)),
                    "size": 2,
                    "totalElements": len(products),
                    "totalPages": 3,
                },
            )
        if path == "/api/users":
            return httpx.Response(200, json=make_user_records())
        if path == "/api/dashboard/metrics":
            return httpx.Response(200, json={"products": 5, "warehouses": 3, "totalStockQty": 120})
        if path.startswith("/reports/"):
            return httpx.Response(200, content=b"%PDF-report", headers={"content-type": "application/pdf"})
        return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
def stock_service() -> FakeStockService:
    return FakeStockService()


@pytest.fixture
def client(stock_service, monkeypatch) -> TestClient:
    """TestClient wired to the fake stock service, with a fresh dataset cache."""
    from backend.main import app
    from backend.dependencies import console as console_deps
    from backend.dependencies import security

    monkeypatch.setattr(console_deps, "_DATASET_CACHE", None)
    security.REVOKED.clear()
    console_deps.get_settings.cache_clear()
    app.dependency_overrides[console_deps.get_stock_transport] = stock_service.transport
    yield TestClient(app)
    app.dependency_overrides.clear()
    console_deps.get_settings.cache_clear()


def _login(client: TestClient, username: str) -> dict[str, str]:
    response = client.post("/auth/token", data={"username": username, "password": "secret"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def user_headers(client) -> dict[str, str]:
    return _login(client, "alice")


@pytest.fixture
def admin_headers(client) -> dict[str, str]:
    return _login(client, "admin")
