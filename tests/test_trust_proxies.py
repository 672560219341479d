import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from app.middlewares.trust_proxies import TrustedProxiesMiddleware, resolve_client_ip


@pytest.mark.parametrize(
    ("header", "proxies", "expected"),
    [
        ("203.0.113.7, 10.0.0.1", 1, "203.0.113.7"),
        ("198.51.100.2, 203.0.113.7, 10.0.0.1", 1, "203.0.113.7"),
        ("198.51.100.2, 203.0.113.7, 10.0.0.1", 2, "198.51.100.2"),
        ("10.0.0.1", 1, None),
        ("203.0.113.7, 10.0.0.1", 0, None),
    ],
)
def test_resolve_client_ip(header, proxies, expected):
    assert resolve_client_ip(header, proxies) == expected


def _build_app(proxies_count: int) -> FastAPI:
    app = FastAPI()
    app.add_middleware(TrustedProxiesMiddleware, proxies_count=proxies_count)

    @app.get("/ip")
    async def read_ip(request: Request):
        return {"ip": request.client.host if request.client else None}

    return app


def test_middleware_rewrites_client_address():
    client = TestClient(_build_app(1))
    resp = client.get("/ip", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert resp.json() == {"ip": "203.0.113.7"}


def test_middleware_ignores_short_chain():
    client = TestClient(_build_app(1))
    resp = client.get("/ip", headers={"X-Forwarded-For": "10.0.0.1"})
    assert resp.json() == {"ip": "testclient"}
