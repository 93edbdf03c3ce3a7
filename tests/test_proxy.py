import json

import httpx
import pytest
from fastapi.testclient import TestClient

from ucp_chat.main import app

client = TestClient(app)


def test_health():
    assert client.get("/api/health").json() == {"status": "ok"}


def test_base_url_is_required(upstream, merchant):
    response = client.post("/api/ucp/proxy", json={"method": "GET", "path": "/catalog"})

    assert response.status_code == 400
    assert response.json() == {"error": "baseUrl is required"}
    assert merchant.requests == []


def test_json_body_is_parsed_and_status_preserved(upstream, merchant):
    merchant.reply("POST", "/checkout-sessions", status=201, json={"id": "cs_1"})
    headers = {"Content-Type": "application/json", "Idempotency-Key": "abc"}

    response = client.post("/api/ucp/proxy", json={
        "method": "POST",
        "path": "/checkout-sessions",
        "body": {"currency": "USD"},
        "headers": headers,
        "baseUrl": "https://shop.example.com",
    })

    assert response.status_code == 201
    assert response.json() == {
        "data": {"id": "cs_1"},
        "debug": {"sentHeaders": headers, "url": "https://shop.example.com/checkout-sessions"},
    }
    sent = merchant.requests[0]
    assert json.loads(sent.content) == {"currency": "USD"}
    assert sent.headers["idempotency-key"] == "abc"


def test_non_json_body_is_wrapped(upstream, merchant):
    merchant.reply("GET", "/catalog", status=502, text="<html>Bad gateway</html>")

    response = client.post("/api/ucp/proxy", json={
        "method": "GET", "path": "/catalog", "baseUrl": "https://shop.example.com",
    })

    assert response.status_code == 502
    assert response.json()["data"] == {"response": "<html>Bad gateway</html>"}


def test_empty_body_becomes_empty_mapping(upstream, merchant):
    merchant.reply("POST", "/checkout-sessions/cs_1/cancel", text="")

    response = client.post("/api/ucp/proxy", json={
        "method": "POST", "path": "/checkout-sessions/cs_1/cancel", "baseUrl": "https://shop.example.com",
    })

    assert response.status_code == 200
    assert response.json()["data"] == {}
    assert merchant.requests[0].content == b""


def test_relay_failure_is_500(upstream, merchant):
    merchant.fail("GET", "/.well-known/ucp", httpx.ConnectError("name resolution failed"))

    response = client.post("/api/ucp/proxy", json={
        "method": "GET", "path": "/.well-known/ucp", "baseUrl": "https://nowhere.example",
    })

    assert response.status_code == 500
    assert response.json() == {"error": "name resolution failed"}


@pytest.mark.parametrize("payload", [
    {"method": "GET", "path": 123, "baseUrl": "https://shop.example.com"},
    {"method": "GET", "path": "/catalog", "headers": ["Accept"], "baseUrl": "https://shop.example.com"},
    ["GET", "/catalog"],
])
def test_malformed_request_is_500_with_error(upstream, merchant, payload):
    response = client.post("/api/ucp/proxy", json=payload)

    assert response.status_code == 500
    assert set(response.json()) == {"error"}
    assert merchant.requests == []


def test_non_json_request_is_500_with_error(upstream, merchant):
    response = client.post("/api/ucp/proxy", content=b"method=GET", headers={"Content-Type": "text/plain"})

    assert response.status_code == 500
    assert "error" in response.json()
    assert merchant.requests == []
