from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from crm_mcp.config import GatewaySettings
from crm_mcp.gateway import build_app_context
from crm_mcp.http_app import create_app

from conftest import clock, make_store


def _client(token=None) -> TestClient:
    settings = GatewaySettings(store_backend="memory", transport="http", token=token)
    context = build_app_context(settings, store=make_store(), clock=clock)
    return TestClient(create_app(context))


@pytest.fixture(autouse=True)
def not_production(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)


def test_health_is_public() -> None:
    response = _client(token="secret").get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "status": "healthy", "domains": ["contacts", "leads", "tasks"]}


def test_metrics_render_prometheus_text() -> None:
    response = _client(token="secret").get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "crm_mcp_healthy 1" in response.text


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer wrong"}])
def test_mcp_endpoints_require_token(headers) -> None:
    client = _client(token="secret")
    for domain in ("tasks", "leads", "contacts"):
        response = client.post(f"/{domain}/mcp", json={}, headers=headers)
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"


def test_production_without_token_is_unavailable(monkeypatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "production")
    response = _client().post("/tasks/mcp", json={})
    assert response.status_code == 503


def test_metrics_label_calls_by_domain_and_outcome() -> None:
    settings = GatewaySettings(store_backend="memory", transport="http", token="secret")
    context = build_app_context(settings, store=make_store(), clock=clock)
    context.metrics.record("tasks", "get_tasks", 2.0, error=False)
    context.metrics.record("tasks", "get_tasks", 3.0, error=True)
    context.metrics.record("leads", "get_leads", 1.5, error=False)

    text = TestClient(create_app(context)).get("/metrics").text

    assert 'crm_mcp_tool_calls_total{domain="tasks",tool="get_tasks",outcome="success"} 1' in text
    assert 'crm_mcp_tool_calls_total{domain="tasks",tool="get_tasks",outcome="error"} 1' in text
    assert 'crm_mcp_tool_calls_total{domain="leads",tool="get_leads",outcome="success"} 1' in text
    assert 'crm_mcp_tool_latency_ms_sum{domain="tasks",tool="get_tasks"} 5.000' in text


def test_auth_only_guards_mcp_paths() -> None:
    client = _client(token="secret")
    assert client.get("/health", headers={"Authorization": "Bearer wrong"}).status_code == 200
    # unknown non-MCP routes fall through to the router
    assert client.get("/tasks/other").status_code == 404


def test_missing_header_message() -> None:
    response = _client(token="secret").post("/leads/mcp/", json={})
    assert response.status_code == 401
    assert response.json() == {"error": "unauthorized", "message": "Missing or invalid Authorization header"}
