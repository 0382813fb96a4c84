from __future__ import annotations

import json

import httpx
import pytest

from crm_mcp.config import GatewaySettings
from crm_mcp.errors import DataStoreError
from crm_mcp.memory_store import InMemoryStore
from crm_mcp.store import PostgrestStore, Query, create_store, to_postgrest_params

BASE_URL = "https://project.supabase.test"
KEY = "service-role-key-123456"


def test_params_for_filters_search_order_and_page() -> None:
    query = (
        Query("leads")
        .eq("interest", "Hot")
        .gte("lead_score", 70)
        .search(("name", "email"), "acme co")
        .order("created_at", ascending=False)
        .page(10, 20)
    )
    assert to_postgrest_params(query) == [
        ("select", "*"),
        ("interest", "eq.Hot"),
        ("lead_score", "gte.70"),
        ("or", '(name.ilike."*acme co*",email.ilike."*acme co*")'),
        ("order", "created_at.desc"),
        ("limit", "10"),
        ("offset", "20"),
    ]


def test_params_for_membership_containment_and_nulls() -> None:
    query = (
        Query("contacts_master", columns="id, city")
        .in_("status", ["To Do", "In Progress"])
        .contains("tags", ["vip", "b2b"])
        .ilike("city", "pune")
        .eq("deleted_at", None)
        .eq("is_primary", True)
        .order("priority", ascending=False)
        .order("due_date")
    )
    assert to_postgrest_params(query) == [
        ("select", "id, city"),
        ("status", 'in.("To Do","In Progress")'),
        ("tags", "cs.{vip,b2b}"),
        ("city", "ilike.pune"),
        ("deleted_at", "is.null"),
        ("is_primary", "eq.true"),
        ("order", "priority.desc,due_date.asc"),
    ]


def _store(handler) -> PostgrestStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PostgrestStore(client, BASE_URL + "/", KEY)


@pytest.mark.asyncio
async def test_select_sends_service_role_headers() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "T1"}])

    store = _store(handler)
    rows = await store.select(Query("tasks").eq("status", "To Do").limit(5))
    await store.aclose()

    assert rows == [{"id": "T1"}]
    (request,) = seen
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/tasks"
    assert request.url.params["status"] == "eq.To Do"
    assert request.url.params["limit"] == "5"
    assert request.headers["apikey"] == KEY
    assert request.headers["authorization"] == f"Bearer {KEY}"


@pytest.mark.asyncio
async def test_insert_returns_representation() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = json.loads(request.content)
        return httpx.Response(201, json=[{"id": "new", **body}])

    store = _store(handler)
    row = await store.insert("tasks", {"title": "X"})
    await store.aclose()

    assert row == {"id": "new", "title": "X"}
    assert seen[0].method == "POST"
    assert seen[0].headers["prefer"] == "return=representation"


@pytest.mark.asyncio
async def test_update_and_delete_target_filters_only() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "PATCH":
            return httpx.Response(200, json=[{"id": "T1", "status": "Completed"}])
        return httpx.Response(204)

    store = _store(handler)
    updated = await store.update(Query("tasks").eq("id", "T1"), {"status": "Completed"})
    await store.delete(Query("tasks").eq("id", "T1"))
    await store.aclose()

    assert updated == [{"id": "T1", "status": "Completed"}]
    patch, delete = seen
    assert patch.method == "PATCH"
    assert patch.url.params["id"] == "eq.T1"
    assert json.loads(patch.content) == {"status": "Completed"}
    assert delete.method == "DELETE"
    assert list(delete.url.params.items()) == [("id", "eq.T1")]


@pytest.mark.asyncio
async def test_http_error_raises_data_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": 'column "nope" does not exist'})

    store = _store(handler)
    with pytest.raises(DataStoreError) as exc_info:
        await store.select(Query("tasks").eq("nope", 1))
    await store.aclose()

    assert exc_info.value.status_code == 400
    assert "does not exist" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_error_raises_data_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(handler)
    with pytest.raises(DataStoreError):
        await store.select(Query("tasks"))
    await store.aclose()


@pytest.mark.asyncio
async def test_maybe_single_rejects_multiple_rows() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": "a"}, {"id": "b"}])

    store = _store(handler)
    with pytest.raises(DataStoreError):
        await store.maybe_single(Query("ai_agent_permissions").eq("agent_id", "a"))
    await store.aclose()


@pytest.mark.asyncio
async def test_create_store_selects_backend(tmp_path) -> None:
    seed = tmp_path / "seed.yaml"
    seed.write_text("tasks:\n  - id: T1\n    title: Seeded\n", encoding="utf-8")

    memory = create_store(GatewaySettings(store_backend="memory", seed_file=str(seed)))
    assert isinstance(memory, InMemoryStore)
    assert (await memory.select(Query("tasks")))[0]["title"] == "Seeded"

    remote = create_store(GatewaySettings(store_backend="postgrest", store_url=BASE_URL, service_role_key=KEY))
    assert isinstance(remote, PostgrestStore)
    assert remote.http_client.follow_redirects is False
    await remote.aclose()
