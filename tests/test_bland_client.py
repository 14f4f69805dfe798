import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from backend.bland_client import PathwayServiceClient, PathwayServiceError
from engine.assembler import assemble_pathway

BASE = "https://api.example.com/v1"


def make_client(handler) -> tuple[PathwayServiceClient, httpx.AsyncClient]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PathwayServiceClient("secret-key", BASE, client=http_client), http_client


@pytest.mark.asyncio
async def test_create_pathway_reads_nested_id():
    captured = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["json"] = json.loads(request.content.decode())
        return httpx.Response(200, json={"status": "success", "data": {"pathway_id": "pw_123"}})

    client, http_client = make_client(handler)
    async with http_client:
        pathway_id = await client.create_pathway("Sales", "Outbound sales")

    assert pathway_id == "pw_123"
    assert captured["url"] == f"{BASE}/pathway/create"
    assert captured["auth"] == "secret-key"
    assert captured["json"] == {"name": "Sales", "description": "Outbound sales"}


@pytest.mark.asyncio
async def test_publish_creates_then_uploads_graph():
    calls = []

    async def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode()) if request.content else None
        calls.append((request.method, request.url.path, body))
        if request.url.path.endswith("/pathway/create"):
            return httpx.Response(200, json={"data": {"pathway_id": "pw_9"}})
        return httpx.Response(200, json={"status": "success"})

    graph = assemble_pathway("Family Line", "insurance for my family").graph
    client, http_client = make_client(handler)
    async with http_client:
        pathway_id = await client.publish(graph)

    assert pathway_id == "pw_9"
    assert [(m, p) for m, p, _ in calls] == [("POST", "/v1/pathway/create"), ("POST", "/v1/pathway/pw_9")]
    uploaded = calls[1][2]
    assert uploaded["name"] == "Family Line"
    assert len(uploaded["nodes"]) == len(graph.nodes)
    assert uploaded["nodes"][0]["data"]["isStart"] is True
    assert all(isinstance(e["label"], str) for e in uploaded["edges"])


@pytest.mark.asyncio
async def test_list_pathways_maps_ids():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": "pw_1", "name": "One"}, {"pathway_id": "pw_2", "name": "Two"}])

    client, http_client = make_client(handler)
    async with http_client:
        pathways = await client.list_pathways()

    assert [p["pathway_id"] for p in pathways] == ["pw_1", "pw_2"]
    assert "id" not in pathways[0]


@pytest.mark.asyncio
async def test_delete_pathway_with_empty_body():
    seen = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        return httpx.Response(204)

    client, http_client = make_client(handler)
    async with http_client:
        assert await client.delete_pathway("pw_1") is None
    assert seen == {"method": "DELETE", "path": "/v1/pathway/pw_1"}


@pytest.mark.asyncio
async def test_http_errors_raise_service_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "not found"})

    client, http_client = make_client(handler)
    async with http_client:
        with pytest.raises(PathwayServiceError) as excinfo:
            await client.get_pathway("missing")
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_transport_errors_raise_service_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    client, http_client = make_client(handler)
    async with http_client:
        with pytest.raises(PathwayServiceError) as excinfo:
            await client.list_pathways()
    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_create_without_id_is_an_error():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "success", "data": {}})

    client, http_client = make_client(handler)
    async with http_client:
        with pytest.raises(PathwayServiceError):
            await client.create_pathway("Sales", "")


def test_api_key_is_required():
    with pytest.raises(ValueError):
        PathwayServiceClient("")
