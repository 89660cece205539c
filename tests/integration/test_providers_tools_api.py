"""Integration tests for provider, tool, permission and preference endpoints."""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient

from toolrelay_server.errors import ProviderError
from toolrelay_server.tools import ToolDefinition, ToolOrigin


class FakeProvider:
    """Stands in for an MCP connection; URLs containing 'down' refuse to connect."""

    def __init__(self, url, headers=None, provider_id=""):
        self.url = url
        self.provider_id = provider_id
        self.tools = []
        self.session = SimpleNamespace(session_id="sess-1")
        self.is_connected = False
        self.last_error = None

    async def connect(self):
        if "down" in self.url:
            raise ProviderError("connection refused")
        self.tools = [
            ToolDefinition(
                "remote_echo",
                "Echo text back",
                {"type": "object", "properties": {"text": {"type": "string"}}, "required": ["text"]},
                ToolOrigin.remote(self.provider_id),
            )
        ]
        self.is_connected = True
        return self.tools

    async def disconnect(self):
        self.tools = []
        self.is_connected = False


@pytest_asyncio.fixture
async def fake_providers(async_client: AsyncClient, test_app):
    """Make the running server connect through FakeProvider."""
    test_app.state.provider_manager.client_factory = FakeProvider
    return test_app.state.provider_manager


@pytest.mark.asyncio
async def test_add_and_list_provider(async_client: AsyncClient, fake_providers):
    response = await async_client.post(
        "/api/v1/providers", json={"url": "http://up.example/mcp", "name": "Echo"}
    )

    assert response.status_code == 201
    provider = response.json()
    assert provider["status"] == "connected"
    assert provider["tool_count"] == 1
    assert provider["session_id"] == "sess-1"

    listed = await async_client.get("/api/v1/providers")
    assert [p["id"] for p in listed.json()["providers"]] == [provider["id"]]


@pytest.mark.asyncio
async def test_unreachable_provider_reports_error(async_client: AsyncClient, fake_providers):
    """Test that a failing server is reported in its status, not as an HTTP error."""
    response = await async_client.post("/api/v1/providers", json={"url": "http://down.example/mcp"})

    assert response.status_code == 201
    assert response.json()["status"] == "error"
    assert response.json()["error"] == "connection refused"

    health = await async_client.get("/api/v1/health")
    assert health.json()["providers_connected"] == 0


@pytest.mark.asyncio
async def test_add_blank_provider_url(async_client: AsyncClient, fake_providers):
    response = await async_client.post("/api/v1/providers", json={"url": "   "})

    assert response.status_code == 400
    assert response.json()["detail"]["error"]["code"] == "invalid_provider"


@pytest.mark.asyncio
async def test_tools_include_remote_tools(async_client: AsyncClient, fake_providers):
    provider = (await async_client.post("/api/v1/providers", json={"url": "http://up.example/mcp"})).json()

    response = await async_client.get("/api/v1/tools")

    tools = response.json()["tools"]
    assert [t["name"] for t in tools] == ["getToolSchema", "evalCode", "listTools", "remote_echo"]
    assert tools[0]["origin"] == "builtin"
    assert tools[-1]["origin"] == "remote"
    assert tools[-1]["provider_id"] == provider["id"]


@pytest.mark.asyncio
async def test_toggle_and_remove_provider(async_client: AsyncClient, fake_providers):
    provider = (await async_client.post("/api/v1/providers", json={"url": "http://up.example/mcp"})).json()

    toggled = await async_client.post(f"/api/v1/providers/{provider['id']}/toggle")
    assert toggled.json()["enabled"] is False
    assert toggled.json()["status"] == "disabled"
    tools = (await async_client.get("/api/v1/tools")).json()["tools"]
    assert "remote_echo" not in [t["name"] for t in tools]

    removed = await async_client.delete(f"/api/v1/providers/{provider['id']}")
    assert removed.status_code == 204
    assert (await async_client.get("/api/v1/providers")).json()["providers"] == []


@pytest.mark.asyncio
async def test_unknown_provider(async_client: AsyncClient):
    toggled = await async_client.post("/api/v1/providers/missing/toggle")
    removed = await async_client.delete("/api/v1/providers/missing")

    assert toggled.status_code == 404
    assert toggled.json()["detail"]["error"]["code"] == "provider_not_found"
    assert removed.status_code == 404


@pytest.mark.asyncio
async def test_remote_tool_round(async_client: AsyncClient, fake_providers, mock_ollama_client, script_model, parse_sse):
    """Test that a remote call is validated, approved and dispatched to its provider."""
    await async_client.post("/api/v1/providers", json={"url": "http://up.example/mcp"})
    entry = fake_providers.entries[0]

    async def call_tool(name, arguments):
        return f"echo: {arguments['text']}"

    entry.client.call_tool = call_tool
    await async_client.put("/api/v1/tools/permissions", json={"allow_all_tools": True})
    script_model(
        mock_ollama_client,
        '{"name": "remote_echo", "arguments": {"text": "ping"}}',
        "It said ping.",
    )

    project_id = (await async_client.get("/api/v1/projects")).json()["projects"][0]["project_id"]
    chat_id = (await async_client.post(f"/api/v1/projects/{project_id}/chats", json={})).json()["chat_id"]
    response = await async_client.post(f"/api/v1/chat/{chat_id}/stream", json={"message": "Echo ping"})

    events = parse_sse(response.text)
    tool_result = next(e for e in events if e["event"] == "tool_result")
    assert tool_result["data"]["content"] == "echo: ping"
    assert events[-1]["event"] == "done"


@pytest.mark.asyncio
async def test_permissions(async_client: AsyncClient):
    response = await async_client.get("/api/v1/tools/permissions")

    assert response.json() == {
        "allow_all_tools": False,
        "session_grants": [],
        "pre_granted": ["getToolSchema", "listTools"],
    }

    updated = await async_client.put("/api/v1/tools/permissions", json={"allow_all_tools": True})
    assert updated.json()["allow_all_tools"] is True


@pytest.mark.asyncio
async def test_preferences(async_client: AsyncClient):
    response = await async_client.get("/api/v1/preferences")

    assert response.status_code == 200
    assert response.json()["safe_eval"] is True

    updated = await async_client.patch("/api/v1/preferences", json={"safe_eval": False})
    assert updated.json()["safe_eval"] is False
    assert updated.json()["allow_all_tools"] is False


@pytest.mark.asyncio
async def test_dropped_provider_is_reported(async_client: AsyncClient, fake_providers):
    """Test that a provider whose connection ended is shown as failed everywhere."""
    provider = (await async_client.post("/api/v1/providers", json={"url": "http://up.example/mcp"})).json()
    fake_providers.entries[0].client.is_connected = False

    listed = (await async_client.get("/api/v1/providers")).json()["providers"]
    assert listed[0]["id"] == provider["id"]
    assert listed[0]["status"] == "error"
    assert listed[0]["error"] == "Connection lost"
    assert listed[0]["tool_count"] == 0

    tools = (await async_client.get("/api/v1/tools")).json()["tools"]
    assert "remote_echo" not in [t["name"] for t in tools]

    health = await async_client.get("/api/v1/health")
    assert health.json()["providers_connected"] == 0
