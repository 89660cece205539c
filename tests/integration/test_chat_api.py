"""Integration tests for the non-streaming chat endpoint and the approval flow."""

import pytest
import pytest_asyncio
from httpx import AsyncClient

EVAL_CALL = '{"name": "evalCode", "arguments": {"code": "return 2 + 2"}}'


async def create_chat(client: AsyncClient) -> str:
    projects = await client.get("/api/v1/projects")
    project_id = projects.json()["projects"][0]["project_id"]
    chat = await client.post(f"/api/v1/projects/{project_id}/chats", json={"title": "Math"})
    return chat.json()["chat_id"]


@pytest_asyncio.fixture
async def in_process_eval(async_client: AsyncClient):
    """Run evalCode in-process so tests don't spawn interpreters."""
    response = await async_client.patch("/api/v1/preferences", json={"safe_eval": False})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_chat_non_streaming(async_client: AsyncClient, mock_ollama_client, script_model):
    """Test that the whole turn is returned at once."""
    chat_id = await create_chat(async_client)
    script_model(mock_ollama_client, "Hello!")

    response = await async_client.post(f"/api/v1/chat/{chat_id}", json={"message": "Hi"})

    assert response.status_code == 200
    data = response.json()
    assert data["chat_id"] == chat_id
    assert data["state"] == "idle"
    assert data["content"] == "Hello!"
    assert data["pending_approval"] is None
    assert data["events"][-1]["event"] == "message_complete"


@pytest.mark.asyncio
async def test_chat_non_streaming_ollama_error(async_client: AsyncClient, mock_ollama_client):
    chat_id = await create_chat(async_client)

    async def failing_stream(*args, **kwargs):
        raise Exception("model not loaded")
        yield

    mock_ollama_client.chat_stream = failing_stream

    response = await async_client.post(f"/api/v1/chat/{chat_id}", json={"message": "Hi"})

    assert response.status_code == 502
    assert response.json()["detail"]["error"]["code"] == "ollama_error"


@pytest.mark.asyncio
@pytest.mark.usefixtures("in_process_eval")
async def test_approval_flow(async_client: AsyncClient, mock_ollama_client, script_model, parse_sse):
    """Test suspend on approval, busy rejection, then approve and resume."""
    chat_id = await create_chat(async_client)
    script_model(mock_ollama_client, EVAL_CALL, "2 + 2 = 4")

    first = await async_client.post(f"/api/v1/chat/{chat_id}", json={"message": "What is 2 + 2?"})

    data = first.json()
    assert data["state"] == "awaiting_approval"
    assert data["pending_approval"]["calls"][0]["function"]["name"] == "evalCode"
    assert [e["event"] for e in data["events"]][-1] == "approval_required"

    busy = await async_client.post(f"/api/v1/chat/{chat_id}", json={"message": "Hello?"})
    assert busy.status_code == 409
    assert busy.json()["detail"]["error"]["code"] == "chat_busy"

    status = await async_client.get(f"/api/v1/chat/{chat_id}/status")
    assert status.json()["state"] == "awaiting_approval"

    resumed = await async_client.post(f"/api/v1/chat/{chat_id}/approve", json={"scope": "session"})
    assert resumed.status_code == 200

    events = parse_sse(resumed.text)
    tool_result = next(e for e in events if e["event"] == "tool_result")
    assert tool_result["data"]["tool_name"] == "evalCode"
    assert tool_result["data"]["content"] == "4"
    complete = next(e for e in events if e["event"] == "message_complete")
    assert complete["data"]["content"] == "2 + 2 = 4"
    assert events[-1] == {"event": "done", "data": {"chat_id": chat_id, "state": "idle"}}

    permissions = await async_client.get("/api/v1/tools/permissions")
    assert permissions.json()["session_grants"] == ["evalCode"]


@pytest.mark.asyncio
async def test_approve_without_pending(async_client: AsyncClient):
    chat_id = await create_chat(async_client)

    response = await async_client.post(f"/api/v1/chat/{chat_id}/approve", json={"scope": "once"})

    assert response.status_code == 409
    assert response.json()["detail"]["error"]["code"] == "approval_not_pending"


@pytest.mark.asyncio
async def test_approve_invalid_scope(async_client: AsyncClient):
    chat_id = await create_chat(async_client)

    response = await async_client.post(f"/api/v1/chat/{chat_id}/approve", json={"scope": "forever"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_decline(async_client: AsyncClient, mock_ollama_client, script_model):
    """Test that declining runs nothing and records a notice."""
    chat_id = await create_chat(async_client)
    script_model(mock_ollama_client, EVAL_CALL)
    await async_client.post(f"/api/v1/chat/{chat_id}", json={"message": "What is 2 + 2?"})

    response = await async_client.post(f"/api/v1/chat/{chat_id}/decline")

    assert response.status_code == 200
    assert response.json()["content"] == "_Tool execution declined._"

    messages = (await async_client.get(f"/api/v1/chats/{chat_id}/messages")).json()["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "assistant"]

    again = await async_client.post(f"/api/v1/chat/{chat_id}/decline")
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_always_allow_skips_approval(async_client: AsyncClient, mock_ollama_client, script_model):
    chat_id = await create_chat(async_client)
    await async_client.patch("/api/v1/preferences", json={"safe_eval": False})
    await async_client.put("/api/v1/tools/permissions", json={"allow_all_tools": True})
    script_model(mock_ollama_client, EVAL_CALL, "4")

    response = await async_client.post(f"/api/v1/chat/{chat_id}", json={"message": "2 + 2?"})

    data = response.json()
    assert data["state"] == "idle"
    assert data["content"] == "4"
    assert "approval_required" not in [e["event"] for e in data["events"]]


@pytest.mark.asyncio
async def test_stop_when_idle(async_client: AsyncClient):
    chat_id = await create_chat(async_client)

    response = await async_client.post(f"/api/v1/chat/{chat_id}/stop")

    assert response.status_code == 200
    assert response.json() == {"chat_id": chat_id, "stopped": False, "state": "idle"}


@pytest.mark.asyncio
async def test_clear_messages_drops_pending_approval(
    async_client: AsyncClient, mock_ollama_client, script_model
):
    chat_id = await create_chat(async_client)
    script_model(mock_ollama_client, EVAL_CALL)
    await async_client.post(f"/api/v1/chat/{chat_id}", json={"message": "What is 2 + 2?"})

    response = await async_client.delete(f"/api/v1/chats/{chat_id}/messages")

    assert response.status_code == 204
    status = (await async_client.get(f"/api/v1/chat/{chat_id}/status")).json()
    assert status["state"] == "idle"
    assert status["pending_approval"] is None
    messages = (await async_client.get(f"/api/v1/chats/{chat_id}/messages")).json()["messages"]
    assert messages == []


@pytest.mark.asyncio
async def test_status_unknown_chat(async_client: AsyncClient):
    response = await async_client.get("/api/v1/chat/nonexistent/status")

    assert response.status_code == 404
