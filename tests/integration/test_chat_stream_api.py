"""Integration tests for the streaming chat API endpoint.

This module tests the SSE streaming chat endpoint including:
- Basic streaming with content deltas
- Message persistence after streaming
- Tool rounds inside one turn
- The project's system prompt
- Error scenarios
"""

import pytest
from httpx import AsyncClient


async def create_chat(client: AsyncClient, system_prompt: str | None = None) -> str:
    """Create a project and a chat in it, returning the chat id."""
    project = await client.post(
        "/api/v1/projects", json={"name": "Streaming", "system_prompt": system_prompt}
    )
    assert project.status_code == 201
    chat = await client.post(f"/api/v1/projects/{project.json()['project_id']}/chats", json={})
    assert chat.status_code == 201
    return chat.json()["chat_id"]


@pytest.mark.asyncio
async def test_stream_chat_basic(async_client: AsyncClient, mock_ollama_client, script_model, parse_sse):
    """Test basic streaming chat response."""
    chat_id = await create_chat(async_client)
    script_model(mock_ollama_client, "Hello there!")

    response = await async_client.post(f"/api/v1/chat/{chat_id}/stream", json={"message": "Hi!"})
    assert response.status_code == 200

    events = parse_sse(response.text)

    content_events = [e for e in events if e["event"] == "content_delta"]
    assert "".join(e["data"]["content"] for e in content_events) == "Hello there!"

    complete_events = [e for e in events if e["event"] == "message_complete"]
    assert len(complete_events) == 1
    assert complete_events[0]["data"]["model"] == "llama3.2:latest"
    assert complete_events[0]["data"]["eval_count"] == 5
    assert complete_events[0]["data"]["prompt_eval_count"] == 20

    assert events[-1]["event"] == "done"
    assert events[-1]["data"] == {"chat_id": chat_id, "state": "idle"}

    # Verify the turn was persisted
    messages_response = await async_client.get(f"/api/v1/chats/{chat_id}/messages")
    messages = messages_response.json()["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant"]
    assert messages[-1]["content"] == "Hello there!"
    assert messages[-1]["message_id"] == complete_events[0]["data"]["message_id"]


@pytest.mark.asyncio
async def test_stream_chat_auto_titles(async_client: AsyncClient, mock_ollama_client, script_model):
    """Test that the first message names a chat still called 'New Chat'."""
    chat_id = await create_chat(async_client)
    script_model(mock_ollama_client, "Sure.")

    await async_client.post(f"/api/v1/chat/{chat_id}/stream", json={"message": "Plan a trip"})

    chat = await async_client.get(f"/api/v1/chats/{chat_id}")
    assert chat.json()["title"] == "Plan a trip"


@pytest.mark.asyncio
async def test_stream_chat_tool_round(async_client: AsyncClient, mock_ollama_client, script_model, parse_sse):
    """Test a turn where the model lists tools before answering."""
    chat_id = await create_chat(async_client)
    script_model(
        mock_ollama_client,
        '{"name": "listTools", "arguments": {"query": "code"}}',
        "I can evaluate Python code.",
    )

    response = await async_client.post(
        f"/api/v1/chat/{chat_id}/stream", json={"message": "What can you do?"}
    )
    events = parse_sse(response.text)
    names = [e["event"] for e in events]

    assert names.index("tool_calls") < names.index("tool_result") < names.index("message_complete")
    tool_calls = next(e for e in events if e["event"] == "tool_calls")
    assert tool_calls["data"]["content"] == ""
    assert tool_calls["data"]["tool_calls"][0]["function"]["name"] == "listTools"
    tool_result = next(e for e in events if e["event"] == "tool_result")
    assert tool_result["data"]["is_error"] is False
    assert '"evalCode"' in tool_result["data"]["content"]
    assert names[-1] == "done"

    messages = (await async_client.get(f"/api/v1/chats/{chat_id}/messages")).json()["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "tool", "assistant"]
    assert messages[2]["tool_call_id"] == messages[1]["tool_calls"][0]["id"]


@pytest.mark.asyncio
async def test_stream_chat_uses_project_system_prompt(
    async_client: AsyncClient, mock_ollama_client, script_model
):
    """Test that the project's template is rendered into the system message."""
    chat_id = await create_chat(async_client, system_prompt="Be terse. Tools: {{tool_names}}")
    requests = script_model(mock_ollama_client, "Ok.")

    await async_client.post(f"/api/v1/chat/{chat_id}/stream", json={"message": "Hi"})

    assert requests[0][0] == {
        "role": "system",
        "content": "Be terse. Tools: getToolSchema, evalCode, listTools",
    }


@pytest.mark.asyncio
async def test_stream_chat_not_found(async_client: AsyncClient):
    """Test streaming chat with non-existent chat."""
    response = await async_client.post("/api/v1/chat/nonexistent/stream", json={"message": "Hi"})

    assert response.status_code == 404
    assert response.json()["detail"]["error"]["code"] == "chat_not_found"


@pytest.mark.asyncio
async def test_stream_chat_empty_message(async_client: AsyncClient):
    """Test that an empty message is rejected before the turn starts."""
    chat_id = await create_chat(async_client)

    response = await async_client.post(f"/api/v1/chat/{chat_id}/stream", json={"message": ""})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_stream_chat_ollama_error(async_client: AsyncClient, mock_ollama_client, parse_sse):
    """Test streaming chat when Ollama fails."""
    chat_id = await create_chat(async_client)

    async def mock_chat_stream_error(*args, **kwargs):
        raise Exception("Ollama connection failed")
        yield  # Make it a generator

    mock_ollama_client.chat_stream = mock_chat_stream_error

    response = await async_client.post(f"/api/v1/chat/{chat_id}/stream", json={"message": "Hi"})
    assert response.status_code == 200

    events = parse_sse(response.text)
    error_events = [e for e in events if e["event"] == "error"]
    assert len(error_events) == 1
    assert error_events[0]["data"]["code"] == "ollama_error"
    assert "Ollama connection failed" in error_events[0]["data"]["message"]

    # The chat is free again
    status = await async_client.get(f"/api/v1/chat/{chat_id}/status")
    assert status.json()["state"] == "idle"
