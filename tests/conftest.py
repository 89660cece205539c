"""Pytest configuration and shared fixtures for toolrelay-server tests.

This module provides common fixtures used across all test modules,
including test app creation, a scripted Ollama stand-in and the async
client setup.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from toolrelay_server import create_app
from toolrelay_server.config import ToolRelaySettings
from toolrelay_server.ollama import ModelInfo


def model_turn(content: str, eval_count: int = 5) -> list[dict]:
    """Chunks of one streamed model answer, split in two deltas."""
    middle = len(content) // 2
    return [
        {
            "model": "llama3.2:latest",
            "message": {"role": "assistant", "content": content[:middle]},
            "done": False,
        },
        {
            "model": "llama3.2:latest",
            "message": {"role": "assistant", "content": content[middle:]},
            "done": True,
            "eval_count": eval_count,
            "prompt_eval_count": 20,
        },
    ]


def script_model(mock_client, *answers: str) -> list[list[dict]]:
    """Make chat_stream answer with the given texts, one per call.

    Returns:
        The list that receives the messages of every chat_stream call
    """
    remaining = list(answers)
    requests: list[list[dict]] = []

    async def chat_stream(model, messages, tools=None, options=None):
        requests.append(messages)
        for chunk in model_turn(remaining.pop(0)):
            yield chunk

    mock_client.chat_stream = chat_stream
    return requests


def parse_sse(text: str) -> list[dict]:
    """Split an SSE response body into {"event", "data"} dicts."""
    events = []
    normalized = text.replace("\r\n", "\n")
    for block in normalized.strip().split("\n\n"):
        event_type = None
        event_data = None
        for part in block.split("\n"):
            if part.startswith("event:"):
                event_type = part.split(":", 1)[1].strip()
            elif part.startswith("data:"):
                event_data = part.split(":", 1)[1].strip()
        if event_type and event_data:
            events.append({"event": event_type, "data": json.loads(event_data)})
    return events


@pytest.fixture(name="script_model")
def script_model_fixture():
    """Helper that scripts the answers of a mocked chat_stream."""
    return script_model


@pytest.fixture(name="parse_sse")
def parse_sse_fixture():
    """Helper that parses an SSE response body."""
    return parse_sse


@pytest.fixture
def test_settings(tmp_path):
    """Create test settings with isolated temporary directories."""
    return ToolRelaySettings(
        host="127.0.0.1",
        port=8000,
        ollama_host="http://localhost:11434",
        default_model="llama3.2:latest",
        data_dir=str(tmp_path),
        store_dir="store",
        preferences_file="preferences.json",
        eval_timeout_ms=1000,
        log_level="DEBUG",
        cors_origins=["*"],
    )


@pytest.fixture
def mock_ollama_client():
    """Mock OllamaClient.

    The OllamaClient class is patched before the app starts, so the
    lifespan builds everything around this mock.
    """
    with patch("toolrelay_server.app.OllamaClient") as mock_client_class:
        mock_instance = AsyncMock()
        mock_instance.host = "http://localhost:11434"
        mock_instance.check_connection.return_value = True
        mock_instance.list_models.return_value = [
            ModelInfo(
                name="llama3.2:latest",
                size_mb=4445.3,
                family="llama",
                parameter_size="3.2B",
                quantization_level="Q4_0",
                capabilities=["completion", "tools"],
                context_length=8192,
            ),
        ]
        mock_client_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def test_app(test_settings, mock_ollama_client):
    """Create a FastAPI test application instance."""
    return create_app(settings=test_settings)


@pytest_asyncio.fixture
async def async_client(test_app):
    """Create an async HTTP client for testing FastAPI endpoints."""
    # Trigger the lifespan startup manually for tests
    async with test_app.router.lifespan_context(test_app):
        transport = ASGITransport(app=test_app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
