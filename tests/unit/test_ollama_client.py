"""Unit tests for the OllamaClient wrapper."""

from unittest.mock import AsyncMock, MagicMock, patch

import ollama
import pytest

from toolrelay_server.ollama import ModelInfo, OllamaClient


def _listed(name, size):
    model = MagicMock()
    model.model = name
    model.size = size
    return model


def _show(capabilities, family, context_key, context_length):
    show = MagicMock()
    show.capabilities = capabilities
    show.modelinfo = {context_key: context_length}
    details = MagicMock()
    details.family = family
    details.parameter_size = "8.0B"
    details.quantization_level = "Q4_0"
    show.details = details
    return show


@pytest.fixture
def mock_ollama_async_client():
    """Create a mock ollama.AsyncClient."""
    with patch("toolrelay_server.ollama.client.ollama.AsyncClient") as mock_class:
        mock_instance = AsyncMock()
        mock_class.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def ollama_client(mock_ollama_async_client):
    """Create an OllamaClient with mocked AsyncClient."""
    return OllamaClient(host="http://localhost:11434")


@pytest.mark.asyncio
async def test_client_initialization():
    """Test that OllamaClient initializes correctly."""
    with patch("toolrelay_server.ollama.client.ollama.AsyncClient"):
        client = OllamaClient(host="http://test:11434")
        assert client.host == "http://test:11434"
        assert client.generation == 0
        assert client._client is not None


@pytest.mark.asyncio
async def test_check_connection_success(ollama_client, mock_ollama_async_client):
    """Test successful connection check."""
    mock_ollama_async_client.list.return_value = {"models": []}

    assert await ollama_client.check_connection() is True
    mock_ollama_async_client.list.assert_called_once()


@pytest.mark.asyncio
async def test_check_connection_failure(ollama_client, mock_ollama_async_client):
    """Test connection check when Ollama is unreachable."""
    mock_ollama_async_client.list.side_effect = Exception("Connection refused")

    assert await ollama_client.check_connection() is False


@pytest.mark.asyncio
async def test_list_models_filters_non_completion(ollama_client, mock_ollama_async_client):
    """Test that embedding-only models are filtered out."""
    listing = MagicMock()
    listing.models = [_listed("llama3:8b", 4661211136), _listed("nomic-embed-text", 548118528)]
    mock_ollama_async_client.list.return_value = listing
    mock_ollama_async_client.show.side_effect = [
        _show(["completion", "tools"], "llama", "llama.context_length", 8192),
        _show(["embedding"], "nomic-bert", "nomic-bert.context_length", 8192),
    ]

    result = await ollama_client.list_models()

    assert len(result) == 1
    assert isinstance(result[0], ModelInfo)
    assert result[0].name == "llama3:8b"
    assert result[0].size_mb == 4445.3
    assert result[0].context_length == 8192
    assert result[0].supports_tools is True


@pytest.mark.asyncio
async def test_list_models_skips_models_without_details(ollama_client, mock_ollama_async_client):
    listing = MagicMock()
    listing.models = [_listed("broken:1b", 1), _listed("llama3:8b", 4661211136)]
    mock_ollama_async_client.list.return_value = listing
    mock_ollama_async_client.show.side_effect = [
        Exception("manifest missing"),
        _show(["completion"], "llama", "llama.context_length", 8192),
    ]

    result = await ollama_client.list_models()

    assert [m.name for m in result] == ["llama3:8b"]


@pytest.mark.asyncio
async def test_list_models_api_error(ollama_client, mock_ollama_async_client):
    """Test list_models when Ollama API fails."""
    mock_ollama_async_client.list.side_effect = Exception("API error")

    with pytest.raises(Exception, match="API error"):
        await ollama_client.list_models()


@pytest.mark.asyncio
async def test_get_model_info_success(ollama_client, mock_ollama_async_client):
    """Test getting model info successfully."""
    listing = MagicMock()
    listing.models = [_listed("llama3:8b", 4661211136)]
    mock_ollama_async_client.list.return_value = listing
    mock_ollama_async_client.show.return_value = _show(
        ["completion", "tools"], "llama", "llama.context_length", 8192
    )

    result = await ollama_client.get_model_info("llama3:8b")

    assert result.name == "llama3:8b"
    assert result.family == "llama"
    assert result.capabilities == ["completion", "tools"]


@pytest.mark.asyncio
async def test_get_model_info_not_installed(ollama_client, mock_ollama_async_client):
    listing = MagicMock()
    listing.models = []
    mock_ollama_async_client.list.return_value = listing

    assert await ollama_client.get_model_info("nonexistent:model") is None
    mock_ollama_async_client.show.assert_not_called()


@pytest.mark.asyncio
async def test_get_model_info_show_404(ollama_client, mock_ollama_async_client):
    listing = MagicMock()
    listing.models = [_listed("llama3:8b", 1)]
    mock_ollama_async_client.list.return_value = listing
    mock_ollama_async_client.show.side_effect = ollama.ResponseError("not found", 404)

    assert await ollama_client.get_model_info("llama3:8b") is None


@pytest.mark.asyncio
async def test_chat_stream_yields_dicts(ollama_client, mock_ollama_async_client):
    """Chunks are passed through as dicts; tools are only sent when given."""

    async def chunks():
        yield {"message": {"role": "assistant", "content": "Hi"}, "done": False}
        yield {"message": {"role": "assistant", "content": "!"}, "done": True, "eval_count": 2}

    mock_ollama_async_client.chat.return_value = chunks()
    messages = [{"role": "user", "content": "Hello"}]

    received = [chunk async for chunk in ollama_client.chat_stream("llama3:8b", messages)]

    assert [c["message"]["content"] for c in received] == ["Hi", "!"]
    mock_ollama_async_client.chat.assert_awaited_once_with(
        model="llama3:8b", messages=messages, stream=True
    )


@pytest.mark.asyncio
async def test_chat_stream_passes_tools(ollama_client, mock_ollama_async_client):
    async def chunks():
        yield {"message": {"role": "assistant", "content": ""}, "done": True}

    mock_ollama_async_client.chat.return_value = chunks()
    tools = [{"type": "function", "function": {"name": "listTools"}}]

    [chunk async for chunk in ollama_client.chat_stream("m", [], tools=tools)]

    assert mock_ollama_async_client.chat.await_args.kwargs["tools"] == tools


@pytest.mark.asyncio
async def test_reload_replaces_client():
    """A reload swaps in a fresh AsyncClient and closes the old transport."""
    first, second = AsyncMock(), AsyncMock()
    with patch("toolrelay_server.ollama.client.ollama.AsyncClient", side_effect=[first, second]):
        client = OllamaClient(host="http://localhost:11434")

        await client.reload()

    assert client._client is second
    assert client.generation == 1
    first._client.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_close(ollama_client, mock_ollama_async_client):
    """Test that close shuts the HTTP transport."""
    await ollama_client.close()

    mock_ollama_async_client._client.aclose.assert_awaited_once()


def test_model_info_from_ollama():
    """Test ModelInfo.from_ollama with dict responses."""
    show = {
        "details": {
            "family": "qwen3",
            "parameter_size": "14.8B",
            "quantization_level": "Q4_K_M",
        },
        "capabilities": ["completion", "tools"],
        "modelinfo": {"qwen3.context_length": 40960},
    }

    model_info = ModelInfo.from_ollama(show, {"model": "qwen3:14b", "size": 9048248320})

    assert model_info.name == "qwen3:14b"
    assert model_info.size_mb == 8629.1
    assert model_info.family == "qwen3"
    assert model_info.parameter_size == "14.8B"
    assert model_info.quantization_level == "Q4_K_M"
    assert model_info.context_length == 40960


def test_model_info_from_ollama_defaults():
    """Test ModelInfo.from_ollama with minimal data."""
    model_info = ModelInfo.from_ollama({"details": {}, "modelinfo": {}}, {"model": "test:model", "size": 1073741824})

    assert model_info.size_mb == 1024.0
    assert model_info.family == "unknown"
    assert model_info.capabilities == ["completion"]
    assert model_info.context_length == 2048
    assert model_info.supports_tools is False


def test_model_info_fallback_context():
    """Test the generic context_length key."""
    show = {"details": {"family": "test"}, "modelinfo": {"context_length": 16384}}

    assert ModelInfo.from_ollama(show, {"model": "t", "size": 1}).context_length == 16384
