"""Async Ollama client wrapper.

The inference engine boundary: the conversation loop only talks to the
model through this class. It is created once at startup and shared; a stop
request replaces the underlying client so a half-finished generation never
leaks into the next one.
"""

import logging
from typing import Any, AsyncIterator

import ollama

from toolrelay_server.ollama.types import ModelInfo

logger = logging.getLogger(__name__)


def _model_name(listed: Any) -> str | None:
    if isinstance(listed, dict):
        return listed.get("model") or listed.get("name")
    return getattr(listed, "model", None) or getattr(listed, "name", None)


def _as_dict(chunk: Any) -> dict[str, Any]:
    if hasattr(chunk, "model_dump"):
        return chunk.model_dump()
    if isinstance(chunk, dict):
        return chunk
    return vars(chunk)


class OllamaClient:
    """Async client for the Ollama API.

    Attributes:
        host: The Ollama server URL (e.g., "http://localhost:11434")
        generation: Incremented on every reload
    """

    def __init__(self, host: str) -> None:
        self.host = host
        self.generation = 0
        self._client = ollama.AsyncClient(host=host)
        logger.info(f"OllamaClient initialized with host: {host}")

    async def check_connection(self) -> bool:
        """Return True when the server answers a model listing."""
        try:
            await self._client.list()
            return True
        except Exception as e:
            logger.warning(f"Ollama connection check failed: {e}")
            return False

    async def _listed_models(self) -> list[Any]:
        response = await self._client.list()
        if hasattr(response, "models"):
            return list(response.models)
        return list(response.get("models", []))

    async def list_models(self) -> list[ModelInfo]:
        """List models that support completion; embedding-only models are skipped.

        Raises:
            Exception: If the Ollama API request fails
        """
        models: list[ModelInfo] = []
        for listed in await self._listed_models():
            name = _model_name(listed)
            if not name:
                continue
            try:
                info = ModelInfo.from_ollama(await self._client.show(name), listed)
            except Exception as e:
                logger.warning(f"Failed to get details for model {name}: {e}")
                continue
            if "completion" in info.capabilities:
                models.append(info)

        logger.info(f"Listed {len(models)} completion-capable models")
        return models

    async def get_model_info(self, model_name: str) -> ModelInfo | None:
        """Details of one model, or None if it is not installed.

        Raises:
            Exception: If the Ollama API request fails (except for 404)
        """
        listed = next(
            (m for m in await self._listed_models() if _model_name(m) == model_name), None
        )
        if listed is None:
            return None

        try:
            show_response = await self._client.show(model_name)
        except ollama.ResponseError as e:
            if e.status_code == 404:
                return None
            raise
        return ModelInfo.from_ollama(show_response, listed)

    async def chat_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Stream chat response chunks from Ollama.

        Args:
            model: The model name to use for the chat
            messages: Messages in Ollama format: [{"role": "user", "content": "..."}, ...]
            tools: Function definitions for native tool calling, if enabled
            options: Optional model parameters (temperature, etc.)

        Yields:
            dict: Response chunks. Each carries `message` (role, content and,
            for native tool calling, `tool_calls`) and `done`; the final
            chunk adds eval_count and prompt_eval_count.

        Raises:
            Exception: If the Ollama API request fails
        """
        logger.debug(f"Starting chat stream with model {model} ({len(messages)} messages)")

        kwargs: dict[str, Any] = {"model": model, "messages": messages, "stream": True}
        if tools:
            kwargs["tools"] = tools
        if options:
            kwargs["options"] = options

        async for chunk in await self._client.chat(**kwargs):
            yield _as_dict(chunk)

        logger.debug("Chat stream completed")

    async def reload(self) -> None:
        """Discard the current client and start over with a fresh one.

        Pending streams of the old client are abandoned.
        """
        old_client = self._client
        self._client = ollama.AsyncClient(host=self.host)
        self.generation += 1
        await self._close_client(old_client)
        logger.info(f"Ollama client reloaded (generation {self.generation})")

    async def close(self) -> None:
        await self._close_client(self._client)
        logger.debug("OllamaClient closed")

    async def _close_client(self, client: Any) -> None:
        inner = getattr(client, "_client", None)
        if inner is None or not hasattr(inner, "aclose"):
            return
        try:
            await inner.aclose()
        except Exception as e:
            logger.warning(f"Error closing Ollama HTTP client: {e}")
