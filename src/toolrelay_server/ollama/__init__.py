"""Ollama client wrapper.

This package is the inference engine boundary. All Ollama interactions
are async and chat always streams.
"""

from toolrelay_server.ollama.client import OllamaClient
from toolrelay_server.ollama.types import ModelInfo

__all__ = ["OllamaClient", "ModelInfo"]
