"""toolrelay-server: headless FastAPI server letting local Ollama models call tools.

This package provides a REST API and SSE streaming interface for projects
and chats, and the engine that extracts, validates, authorizes and runs
tool calls found in model output.
"""

__version__ = "0.1.0"

from toolrelay_server.app import create_app  # noqa: E402

__all__ = ["create_app", "__version__"]
