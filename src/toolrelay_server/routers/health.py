"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from toolrelay_server import __version__
from toolrelay_server.models.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report the server version, Ollama connectivity and connected providers."""
    ollama_connected = None
    ollama_host = None
    providers_connected = 0

    state = request.app.state
    if hasattr(state, "ollama_client"):
        ollama_host = state.ollama_client.host
        try:
            ollama_connected = await state.ollama_client.check_connection()
            logger.debug(f"Ollama connectivity check: {ollama_connected}")
        except Exception as e:
            logger.warning(f"Ollama connectivity check failed: {e}")
            ollama_connected = False

    if hasattr(state, "provider_manager"):
        providers_connected = len(state.provider_manager.active())

    return HealthResponse(
        status="ok",
        version=__version__,
        ollama_connected=ollama_connected,
        ollama_host=ollama_host,
        providers_connected=providers_connected,
    )
