"""Models router for listing and retrieving Ollama model information."""

import logging

from fastapi import APIRouter, Depends

from toolrelay_server.dependencies import get_ollama_client
from toolrelay_server.models.models import ModelDetail, ModelListResponse
from toolrelay_server.ollama import OllamaClient
from toolrelay_server.routers.errors import api_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["models"])


@router.get("/models", response_model=ModelListResponse)
async def list_models(
    ollama_client: OllamaClient = Depends(get_ollama_client),
) -> ModelListResponse:
    """List installed models that support completion.

    Raises:
        HTTPException: 502 if the Ollama API request fails.
    """
    try:
        model_infos = await ollama_client.list_models()
    except Exception as e:
        logger.error(f"Failed to list models: {e}")
        raise api_error(502, "ollama_error", f"Failed to communicate with Ollama: {e}")

    return ModelListResponse(models=[ModelDetail.model_validate(info) for info in model_infos])


@router.get("/models/{model_name:path}", response_model=ModelDetail)
async def get_model_detail(
    model_name: str,
    ollama_client: OllamaClient = Depends(get_ollama_client),
) -> ModelDetail:
    """Get details of one model (e.g., "qwen3:14b").

    Raises:
        HTTPException: 404 if model not found, 502 if Ollama API fails.
    """
    try:
        model_info = await ollama_client.get_model_info(model_name)
    except Exception as e:
        logger.error(f"Failed to get model details for {model_name}: {e}")
        raise api_error(502, "ollama_error", f"Failed to communicate with Ollama: {e}")

    if model_info is None:
        raise api_error(404, "model_not_found", f"Model '{model_name}' not found", {"model": model_name})
    return ModelDetail.model_validate(model_info)
