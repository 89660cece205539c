"""Dependency injection providers for FastAPI endpoints.

The long-lived objects are created once in the application lifespan and
kept in app.state; these functions hand them to the routers.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from toolrelay_server.config import ToolRelaySettings
from toolrelay_server.conversation import ConversationHub
from toolrelay_server.ollama import OllamaClient
from toolrelay_server.preferences import PreferencesStore
from toolrelay_server.providers import ProviderManager
from toolrelay_server.store import ChatStore
from toolrelay_server.tools import PermissionGate


@lru_cache
def get_settings() -> ToolRelaySettings:
    """Get the application settings instance.

    Cached so that the same settings are reused across requests. Settings
    are loaded from environment variables with the TOOLRELAY_ prefix.
    """
    return ToolRelaySettings()


def _state(request: Request, name: str):
    if not hasattr(request.app.state, name):
        raise HTTPException(
            status_code=503,
            detail={
                "error": {
                    "code": "not_initialized",
                    "message": f"Server component '{name}' is not initialized",
                    "details": {},
                }
            },
        )
    return getattr(request.app.state, name)


def get_ollama_client(request: Request) -> OllamaClient:
    """Get the Ollama client from app state.

    Raises:
        HTTPException: 503 if the client is not initialized
    """
    return _state(request, "ollama_client")


def get_store(request: Request) -> ChatStore:
    return _state(request, "store")


def get_preferences(request: Request) -> PreferencesStore:
    return _state(request, "preferences")


def get_permission_gate(request: Request) -> PermissionGate:
    return _state(request, "permission_gate")


def get_provider_manager(request: Request) -> ProviderManager:
    return _state(request, "provider_manager")


def get_hub(request: Request) -> ConversationHub:
    return _state(request, "hub")
