"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and
configures the FastAPI application, including the lifespan that builds the
conversation context at startup and closes providers on shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolrelay_server import __version__
from toolrelay_server.config import ToolRelaySettings
from toolrelay_server.conversation import ConversationContext, ConversationHub
from toolrelay_server.ollama import OllamaClient
from toolrelay_server.preferences import PreferencesStore
from toolrelay_server.providers import ProviderManager
from toolrelay_server.routers import (
    chat,
    chats,
    health,
    models,
    preferences,
    projects,
    providers,
    tools,
)
from toolrelay_server.store import ChatStore
from toolrelay_server.tools import PermissionGate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the long-lived objects once and store them in app.state.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: ToolRelaySettings = app.state.settings

    app.state.ollama_client = OllamaClient(host=settings.ollama_host)
    app.state.store = ChatStore(settings.resolved_store_dir)
    app.state.preferences = PreferencesStore(settings.resolved_preferences_file)
    app.state.permission_gate = PermissionGate(app.state.preferences)
    app.state.provider_manager = ProviderManager(app.state.preferences)

    app.state.store.ensure_default_project()
    await app.state.provider_manager.load()

    app.state.hub = ConversationHub(
        ConversationContext(
            settings=settings,
            store=app.state.store,
            preferences=app.state.preferences,
            gate=app.state.permission_gate,
            providers=app.state.provider_manager,
            ollama=app.state.ollama_client,
        )
    )

    if await app.state.ollama_client.check_connection():
        logger.info("Successfully connected to Ollama")
    else:
        logger.warning("Could not connect to Ollama - check if server is running")

    yield

    # Shutdown: stop running turns, then release connections
    await app.state.hub.close()
    await app.state.provider_manager.close_all()
    if hasattr(app.state, "ollama_client"):
        await app.state.ollama_client.close()
        logger.info("Ollama client closed")


def create_app(settings: ToolRelaySettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, settings are
                  loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from toolrelay_server.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="toolrelay-server",
        description="Headless FastAPI server letting local Ollama models call tools",
        version=__version__,
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(models.router)
    app.include_router(projects.router)
    app.include_router(chats.router)
    app.include_router(chat.router)
    app.include_router(providers.router)
    app.include_router(tools.router)
    app.include_router(preferences.router)

    return app
