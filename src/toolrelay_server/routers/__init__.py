"""FastAPI routers for API endpoints.

This package contains all route handlers organized by resource type.
Each router module defines endpoints for a specific domain (projects,
chats, conversation, providers, tools, etc.).
"""

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

__all__ = [
    "chat",
    "chats",
    "health",
    "models",
    "preferences",
    "projects",
    "providers",
    "tools",
]
