"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from toolrelay_server.models.chat import (
    ApproveRequest,
    ChatEvent,
    ChatRequest,
    ChatResponse,
    ChatStatusResponse,
    DeclineResponse,
    StopResponse,
)
from toolrelay_server.models.health import HealthResponse
from toolrelay_server.models.models import ModelDetail, ModelListResponse
from toolrelay_server.models.projects import (
    ChatInfoResponse,
    ChatListResponse,
    CreateChatRequest,
    CreateProjectRequest,
    MessageListResponse,
    ProjectListResponse,
    ProjectResponse,
    RenderedPromptResponse,
    StoredMessage,
    UpdateChatRequest,
    UpdateProjectRequest,
)
from toolrelay_server.models.tools import (
    AddProviderRequest,
    PermissionsResponse,
    PreferencesResponse,
    ProviderListResponse,
    ProviderResponse,
    ToolInfo,
    ToolListResponse,
    UpdatePermissionsRequest,
    UpdatePreferencesRequest,
)

__all__ = [
    "AddProviderRequest",
    "ApproveRequest",
    "ChatEvent",
    "ChatInfoResponse",
    "ChatListResponse",
    "ChatRequest",
    "ChatResponse",
    "ChatStatusResponse",
    "CreateChatRequest",
    "CreateProjectRequest",
    "DeclineResponse",
    "HealthResponse",
    "MessageListResponse",
    "ModelDetail",
    "ModelListResponse",
    "PermissionsResponse",
    "PreferencesResponse",
    "ProjectListResponse",
    "ProjectResponse",
    "ProviderListResponse",
    "ProviderResponse",
    "RenderedPromptResponse",
    "StopResponse",
    "StoredMessage",
    "ToolInfo",
    "ToolListResponse",
    "UpdateChatRequest",
    "UpdatePermissionsRequest",
    "UpdatePreferencesRequest",
    "UpdateProjectRequest",
]
