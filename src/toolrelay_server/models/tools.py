"""Pydantic models for tool, provider and preference endpoints."""

from pydantic import BaseModel, Field


class ToolInfo(BaseModel):
    name: str
    description: str
    origin: str = Field(description="'builtin' or 'remote'")
    provider_id: str | None = None


class ToolListResponse(BaseModel):
    tools: list[ToolInfo]


class PermissionsResponse(BaseModel):
    allow_all_tools: bool = Field(description="Durable 'always allow' flag")
    session_grants: list[str] = Field(description="Tools allowed until restart")
    pre_granted: list[str] = Field(description="Tools that never need approval")


class UpdatePermissionsRequest(BaseModel):
    allow_all_tools: bool


class AddProviderRequest(BaseModel):
    """Request body for adding a remote tool provider."""

    url: str = Field(..., min_length=1, description="Streamable HTTP endpoint of the MCP server")
    name: str = Field("", description="Display name")
    enabled: bool = True
    headers: dict[str, str] = Field(default_factory=dict, description="Extra HTTP headers")


class ProviderResponse(BaseModel):
    id: str
    url: str
    name: str
    enabled: bool
    status: str = Field(description="idle, connecting, connected, error or disabled")
    error: str | None = None
    tool_count: int = 0
    session_id: str | None = None


class ProviderListResponse(BaseModel):
    providers: list[ProviderResponse]


class PreferencesResponse(BaseModel):
    allow_all_tools: bool
    safe_eval: bool = Field(description="Run evalCode in an isolated child process")
    last_project_id: str | None = None
    last_chat_id: str | None = None


class UpdatePreferencesRequest(BaseModel):
    safe_eval: bool | None = None
    last_project_id: str | None = None
    last_chat_id: str | None = None
