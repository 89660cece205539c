"""Pydantic models for project and chat API requests and responses."""

from pydantic import BaseModel, ConfigDict, Field


class CreateProjectRequest(BaseModel):
    """Request body for creating a project."""

    name: str = Field(..., min_length=1, description="Project name")
    system_prompt: str | None = Field(
        None,
        description="Instruction template; may use the {{listTools}} and {{tool_names}} placeholders",
    )


class UpdateProjectRequest(BaseModel):
    """Request body for updating a project. Omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, description="New project name")
    system_prompt: str | None = Field(None, description="New instruction template")


class ProjectResponse(BaseModel):
    project_id: str
    name: str
    system_prompt: str | None
    created_at: str

    model_config = ConfigDict(from_attributes=True)


class ProjectListResponse(BaseModel):
    projects: list[ProjectResponse]


class RenderedPromptResponse(BaseModel):
    """The system prompt as the model would receive it right now."""

    project_id: str
    template: str = Field(description="The template in effect (project or default)")
    rendered: str = Field(description="The template with tool placeholders filled in")


class CreateChatRequest(BaseModel):
    """Request body for creating a chat."""

    title: str = Field("New Chat", description="Chat title; 'New Chat' is replaced by the first message")
    model: str = Field("", description="Model for this chat; empty uses the server default")


class UpdateChatRequest(BaseModel):
    title: str | None = Field(None, min_length=1, description="New chat title")
    model: str | None = Field(None, description="New model for this chat")


class ChatInfoResponse(BaseModel):
    """Chat metadata."""

    chat_id: str
    project_id: str
    title: str
    model: str
    created_at: str
    updated_at: str

    model_config = ConfigDict(from_attributes=True)


class ChatListResponse(BaseModel):
    chats: list[ChatInfoResponse]


class StoredMessage(BaseModel):
    """A persisted message of any role."""

    role: str
    content: str
    message_id: str
    timestamp: str
    model: str | None = None
    tool_calls: list[dict] | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None
    is_error: bool | None = None
    eval_count: int | None = None
    prompt_eval_count: int | None = None

    model_config = ConfigDict(from_attributes=True)


class MessageListResponse(BaseModel):
    chat_id: str
    messages: list[StoredMessage]
