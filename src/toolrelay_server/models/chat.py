"""Pydantic models for the conversation endpoints.

This module defines request and response schemas for sending messages
(streaming and non-streaming), answering an approval request and reading a
chat's loop status.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from toolrelay_server.tools.types import GrantScope


class ChatRequest(BaseModel):
    """Request body for POST /api/v1/chat/{chat_id} and its /stream variant."""

    message: str = Field(..., min_length=1, description="The user message to send")

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"message": "What is 17 * 23?"}]}
    )


class ApproveRequest(BaseModel):
    """Request body for approving the pending tool batch."""

    scope: GrantScope = Field(
        GrantScope.ONCE,
        description="once: this batch only; session: these tools until restart; always: every tool, persisted",
    )


class ChatEvent(BaseModel):
    """One event of a turn, as sent over SSE."""

    event: str = Field(description="Event type")
    data: dict[str, Any] = Field(default_factory=dict, description="Event payload")


class ChatResponse(BaseModel):
    """Response body for the non-streaming chat endpoint.

    The turn runs to completion (or until it needs approval) and every
    event it produced is returned at once.
    """

    chat_id: str = Field(description="Chat identifier")
    state: str = Field(description="Loop state after the turn")
    content: str = Field("", description="Content of the final assistant message")
    events: list[ChatEvent] = Field(default_factory=list)
    pending_approval: dict[str, Any] | None = Field(
        None, description="The batch awaiting approval, if the turn suspended"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "chat_id": "a1b2c3d4e5",
                "state": "idle",
                "content": "17 * 23 = 391",
                "events": [
                    {"event": "content_delta", "data": {"content": "17 * 23 = 391"}},
                    {"event": "message_complete", "data": {"message_id": "f1e2d3c4b5"}},
                ],
                "pending_approval": None,
            }
        }
    )


class DeclineResponse(BaseModel):
    chat_id: str
    message_id: str
    content: str


class StopResponse(BaseModel):
    chat_id: str
    stopped: bool = Field(description="Whether a running turn was interrupted")
    state: str


class ChatStatusResponse(BaseModel):
    """Loop state of one chat."""

    chat_id: str
    state: str = Field(description="idle, generating, executing, awaiting_approval or reloading")
    pending_approval: dict[str, Any] | None = None
