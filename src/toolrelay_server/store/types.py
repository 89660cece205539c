"""Data types for the conversation store.

This module defines projects, chats and the four conversation message
roles persisted by the store.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


def utc_now() -> str:
    """Current time as an ISO 8601 UTC timestamp with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class UserMessage:
    """A message from the user."""

    role: str = "user"
    content: str = ""
    message_id: str = ""
    chat_id: str = ""
    timestamp: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'user'."""
        self.role = "user"


@dataclass
class SystemMessage:
    """A system prompt message."""

    role: str = "system"
    content: str = ""
    message_id: str = ""
    chat_id: str = ""
    timestamp: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'system'."""
        self.role = "system"


@dataclass
class AssistantMessage:
    """A response from the model, possibly requesting tool calls.

    `tool_calls` holds the calls that were actually processed for the turn
    (deduplicated executable calls followed by the error call), stored in
    the function-calling shape.
    """

    role: str = "assistant"
    content: str = ""
    model: str = ""
    message_id: str = ""
    chat_id: str = ""
    timestamp: str = ""
    eval_count: int | None = None
    prompt_eval_count: int | None = None
    tool_calls: list[dict[str, Any]] | None = None

    def __post_init__(self) -> None:
        """Validate role is always 'assistant'."""
        self.role = "assistant"


@dataclass
class ToolMessage:
    """A tool execution result, paired with its call by tool_call_id."""

    role: str = "tool"
    tool_call_id: str = ""
    tool_name: str = ""
    content: str = ""
    is_error: bool = False
    message_id: str = ""
    chat_id: str = ""
    timestamp: str = ""

    def __post_init__(self) -> None:
        """Validate role is always 'tool'."""
        self.role = "tool"


# Union type for all message types
Message = UserMessage | SystemMessage | AssistantMessage | ToolMessage


def message_from_dict(data: dict[str, Any]) -> Message:
    """Convert a dictionary to the appropriate Message type.

    Raises:
        ValueError: If role is unknown
    """
    role = data.get("role")

    if role == "user":
        return UserMessage(**data)
    elif role == "system":
        return SystemMessage(**data)
    elif role == "assistant":
        return AssistantMessage(**data)
    elif role == "tool":
        return ToolMessage(**data)
    else:
        raise ValueError(f"Unknown message role: {role}")


@dataclass
class Project:
    """A group of chats sharing one system prompt template."""

    project_id: str
    name: str
    system_prompt: str | None = None
    created_at: str = ""


@dataclass
class Chat:
    """A conversation inside a project."""

    chat_id: str
    project_id: str
    title: str = "New Chat"
    model: str = ""
    created_at: str = ""
    updated_at: str = ""
