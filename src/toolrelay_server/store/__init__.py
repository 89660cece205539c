"""Durable conversation store.

This package persists projects, chats and their message history as JSON
files and provides CRUD operations over them.
"""

from toolrelay_server.store.chat_store import ChatStore
from toolrelay_server.store.types import (
    AssistantMessage,
    Chat,
    Message,
    Project,
    SystemMessage,
    ToolMessage,
    UserMessage,
)

__all__ = [
    # Core classes
    "ChatStore",
    "Project",
    "Chat",
    # Message types
    "Message",
    "UserMessage",
    "SystemMessage",
    "AssistantMessage",
    "ToolMessage",
]
