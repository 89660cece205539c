"""Conversation loop: streams the model, runs tool batches, re-enters the model."""

from toolrelay_server.conversation.hub import ConversationHub
from toolrelay_server.conversation.loop import (
    ConversationContext,
    ConversationLoop,
    LoopEvent,
    LoopState,
    PendingApproval,
)

__all__ = [
    "ConversationContext",
    "ConversationHub",
    "ConversationLoop",
    "LoopEvent",
    "LoopState",
    "PendingApproval",
]
