"""Conversation endpoints.

Sending a message runs a turn of the chat's conversation loop. The turn
streams model output, runs tool batches and re-enters the model until it
answers without a tool call or a batch needs the user's approval.
"""

import json
import logging
from contextlib import aclosing
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from toolrelay_server.conversation import ConversationHub, ConversationLoop, LoopEvent
from toolrelay_server.dependencies import get_hub
from toolrelay_server.errors import ApprovalNotPendingError, ChatBusyError
from toolrelay_server.models.chat import (
    ApproveRequest,
    ChatEvent,
    ChatRequest,
    ChatResponse,
    ChatStatusResponse,
    DeclineResponse,
    StopResponse,
)
from toolrelay_server.routers.errors import api_error, not_found

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


def get_loop(chat_id: str, hub: ConversationHub) -> ConversationLoop:
    try:
        return hub.get(chat_id)
    except FileNotFoundError:
        raise not_found("chat", chat_id)


def start_send(loop: ConversationLoop, message: str) -> AsyncIterator[LoopEvent]:
    try:
        return loop.send(message)
    except ChatBusyError as e:
        raise api_error(409, "chat_busy", str(e), {"chat_id": loop.chat_id, "state": loop.state.value})
    except FileNotFoundError:
        raise not_found("chat", loop.chat_id)
    except ValueError as e:
        raise api_error(400, "invalid_message", str(e))


def event_stream(
    request: Request, loop: ConversationLoop, events: AsyncIterator[LoopEvent]
) -> EventSourceResponse:
    """Forward loop events as SSE, closing with `done` (or `error`)."""

    async def event_generator():
        async with aclosing(events) as turn:
            try:
                async for event in turn:
                    if await request.is_disconnected():
                        logger.warning(f"Client disconnected during turn in chat {loop.chat_id}")
                        return
                    yield {"event": event.event, "data": json.dumps(event.data)}
            except Exception as e:
                logger.error(f"Error during turn in chat {loop.chat_id}: {e}", exc_info=True)
                yield {
                    "event": "error",
                    "data": json.dumps(
                        {
                            "code": "ollama_error",
                            "message": f"Failed to generate response: {e}",
                            "details": {"chat_id": loop.chat_id},
                        }
                    ),
                }
                return

        yield {
            "event": "done",
            "data": json.dumps({"chat_id": loop.chat_id, "state": loop.state.value}),
        }

    return EventSourceResponse(event_generator())


@router.post("/{chat_id}", response_model=ChatResponse)
async def chat_non_streaming(
    chat_id: str,
    request_body: ChatRequest,
    hub: ConversationHub = Depends(get_hub),
) -> ChatResponse:
    """Send a message and return every event of the turn at once.

    Raises:
        HTTPException: 404 if the chat is unknown, 409 if it is busy, 502 if Ollama fails
    """
    loop = get_loop(chat_id, hub)
    collected: list[ChatEvent] = []
    content = ""

    async with aclosing(start_send(loop, request_body.message)) as turn:
        try:
            async for event in turn:
                collected.append(ChatEvent(event=event.event, data=event.data))
                if event.event == "message_complete":
                    content = event.data.get("content", "")
        except Exception as e:
            logger.error(f"Turn failed in chat {chat_id}: {e}", exc_info=True)
            raise api_error(502, "ollama_error", f"Failed to get response from Ollama: {e}", {"chat_id": chat_id})

    status = loop.status()
    return ChatResponse(
        chat_id=chat_id,
        state=status["state"],
        content=content,
        events=collected,
        pending_approval=status["pending_approval"],
    )


@router.post("/{chat_id}/stream")
async def chat_streaming(
    chat_id: str,
    request_body: ChatRequest,
    request: Request,
    hub: ConversationHub = Depends(get_hub),
) -> EventSourceResponse:
    """Send a message and stream the turn via Server-Sent Events (SSE).

    SSE Events:
        - content_delta: Each text chunk from the model
        - tool_calls: The calls recorded for an assistant turn
        - tool_result: The result of one executed (or rejected) call
        - approval_required: The batch is suspended until approve/decline
        - message_complete: The final assistant message of the turn
        - notice: The turn was cut short (tool round limit)
        - error: The turn failed
        - done: Stream is complete
    """
    loop = get_loop(chat_id, hub)
    return event_stream(request, loop, start_send(loop, request_body.message))


@router.post("/{chat_id}/approve")
async def approve(
    chat_id: str,
    request_body: ApproveRequest,
    request: Request,
    hub: ConversationHub = Depends(get_hub),
) -> EventSourceResponse:
    """Approve the pending batch and stream the resumed turn."""
    loop = get_loop(chat_id, hub)
    try:
        events = loop.approve(request_body.scope)
    except ApprovalNotPendingError as e:
        raise api_error(409, "approval_not_pending", str(e), {"chat_id": chat_id})
    return event_stream(request, loop, events)


@router.post("/{chat_id}/decline", response_model=DeclineResponse)
async def decline(chat_id: str, hub: ConversationHub = Depends(get_hub)) -> DeclineResponse:
    loop = get_loop(chat_id, hub)
    try:
        message = loop.decline()
    except ApprovalNotPendingError as e:
        raise api_error(409, "approval_not_pending", str(e), {"chat_id": chat_id})
    return DeclineResponse(chat_id=chat_id, message_id=message.message_id, content=message.content)


@router.post("/{chat_id}/stop", response_model=StopResponse)
async def stop(chat_id: str, hub: ConversationHub = Depends(get_hub)) -> StopResponse:
    """Interrupt the running turn and reload the model."""
    loop = get_loop(chat_id, hub)
    stopped = await loop.stop()
    return StopResponse(chat_id=chat_id, stopped=stopped, state=loop.state.value)


@router.get("/{chat_id}/status", response_model=ChatStatusResponse)
async def chat_status(chat_id: str, hub: ConversationHub = Depends(get_hub)) -> ChatStatusResponse:
    loop = get_loop(chat_id, hub)
    return ChatStatusResponse(**loop.status())
