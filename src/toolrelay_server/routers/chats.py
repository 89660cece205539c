"""Chat CRUD endpoints and message history."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, status

from toolrelay_server.conversation import ConversationHub
from toolrelay_server.dependencies import get_hub, get_store
from toolrelay_server.models.projects import (
    ChatInfoResponse,
    ChatListResponse,
    CreateChatRequest,
    MessageListResponse,
    StoredMessage,
    UpdateChatRequest,
)
from toolrelay_server.routers.errors import not_found
from toolrelay_server.store import Chat, ChatStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["chats"])


def load_chat(store: ChatStore, chat_id: str) -> Chat:
    try:
        return store.get_chat(chat_id)
    except FileNotFoundError:
        raise not_found("chat", chat_id)


@router.post(
    "/projects/{project_id}/chats",
    response_model=ChatInfoResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_chat(
    project_id: str,
    request_body: CreateChatRequest,
    store: ChatStore = Depends(get_store),
) -> ChatInfoResponse:
    try:
        chat = store.create_chat(project_id, title=request_body.title, model=request_body.model)
    except FileNotFoundError:
        raise not_found("project", project_id)
    return ChatInfoResponse.model_validate(chat)


@router.get("/projects/{project_id}/chats", response_model=ChatListResponse)
async def list_chats(project_id: str, store: ChatStore = Depends(get_store)) -> ChatListResponse:
    """List a project's chats, most recently updated first."""
    try:
        store.get_project(project_id)
    except FileNotFoundError:
        raise not_found("project", project_id)
    return ChatListResponse(
        chats=[ChatInfoResponse.model_validate(c) for c in store.list_chats(project_id)]
    )


@router.get("/chats/{chat_id}", response_model=ChatInfoResponse)
async def get_chat(chat_id: str, store: ChatStore = Depends(get_store)) -> ChatInfoResponse:
    return ChatInfoResponse.model_validate(load_chat(store, chat_id))


@router.patch("/chats/{chat_id}", response_model=ChatInfoResponse)
async def update_chat(
    chat_id: str,
    request_body: UpdateChatRequest,
    store: ChatStore = Depends(get_store),
) -> ChatInfoResponse:
    chat = load_chat(store, chat_id)
    if request_body.title is not None:
        chat.title = request_body.title
    if request_body.model is not None:
        chat.model = request_body.model
    store.update_chat(chat)
    logger.info(f"Updated chat {chat_id}")
    return ChatInfoResponse.model_validate(chat)


@router.delete("/chats/{chat_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chat(
    chat_id: str,
    store: ChatStore = Depends(get_store),
    hub: ConversationHub = Depends(get_hub),
) -> None:
    load_chat(store, chat_id)
    await hub.discard(chat_id)
    store.delete_chat(chat_id)


@router.get("/chats/{chat_id}/messages", response_model=MessageListResponse)
async def list_messages(
    chat_id: str,
    limit: int | None = Query(None, ge=1, description="Return only the trailing N messages"),
    store: ChatStore = Depends(get_store),
) -> MessageListResponse:
    try:
        messages = store.get_messages(chat_id, limit=limit)
    except FileNotFoundError:
        raise not_found("chat", chat_id)
    return MessageListResponse(
        chat_id=chat_id,
        messages=[StoredMessage.model_validate(asdict(m)) for m in messages],
    )


@router.delete("/chats/{chat_id}/messages", status_code=status.HTTP_204_NO_CONTENT)
async def clear_messages(
    chat_id: str,
    store: ChatStore = Depends(get_store),
    hub: ConversationHub = Depends(get_hub),
) -> None:
    """Stop any running turn, drop a pending approval and wipe the history."""
    load_chat(store, chat_id)
    await hub.get(chat_id).clear()
