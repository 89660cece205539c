"""Project CRUD endpoints, including the per-project system prompt."""

import logging

from fastapi import APIRouter, Depends, status

from toolrelay_server.conversation import ConversationHub
from toolrelay_server.dependencies import get_hub, get_provider_manager, get_store
from toolrelay_server.models.projects import (
    CreateProjectRequest,
    ProjectListResponse,
    ProjectResponse,
    RenderedPromptResponse,
    UpdateProjectRequest,
)
from toolrelay_server.providers import ProviderManager
from toolrelay_server.routers.errors import api_error, not_found
from toolrelay_server.store import ChatStore, Project
from toolrelay_server.tools import DEFAULT_SYSTEM_PROMPT, ToolRegistry, render_system_prompt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])


def load_project(store: ChatStore, project_id: str) -> Project:
    try:
        return store.get_project(project_id)
    except FileNotFoundError:
        raise not_found("project", project_id)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request_body: CreateProjectRequest,
    store: ChatStore = Depends(get_store),
) -> ProjectResponse:
    try:
        project = store.create_project(request_body.name, request_body.system_prompt)
    except ValueError as e:
        raise api_error(400, "invalid_project", str(e))
    return ProjectResponse.model_validate(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(store: ChatStore = Depends(get_store)) -> ProjectListResponse:
    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(p) for p in store.list_projects()]
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, store: ChatStore = Depends(get_store)) -> ProjectResponse:
    return ProjectResponse.model_validate(load_project(store, project_id))


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    request_body: UpdateProjectRequest,
    store: ChatStore = Depends(get_store),
) -> ProjectResponse:
    """Rename a project or replace its instruction template."""
    project = load_project(store, project_id)
    if request_body.name is not None:
        project.name = request_body.name.strip()
    if "system_prompt" in request_body.model_fields_set:
        project.system_prompt = request_body.system_prompt or None
    store.update_project(project)
    logger.info(f"Updated project {project_id}")
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    store: ChatStore = Depends(get_store),
    hub: ConversationHub = Depends(get_hub),
) -> None:
    """Delete a project with all of its chats."""
    project = load_project(store, project_id)
    for chat in store.list_chats(project.project_id):
        await hub.discard(chat.chat_id)
    store.delete_project(project_id)


@router.post("/{project_id}/system-prompt/reset", response_model=ProjectResponse)
async def reset_system_prompt(
    project_id: str, store: ChatStore = Depends(get_store)
) -> ProjectResponse:
    """Drop the project's template so the default one applies again."""
    project = load_project(store, project_id)
    project.system_prompt = None
    store.update_project(project)
    return ProjectResponse.model_validate(project)


@router.get("/{project_id}/system-prompt/rendered", response_model=RenderedPromptResponse)
async def rendered_system_prompt(
    project_id: str,
    store: ChatStore = Depends(get_store),
    provider_manager: ProviderManager = Depends(get_provider_manager),
) -> RenderedPromptResponse:
    """Show the system prompt with the currently available tools filled in."""
    project = load_project(store, project_id)
    view = ToolRegistry(provider_manager.active()).build_view()
    template = (project.system_prompt or "").strip() or DEFAULT_SYSTEM_PROMPT
    return RenderedPromptResponse(
        project_id=project_id,
        template=template,
        rendered=render_system_prompt(project.system_prompt, view),
    )
