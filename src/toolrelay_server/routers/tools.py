"""Tool listing and permission endpoints."""

import logging

from fastapi import APIRouter, Depends

from toolrelay_server.dependencies import get_permission_gate, get_provider_manager
from toolrelay_server.models.tools import (
    PermissionsResponse,
    ToolInfo,
    ToolListResponse,
    UpdatePermissionsRequest,
)
from toolrelay_server.providers import ProviderManager
from toolrelay_server.tools import PRE_GRANTED_TOOLS, PermissionGate, ToolRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def permissions_response(gate: PermissionGate) -> PermissionsResponse:
    return PermissionsResponse(
        allow_all_tools=gate.allow_all,
        session_grants=sorted(gate.session_grants),
        pre_granted=sorted(PRE_GRANTED_TOOLS),
    )


@router.get("", response_model=ToolListResponse)
async def list_tools(
    manager: ProviderManager = Depends(get_provider_manager),
) -> ToolListResponse:
    """List built-in tools and the tools of connected providers."""
    view = ToolRegistry(manager.active()).build_view()
    return ToolListResponse(
        tools=[
            ToolInfo(
                name=tool.name,
                description=tool.description,
                origin=tool.origin.kind,
                provider_id=tool.origin.provider_id,
            )
            for tool in view.full_tools
        ]
    )


@router.get("/permissions", response_model=PermissionsResponse)
async def get_permissions(gate: PermissionGate = Depends(get_permission_gate)) -> PermissionsResponse:
    return permissions_response(gate)


@router.put("/permissions", response_model=PermissionsResponse)
async def update_permissions(
    request_body: UpdatePermissionsRequest,
    gate: PermissionGate = Depends(get_permission_gate),
) -> PermissionsResponse:
    """Set the durable 'always allow' flag; session grants are cleared."""
    gate.set_allow_all(request_body.allow_all_tools)
    gate.reset_session()
    logger.info(f"Tool permissions updated: allow_all_tools={request_body.allow_all_tools}")
    return permissions_response(gate)
