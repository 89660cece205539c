"""Remote tool provider endpoints."""

import logging

from fastapi import APIRouter, Depends, status

from toolrelay_server.dependencies import get_provider_manager
from toolrelay_server.models.tools import AddProviderRequest, ProviderListResponse, ProviderResponse
from toolrelay_server.providers import ProviderEntry, ProviderManager
from toolrelay_server.routers.errors import api_error, not_found

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/providers", tags=["providers"])


def provider_response(entry: ProviderEntry) -> ProviderResponse:
    return ProviderResponse(
        id=entry.id,
        url=entry.url,
        name=entry.name,
        enabled=entry.enabled,
        status=entry.refresh_status(),
        error=entry.error,
        tool_count=entry.tool_count,
        session_id=entry.client.session.session_id if entry.client else None,
    )


@router.get("", response_model=ProviderListResponse)
async def list_providers(
    manager: ProviderManager = Depends(get_provider_manager),
) -> ProviderListResponse:
    return ProviderListResponse(providers=[provider_response(e) for e in manager.entries])


@router.post("", response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
async def add_provider(
    request_body: AddProviderRequest,
    manager: ProviderManager = Depends(get_provider_manager),
) -> ProviderResponse:
    """Add a provider and connect it if enabled.

    A connection failure is reported in the provider's status, not as an
    HTTP error. Adding a URL that is already configured returns the
    existing provider.
    """
    try:
        entry = await manager.add(
            request_body.url,
            enabled=request_body.enabled,
            name=request_body.name,
            headers=request_body.headers,
        )
    except ValueError as e:
        raise api_error(400, "invalid_provider", str(e))
    return provider_response(entry)


@router.post("/{provider_id}/toggle", response_model=ProviderResponse)
async def toggle_provider(
    provider_id: str,
    manager: ProviderManager = Depends(get_provider_manager),
) -> ProviderResponse:
    try:
        entry = await manager.toggle(provider_id)
    except FileNotFoundError:
        raise not_found("provider", provider_id)
    return provider_response(entry)


@router.delete("/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_provider(
    provider_id: str,
    manager: ProviderManager = Depends(get_provider_manager),
) -> None:
    try:
        await manager.remove(provider_id)
    except FileNotFoundError:
        raise not_found("provider", provider_id)
