"""Preference endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from toolrelay_server.dependencies import get_preferences
from toolrelay_server.models.tools import PreferencesResponse, UpdatePreferencesRequest
from toolrelay_server.preferences import PreferencesStore

router = APIRouter(prefix="/api/v1/preferences", tags=["preferences"])


def preferences_response(store: PreferencesStore) -> PreferencesResponse:
    data = asdict(store.load())
    data.pop("providers")
    return PreferencesResponse(**data)


@router.get("", response_model=PreferencesResponse)
async def get_preferences_endpoint(
    store: PreferencesStore = Depends(get_preferences),
) -> PreferencesResponse:
    return preferences_response(store)


@router.patch("", response_model=PreferencesResponse)
async def update_preferences(
    request_body: UpdatePreferencesRequest,
    store: PreferencesStore = Depends(get_preferences),
) -> PreferencesResponse:
    """Update the given preferences; omitted fields are left unchanged."""
    changes = request_body.model_dump(exclude_unset=True)
    if changes:
        store.update(**changes)
    return preferences_response(store)
