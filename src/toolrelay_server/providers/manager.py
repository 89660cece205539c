"""Management of the configured remote tool providers.

The provider list is persisted in the preferences file. Each entry keeps
its connection status so a failing server never takes the others, or the
registry rebuild, down with it.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Literal

from toolrelay_server.errors import ProviderError
from toolrelay_server.preferences import PreferencesStore, ProviderConfig
from toolrelay_server.providers.client import McpProvider
from toolrelay_server.tools.types import ToolDefinition

logger = logging.getLogger(__name__)

ProviderStatus = Literal["idle", "connecting", "connected", "error", "disabled"]


def clean_url(url: str) -> str:
    return url.strip().rstrip("/")


@dataclass
class ProviderEntry:
    """A configured provider and its live connection state."""

    id: str
    url: str
    name: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    enabled: bool = True
    status: ProviderStatus = "idle"
    error: str | None = None
    client: McpProvider | None = None

    def refresh_status(self) -> ProviderStatus:
        """Move a connected entry whose connection has ended to the error state."""
        if self.status == "connected" and (self.client is None or not self.client.is_connected):
            reason = self.client.last_error if self.client is not None else None
            self.status = "error"
            self.error = reason or "Connection lost"
            logger.warning(f"Provider {self.url} is no longer connected: {self.error}")
        return self.status

    @property
    def tools(self) -> list[ToolDefinition]:
        if self.refresh_status() != "connected":
            return []
        return self.client.tools

    @property
    def tool_count(self) -> int:
        return len(self.tools)

    @property
    def is_active(self) -> bool:
        return self.enabled and self.refresh_status() == "connected"

    def to_config(self) -> ProviderConfig:
        return ProviderConfig(
            url=self.url, enabled=self.enabled, name=self.name, headers=self.headers
        )


class ProviderManager:
    """Adds, toggles, removes and connects remote tool providers."""

    def __init__(self, preferences: PreferencesStore, client_factory=McpProvider):
        self.preferences = preferences
        self.client_factory = client_factory
        self.entries: list[ProviderEntry] = []

    def get(self, provider_id: str) -> ProviderEntry:
        """Get a provider by id.

        Raises:
            FileNotFoundError: If no provider has this id
        """
        for entry in self.entries:
            if entry.id == provider_id:
                return entry
        raise FileNotFoundError(f"Provider {provider_id} not found")

    def active(self) -> list[ProviderEntry]:
        return [entry for entry in self.entries if entry.is_active]

    def find_for_tool(self, tool_name: str) -> ProviderEntry | None:
        """Return the first active provider exposing a tool name."""
        for entry in self.active():
            if any(tool.name == tool_name for tool in entry.tools):
                return entry
        return None

    async def load(self) -> None:
        """Recreate the persisted providers, connecting the enabled ones."""
        for config in self.preferences.load().providers:
            await self.add(
                config.url,
                enabled=config.enabled,
                name=config.name,
                headers=config.headers,
                persist=False,
            )

    async def connect(self, entry: ProviderEntry) -> None:
        entry.status = "connecting"
        entry.error = None
        entry.client = self.client_factory(entry.url, entry.headers, provider_id=entry.id)

        try:
            await entry.client.connect()
            entry.status = "connected"
        except ProviderError as e:
            logger.warning(f"Failed to connect provider {entry.url}: {e}")
            entry.status = "error"
            entry.error = str(e)

    async def add(
        self,
        url: str,
        enabled: bool = True,
        name: str = "",
        headers: dict[str, str] | None = None,
        persist: bool = True,
    ) -> ProviderEntry:
        """Add a provider; an existing URL only picks up a missing name.

        Raises:
            ValueError: If the URL is empty
        """
        url = clean_url(url)
        if not url:
            raise ValueError("Provider URL cannot be empty")

        for existing in self.entries:
            if existing.url == url:
                if name and not existing.name:
                    existing.name = name
                    self.save()
                return existing

        entry = ProviderEntry(
            id=uuid.uuid4().hex[:10],
            url=url,
            name=name,
            headers=dict(headers or {}),
            enabled=enabled,
        )
        self.entries.append(entry)

        if enabled:
            await self.connect(entry)
        else:
            entry.status = "disabled"

        if persist:
            self.save()
        logger.info(f"Added provider {url} (status: {entry.status})")
        return entry

    async def toggle(self, provider_id: str) -> ProviderEntry:
        entry = self.get(provider_id)
        entry.enabled = not entry.enabled

        if entry.enabled:
            await self.connect(entry)
        else:
            await self._disconnect(entry)
            entry.status = "disabled"

        self.save()
        return entry

    async def remove(self, provider_id: str) -> None:
        entry = self.get(provider_id)
        await self._disconnect(entry)
        self.entries.remove(entry)
        self.save()
        logger.info(f"Removed provider {entry.url}")

    async def close_all(self) -> None:
        for entry in self.entries:
            await self._disconnect(entry)

    def save(self) -> None:
        self.preferences.update(providers=[entry.to_config() for entry in self.entries])

    async def _disconnect(self, entry: ProviderEntry) -> None:
        if entry.client is None:
            return
        try:
            await entry.client.disconnect()
        except Exception as e:
            logger.warning(f"Error disconnecting provider {entry.url}: {e}")
        entry.client = None
