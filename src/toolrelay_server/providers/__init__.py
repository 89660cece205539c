"""Remote tool providers.

This package connects to MCP servers over streamable HTTP, lists the tools
they expose and invokes them by name.
"""

from toolrelay_server.providers.client import McpProvider, ProviderSession
from toolrelay_server.providers.manager import ProviderEntry, ProviderManager

__all__ = ["McpProvider", "ProviderEntry", "ProviderManager", "ProviderSession"]
