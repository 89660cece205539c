"""Tiered permission gate for tool execution.

A tool name moves from unasked to one of three grant tiers:

- once: the current batch runs, nothing is recorded
- session: the name is remembered until the process restarts
- always: a durable global flag allows every tool, across restarts
"""

import logging

from toolrelay_server.preferences import PreferencesStore
from toolrelay_server.tools.types import GrantScope, ToolCall

logger = logging.getLogger(__name__)

PRE_GRANTED_TOOLS = frozenset({"getToolSchema", "listTools"})


class PermissionGate:
    """Decides which calls of a batch need the user's approval."""

    def __init__(self, preferences: PreferencesStore):
        self.preferences = preferences
        self._session_granted: set[str] = set()

    @property
    def allow_all(self) -> bool:
        return self.preferences.load().allow_all_tools

    @property
    def session_grants(self) -> frozenset[str]:
        return frozenset(self._session_granted)

    def is_granted(self, tool_name: str) -> bool:
        return (
            tool_name in PRE_GRANTED_TOOLS
            or self.allow_all
            or tool_name in self._session_granted
        )

    def needs_approval(self, calls: list[ToolCall]) -> list[ToolCall]:
        """Return the calls that may not run without asking the user."""
        return [call for call in calls if not self.is_granted(call.name)]

    def grant(self, scope: GrantScope, calls: list[ToolCall]) -> None:
        """Record the user's decision for an approved batch.

        Args:
            scope: How long the approval lasts
            calls: The batch being approved
        """
        if scope == GrantScope.SESSION:
            names = {call.name for call in calls}
            self._session_granted.update(names)
            logger.info(f"Granted tools for this session: {sorted(names)}")
        elif scope == GrantScope.ALWAYS:
            self.preferences.update(allow_all_tools=True)
            logger.info("Granted permanent permission for all tools")
        else:
            logger.debug(f"Granted a single execution for {len(calls)} call(s)")

    def set_allow_all(self, allowed: bool) -> None:
        self.preferences.update(allow_all_tools=allowed)

    def reset_session(self) -> None:
        self._session_granted.clear()
