"""Persisted user preferences.

Preferences survive process restarts and hold the global "always allow"
tool flag, the remote provider list, the sandbox safety toggle and the last
active project/chat. They are stored as a single JSON file.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Connection settings for one remote tool provider."""

    url: str
    enabled: bool = True
    name: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Preferences:
    """Preferences persisted across restarts."""

    allow_all_tools: bool = False
    safe_eval: bool = True
    providers: list[ProviderConfig] = field(default_factory=list)
    last_project_id: str | None = None
    last_chat_id: str | None = None


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to a temp file next to path, then replace path with it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class PreferencesStore:
    """Loads and saves Preferences from a JSON file.

    The loaded preferences are cached; every mutation goes through `update`
    or `save` so the file always reflects the in-memory state.
    """

    def __init__(self, path: Path):
        self.path = path
        self._preferences: Preferences | None = None

    def load(self) -> Preferences:
        """Return the current preferences, reading the file on first use.

        A missing or unreadable file yields the defaults.
        """
        if self._preferences is not None:
            return self._preferences

        if not self.path.exists():
            self._preferences = Preferences()
            return self._preferences

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._preferences = Preferences(
                allow_all_tools=bool(data.get("allow_all_tools", False)),
                safe_eval=bool(data.get("safe_eval", True)),
                providers=[ProviderConfig(**p) for p in data.get("providers", [])],
                last_project_id=data.get("last_project_id"),
                last_chat_id=data.get("last_chat_id"),
            )
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Failed to read preferences from {self.path}: {e}")
            self._preferences = Preferences()

        return self._preferences

    def save(self, preferences: Preferences | None = None) -> None:
        if preferences is not None:
            self._preferences = preferences
        write_json_atomic(self.path, asdict(self.load()))
        logger.debug(f"Saved preferences to {self.path}")

    def update(self, **changes: Any) -> Preferences:
        """Set the given fields and persist.

        Raises:
            ValueError: If a field name is unknown
        """
        preferences = self.load()
        for key, value in changes.items():
            if not hasattr(preferences, key):
                raise ValueError(f"Unknown preference: {key}")
            setattr(preferences, key, value)
        self.save()
        return preferences
