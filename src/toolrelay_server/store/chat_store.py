"""Durable store for projects, chats and messages.

Records are kept as JSON files under a root directory:

- `projects/<project_id>.json` holds a project
- `chats/<chat_id>.json` holds a chat's metadata and its message list:
  {
      "metadata": {...},
      "messages": [...]
  }

Every write replaces the whole file atomically (put-by-key). Concurrent
writers within one process are not supported.
"""

import json
import logging
import uuid
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

from toolrelay_server.preferences import write_json_atomic
from toolrelay_server.store.types import (
    Chat,
    Message,
    Project,
    message_from_dict,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "Default Project"
DEFAULT_CHAT_TITLE = "New Chat"


def generate_id() -> str:
    """Generate a new unique record ID (10-character hexadecimal string)."""
    return uuid.uuid4().hex[:10]


class ChatStore:
    """CRUD over projects, chats and messages backed by JSON files."""

    def __init__(self, root: Path):
        """Initialize the store.

        Args:
            root: Directory holding the store; created if missing
        """
        self.root = root
        self.projects_dir = root / "projects"
        self.chats_dir = root / "chats"
        self.projects_dir.mkdir(parents=True, exist_ok=True)
        self.chats_dir.mkdir(parents=True, exist_ok=True)

    # --- Projects ---

    def create_project(self, name: str, system_prompt: str | None = None) -> Project:
        """Create a project.

        Raises:
            ValueError: If the name is blank
        """
        if not name.strip():
            raise ValueError("Project name cannot be empty")

        project = Project(
            project_id=generate_id(),
            name=name.strip(),
            system_prompt=system_prompt or None,
            created_at=utc_now(),
        )
        self._write_project(project)
        logger.info(f"Created project {project.project_id} ({project.name})")
        return project

    def get_project(self, project_id: str) -> Project:
        """Load a project.

        Raises:
            FileNotFoundError: If the project doesn't exist
        """
        path = self.projects_dir / f"{project_id}.json"
        if not path.exists():
            raise FileNotFoundError(f"Project {project_id} not found")
        return Project(**self._read(path))

    def list_projects(self) -> list[Project]:
        """List all projects, oldest first."""
        projects: list[Project] = []
        for path in self.projects_dir.glob("*.json"):
            try:
                projects.append(Project(**self._read(path)))
            except Exception as e:
                logger.warning(f"Failed to load project {path.stem}: {e}")
        projects.sort(key=lambda p: p.created_at)
        return projects

    def update_project(self, project: Project) -> Project:
        self.get_project(project.project_id)
        self._write_project(project)
        return project

    def delete_project(self, project_id: str) -> None:
        """Delete a project together with its chats and their messages.

        Raises:
            FileNotFoundError: If the project doesn't exist
        """
        path = self.projects_dir / f"{project_id}.json"
        if not path.exists():
            raise FileNotFoundError(f"Project {project_id} not found")

        for chat in self.list_chats(project_id):
            self.delete_chat(chat.chat_id)
        path.unlink()
        logger.info(f"Deleted project {project_id}")

    def ensure_default_project(self) -> Project:
        """Return the first project, creating the default one if none exist."""
        projects = self.list_projects()
        if projects:
            return projects[0]
        return self.create_project(DEFAULT_PROJECT_NAME)

    # --- Chats ---

    def create_chat(
        self, project_id: str, title: str = DEFAULT_CHAT_TITLE, model: str = ""
    ) -> Chat:
        """Create an empty chat in a project.

        Raises:
            FileNotFoundError: If the project doesn't exist
        """
        self.get_project(project_id)
        now = utc_now()
        chat = Chat(
            chat_id=generate_id(),
            project_id=project_id,
            title=title or DEFAULT_CHAT_TITLE,
            model=model,
            created_at=now,
            updated_at=now,
        )
        self._write_chat(chat, [])
        logger.info(f"Created chat {chat.chat_id} in project {project_id}")
        return chat

    def get_chat(self, chat_id: str) -> Chat:
        """Load a chat's metadata.

        Raises:
            FileNotFoundError: If the chat doesn't exist
        """
        data = self._read_chat_file(chat_id)
        return Chat(**data["metadata"])

    def list_chats(self, project_id: str) -> list[Chat]:
        """List a project's chats, most recently updated first."""
        chats: list[Chat] = []
        for path in self.chats_dir.glob("*.json"):
            try:
                chat = Chat(**self._read(path)["metadata"])
            except Exception as e:
                logger.warning(f"Failed to load chat {path.stem}: {e}")
                continue
            if chat.project_id == project_id:
                chats.append(chat)
        chats.sort(key=lambda c: c.updated_at, reverse=True)
        return chats

    def update_chat(self, chat: Chat) -> Chat:
        """Persist chat metadata, bumping updated_at.

        Raises:
            FileNotFoundError: If the chat doesn't exist
        """
        data = self._read_chat_file(chat.chat_id)
        chat.updated_at = utc_now()
        self._write_chat(chat, data.get("messages", []))
        return chat

    def delete_chat(self, chat_id: str) -> None:
        path = self.chats_dir / f"{chat_id}.json"
        if not path.exists():
            raise FileNotFoundError(f"Chat {chat_id} not found")
        path.unlink()
        logger.info(f"Deleted chat {chat_id}")

    # --- Messages ---

    def add_message(self, chat_id: str, message: Message) -> Message:
        """Append a message, filling in its id, chat id and timestamp.

        Raises:
            FileNotFoundError: If the chat doesn't exist
        """
        data = self._read_chat_file(chat_id)
        message.chat_id = chat_id
        if not message.message_id:
            message.message_id = generate_id()
        if not message.timestamp:
            message.timestamp = utc_now()

        messages = data.get("messages", [])
        messages.append(asdict(message))
        chat = Chat(**data["metadata"])
        chat.updated_at = utc_now()
        self._write_chat(chat, messages)
        return message

    def update_message(self, chat_id: str, message: Message) -> Message:
        """Replace a stored message with the same message_id.

        Raises:
            FileNotFoundError: If the chat or the message doesn't exist
        """
        data = self._read_chat_file(chat_id)
        messages = data.get("messages", [])
        for i, stored in enumerate(messages):
            if stored.get("message_id") == message.message_id:
                messages[i] = asdict(replace(message, chat_id=chat_id))
                self._write_chat(Chat(**data["metadata"]), messages)
                return message
        raise FileNotFoundError(f"Message {message.message_id} not found")

    def get_messages(self, chat_id: str, limit: int | None = None) -> list[Message]:
        """Return a chat's messages ordered by timestamp.

        Args:
            chat_id: The chat to read
            limit: Keep only the trailing N messages

        Raises:
            FileNotFoundError: If the chat doesn't exist
        """
        data = self._read_chat_file(chat_id)
        messages = [message_from_dict(m) for m in data.get("messages", [])]
        messages.sort(key=lambda m: m.timestamp)
        if limit and len(messages) > limit:
            messages = messages[-limit:]
        return messages

    def clear_messages(self, chat_id: str) -> None:
        data = self._read_chat_file(chat_id)
        self._write_chat(Chat(**data["metadata"]), [])
        logger.info(f"Cleared messages of chat {chat_id}")

    # --- Files ---

    def _read(self, path: Path) -> dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _read_chat_file(self, chat_id: str) -> dict[str, Any]:
        path = self.chats_dir / f"{chat_id}.json"
        if not path.exists():
            raise FileNotFoundError(f"Chat {chat_id} not found")
        return self._read(path)

    def _write_project(self, project: Project) -> None:
        write_json_atomic(self.projects_dir / f"{project.project_id}.json", asdict(project))

    def _write_chat(self, chat: Chat, messages: list[dict[str, Any]]) -> None:
        write_json_atomic(
            self.chats_dir / f"{chat.chat_id}.json",
            {"metadata": asdict(chat), "messages": messages},
        )
        logger.debug(f"Saved chat {chat.chat_id} ({len(messages)} messages)")
