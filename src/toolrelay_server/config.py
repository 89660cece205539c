"""Configuration module for toolrelay-server using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ToolRelaySettings(BaseSettings):
    """Main configuration settings for toolrelay-server.

    All settings can be overridden via environment variables with the
    TOOLRELAY_ prefix. For example, TOOLRELAY_OLLAMA_HOST will override the
    ollama_host setting.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Ollama
    ollama_host: str = "http://localhost:11434"
    default_model: str = "llama3.2:latest"
    native_tool_calling: bool = False

    # Data directories (relative to data_dir)
    data_dir: str = "."
    store_dir: str = "store"
    preferences_file: str = "preferences.json"

    # Conversation loop
    history_window: int = Field(default=50, ge=1)
    max_tool_rounds: int = Field(default=25, ge=1)

    # Code sandbox
    eval_timeout_ms: int = Field(default=1000, ge=1)

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="TOOLRELAY_")

    # --- Resolved paths (computed from data_dir + relative paths) ---

    @property
    def resolved_store_dir(self) -> Path:
        """Get the full path to the conversation store directory."""
        return Path(self.data_dir) / self.store_dir

    @property
    def resolved_preferences_file(self) -> Path:
        """Get the full path to the preferences file."""
        return Path(self.data_dir) / self.preferences_file
