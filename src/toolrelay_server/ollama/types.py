"""Types describing Ollama models."""

from dataclasses import dataclass, field
from typing import Any

DEFAULT_CONTEXT_LENGTH = 2048


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from an ollama response object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(key, default)
    value = getattr(obj, key, default)
    return default if value is None else value


def _context_length(modelinfo: Any, family: str) -> int:
    if not isinstance(modelinfo, dict):
        return DEFAULT_CONTEXT_LENGTH
    for key in (f"{family}.context_length", "context_length"):
        if key in modelinfo:
            return int(modelinfo[key])
    return DEFAULT_CONTEXT_LENGTH


@dataclass
class ModelInfo:
    """Metadata of a locally available model.

    Attributes:
        name: Model tag (e.g., "qwen3:14b")
        size_mb: Size on disk in megabytes
        family: Model family (e.g., "qwen3")
        parameter_size: Human-readable parameter count (e.g., "14.8B")
        quantization_level: Quantization level (e.g., "Q4_K_M")
        capabilities: Reported capabilities (e.g., ["completion", "tools"])
        context_length: Maximum context window in tokens
    """

    name: str
    size_mb: float = 0.0
    family: str = "unknown"
    parameter_size: str = "unknown"
    quantization_level: str = "unknown"
    capabilities: list[str] = field(default_factory=lambda: ["completion"])
    context_length: int = DEFAULT_CONTEXT_LENGTH

    @property
    def supports_tools(self) -> bool:
        return "tools" in self.capabilities

    @classmethod
    def from_ollama(cls, show_response: Any, listed: Any) -> "ModelInfo":
        """Combine a `list` entry (name, size) with a `show` response (details).

        Args:
            show_response: Response of `AsyncClient.show`
            listed: The matching entry of `AsyncClient.list`
        """
        name = _field(listed, "model") or _field(listed, "name", "unknown")
        size_bytes = int(_field(listed, "size", 0) or 0)

        details = _field(show_response, "details", {})
        family = _field(details, "family", "unknown")

        return cls(
            name=name,
            size_mb=round(size_bytes / (1024 * 1024), 1) if size_bytes > 0 else 0.0,
            family=family,
            parameter_size=_field(details, "parameter_size", "unknown"),
            quantization_level=_field(details, "quantization_level", "unknown"),
            capabilities=list(_field(show_response, "capabilities", None) or ["completion"]),
            context_length=_context_length(_field(show_response, "modelinfo", {}), family),
        )
