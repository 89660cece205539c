"""Data types for the tool-call orchestration engine.

This module defines the values that flow between the extractor, validator,
sequencer, permission gate and executor: tool definitions, tool calls,
validation outcomes, grant scopes and execution results.
"""

import json
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Literal


@dataclass(frozen=True)
class ToolOrigin:
    """Where a tool definition comes from.

    Attributes:
        kind: "builtin" for the introspection/execution tools, "remote" for
              tools reported by a connected provider
        provider_id: Identifier of the provider for remote tools
    """

    kind: Literal["builtin", "remote"]
    provider_id: str | None = None

    @classmethod
    def builtin(cls) -> "ToolOrigin":
        return cls(kind="builtin")

    @classmethod
    def remote(cls, provider_id: str) -> "ToolOrigin":
        return cls(kind="remote", provider_id=provider_id)

    @property
    def is_builtin(self) -> bool:
        return self.kind == "builtin"


@dataclass(frozen=True)
class ToolDefinition:
    """A named, schema-described function the model may invoke.

    Attributes:
        name: Unique tool name within a registry view
        description: Human-readable description shown to the model
        parameters: JSON Schema object for the arguments, or None
        origin: Builtin or Remote(provider_id)
    """

    name: str
    description: str
    parameters: dict[str, Any] | None
    origin: ToolOrigin = field(default_factory=ToolOrigin.builtin)

    def to_engine_dict(self) -> dict[str, Any]:
        """Render in the function-calling shape understood by Ollama."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def find_tool(name: str, tools: Iterable[ToolDefinition]) -> ToolDefinition | None:
    return next((tool for tool in tools if tool.name == name), None)


def generate_call_id() -> str:
    """Generate an opaque correlation id for a tool call."""
    return "call_" + secrets.token_hex(6)


@dataclass(frozen=True)
class ToolCall:
    """A single requested tool invocation.

    Arguments are always carried as JSON text (possibly invalid), never as a
    live object, so a call round-trips through storage unchanged.
    """

    id: str
    name: str
    arguments: str = "{}"

    @classmethod
    def create(cls, name: str, arguments: Any = None) -> "ToolCall":
        """Build a call with a fresh id, serializing non-text arguments."""
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(id=generate_call_id(), name=name, arguments=arguments)

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.name, self.arguments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        """Load a call stored in the function-calling shape.

        Older records may carry arguments as an object; those are
        re-serialized to text.
        """
        function = data.get("function", {})
        arguments = function.get("arguments", "{}")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(
            id=data.get("id") or generate_call_id(),
            name=function.get("name", ""),
            arguments=arguments,
        )

    def parsed_arguments(self) -> Any:
        """Parse the argument text. Raises json.JSONDecodeError."""
        return json.loads(self.arguments)


@dataclass(frozen=True)
class Valid:
    """The call may be executed."""


@dataclass(frozen=True)
class Invalid:
    """The call must not be executed; the model gets corrective feedback.

    Attributes:
        message: What was wrong
        schema: The tool's parameter schema when the tool exists
        example_call: Minimal valid `{name, arguments}` synthesized from the schema
    """

    message: str
    schema: dict[str, Any] | None = None
    example_call: dict[str, Any] | None = None


ValidationOutcome = Valid | Invalid


class GrantScope(str, Enum):
    """Durability tier of a permission decision."""

    ONCE = "once"
    SESSION = "session"
    ALWAYS = "always"


@dataclass
class ToolResult:
    """Outcome of one attempted call in a batch.

    Attributes:
        call: The call this result answers
        content: Text fed back to the model
        is_error: Whether the result reports a failure
        halted: Whether this failure abandons the rest of the batch
    """

    call: ToolCall
    content: str
    is_error: bool = False
    halted: bool = False
