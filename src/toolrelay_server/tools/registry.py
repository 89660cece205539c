"""Tool registry: built-in tools plus the tools of connected providers.

The registry produces two views each turn. The full view carries every
parameter schema and is used for validation and execution. The prompt view
hides the schemas of all non-built-in tools, so the model has to call
getToolSchema before it can invoke them.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Protocol

from toolrelay_server.tools.types import ToolDefinition, find_tool

logger = logging.getLogger(__name__)

GET_TOOL_SCHEMA = "getToolSchema"
EVAL_CODE = "evalCode"
LIST_TOOLS = "listTools"

BUILTIN_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name=GET_TOOL_SCHEMA,
        description="Get the input schema for a specific tool.",
        parameters={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "The name of the tool to inspect.",
                },
            },
            "required": ["name"],
        },
    ),
    ToolDefinition(
        name=EVAL_CODE,
        description=(
            "Execute Python code. Use this for math, date/time, text processing, or logic."
        ),
        parameters={
            "type": "object",
            "properties": {
                "code": {
                    "type": "string",
                    "description": (
                        "The Python function body to execute. It must end with a "
                        "return statement, e.g. `import math\nreturn math.sqrt(144)`"
                    ),
                },
            },
            "required": ["code"],
        },
    ),
    ToolDefinition(
        name=LIST_TOOLS,
        description=(
            "List available tools. Returns a list of tool names and descriptions. "
            "Supports searching by query string (BM25-like ranking) or regex."
        ),
        parameters={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Optional search query to filter tools.",
                },
                "use_regex": {
                    "type": "boolean",
                    "description": "If true, treats the query as a regular expression.",
                },
            },
        },
    ),
)

BUILTIN_TOOL_NAMES = frozenset(tool.name for tool in BUILTIN_TOOLS)

HIDDEN_PARAMETERS = {
    "type": "object",
    "properties": {},
    "description": "Parameters hidden. Call getToolSchema to view.",
}

TOOL_LIST_PLACEHOLDER = "{{listTools}}"
TOOL_NAMES_PLACEHOLDER = "{{tool_names}}"

DEFAULT_SYSTEM_PROMPT = """You are a helpful and capable AI assistant with access to powerful tools.

YOUR PRIMARY DIRECTIVE: Always listen carefully to the user's request and do exactly what they ask. Be helpful, accurate, and responsive to their needs.

TOOL USAGE PROTOCOL:
1. DISCOVER: You do not know your tools yet. ALWAYS start by calling '{"name": "listTools", "arguments": {}}' to see what functions are available.
2. LEARN: Before using any tool, you MUST call '{"name": "getToolSchema", "arguments": {"name": "<tool_name>"}}' to understand its arguments.
3. EXECUTE: Call the tool using the exact schema you retrieved.
4. CODE EVALS: You can use evalCode to run Python code '{"name": "evalCode", "arguments": {"code": "result = <YOUR_CODE>\\nreturn result"}}'. You must end your code with 'return <VAR>'.

AVAILABLE TOOLS: {{listTools}}

IMPORTANT RULES:
- ALWAYS prioritize what the user asks for - your job is to help them accomplish their goals
- Use the 'evalCode' tool for all math, logic, date/time calculations, and code execution
- Reply naturally to greetings (e.g., "Hi", "Hello") without using tools
- When the user asks you to do something, DO IT - don't just explain how to do it
- Output strictly valid JSON for tool calls: {"name": "tool_name", "arguments": { ... }}
- Be proactive and helpful - if you can solve the user's problem with available tools, do so immediately"""


class ToolSource(Protocol):
    """Anything that currently exposes remote tools (a connected provider)."""

    @property
    def tools(self) -> list[ToolDefinition]: ...


@dataclass(frozen=True)
class ToolView:
    """The tool definitions of one turn.

    Attributes:
        full_tools: Definitions with parameter schemas, for validation and execution
        prompt_tools: Definitions sent to the model, remote schemas hidden
    """

    full_tools: tuple[ToolDefinition, ...]
    prompt_tools: tuple[ToolDefinition, ...]

    def find(self, name: str) -> ToolDefinition | None:
        return find_tool(name, self.full_tools)


class ToolRegistry:
    """Aggregates built-in tools with the tools of active providers."""

    def __init__(self, sources: Iterable[ToolSource]):
        self.sources = list(sources)

    def build_view(self) -> ToolView:
        """Build this turn's views from the currently active sources.

        Cheap and intentionally not cached, so a provider that connected or
        dropped since the last turn is reflected immediately.
        """
        full: list[ToolDefinition] = list(BUILTIN_TOOLS)
        names = {tool.name for tool in full}

        for source in self.sources:
            for tool in source.tools:
                if tool.name in names:
                    logger.warning(f"Duplicate tool name {tool.name!r} skipped")
                    continue
                names.add(tool.name)
                full.append(tool)

        prompt = [
            tool if tool.name in BUILTIN_TOOL_NAMES else replace(tool, parameters=dict(HIDDEN_PARAMETERS))
            for tool in full
        ]
        return ToolView(full_tools=tuple(full), prompt_tools=tuple(prompt))


def render_system_prompt(template: str | None, view: ToolView) -> str:
    """Fill the tool placeholders of a (user-customizable) instruction text.

    Args:
        template: The project's instruction text; blank falls back to the default
        view: This turn's tool view

    Returns:
        The system prompt content
    """
    content = (template or "").strip() or DEFAULT_SYSTEM_PROMPT

    tool_list = "".join(
        f"\n- {tool.name}: {tool.description or 'No description available.'}"
        for tool in view.prompt_tools
    )
    tool_names = ", ".join(tool.name for tool in view.prompt_tools)

    content = content.replace(TOOL_LIST_PLACEHOLDER, tool_list, 1)
    content = content.replace(TOOL_NAMES_PLACEHOLDER, tool_names, 1)
    return content
