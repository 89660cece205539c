"""Shaping of stored history into the messages sent to the model.

The model only ever sees plain text: structured tool calls are flattened
into a fenced JSON block on the assistant message and tool results are
downgraded to user messages.
"""

import json
from typing import Any

from toolrelay_server.store.types import AssistantMessage, Message, SystemMessage, ToolMessage

CRASH_OUTPUT_MARKER = "Got outputMessage:"
SYNTAX_ERROR_MARKER = "Got error: SyntaxError:"
ERROR_PREFIX = "Got error:"


def flatten_tool_calls(tool_calls: list[dict[str, Any]]) -> str:
    """Render stored calls as a fenced JSON block of {name, arguments} objects."""
    flattened = []
    for call in tool_calls:
        function = call.get("function", {})
        arguments = function.get("arguments")
        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError:
                pass
        flattened.append({"name": function.get("name"), "arguments": arguments})
    return "```json\n" + json.dumps(flattened, indent=2) + "\n```"


def to_engine_message(message: Message) -> dict[str, Any]:
    if isinstance(message, ToolMessage):
        return {
            "role": "user",
            "content": f"Tool Output [{message.tool_name}]:\n{message.content}",
        }

    content = message.content or ""
    if isinstance(message, AssistantMessage) and message.tool_calls:
        block = flatten_tool_calls(message.tool_calls)
        content = f"{content}\n{block}" if content else block
    return {"role": message.role, "content": content}


def drop_leading_tool_results(history: list[Message]) -> list[Message]:
    """Skip tool results at the start of a trimmed window.

    A window cut from the end of a chat can begin after the assistant message
    that issued the calls; those results would have no visible call.
    """
    start = 0
    while start < len(history) and isinstance(history[start], ToolMessage):
        start += 1
    return history[start:]


def build_engine_messages(system_prompt: str, history: list[Message]) -> list[dict[str, Any]]:
    """Prepend a freshly rendered system prompt to the shaped history.

    Stored system messages are skipped; the prompt is always rebuilt from
    the project template and the current tool view.
    """
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend(
        to_engine_message(message)
        for message in history
        if not isinstance(message, SystemMessage)
    )
    return messages


def recover_crash_output(error: BaseException) -> str | None:
    """Return the raw model text carried by an engine crash, if any."""
    text = str(error)
    if CRASH_OUTPUT_MARKER not in text:
        return None
    return text.split(CRASH_OUTPUT_MARKER, 1)[1].strip() or None


def trim_engine_errors(content: str) -> str:
    if SYNTAX_ERROR_MARKER in content:
        return content.split(ERROR_PREFIX, 1)[0].strip()
    return content
