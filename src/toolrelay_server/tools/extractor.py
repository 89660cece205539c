"""Recovery of tool calls from free-form model output.

Small local models rarely emit well-formed function-calling output. This
module hunts for call intents in the raw text of a turn, tolerating markdown
fences, surrounding prose, single objects, arrays, several sequential
objects and a quasi-XML `<tool_call>name({...})</tool_call>` wrapping.
"""

import json
import logging
import re
from typing import Any

from toolrelay_server.tools.types import ToolCall

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```json|```")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_TAGGED_CALL_RE = re.compile(
    r"<(?:tool_code|tool_call)>(?P<name>\w+)\((?P<args>\{[\s\S]*?\})\)</(?:tool_code|tool_call)>"
)


def _has_name(candidate: Any) -> bool:
    return isinstance(candidate, dict) and bool(candidate.get("name"))


def _to_calls(candidates: list[dict[str, Any]]) -> list[ToolCall]:
    return [
        ToolCall.create(str(item["name"]), item.get("arguments"))
        for item in candidates
    ]


def _from_array(text: str) -> list[ToolCall] | None:
    match = _ARRAY_RE.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if isinstance(parsed, list) and parsed and _has_name(parsed[0]):
        return _to_calls([item for item in parsed if isinstance(item, dict)])
    return None


def scan_json_objects(text: str) -> list[Any]:
    """Return every top-level `{...}` span of text that parses as JSON.

    Braces inside string literals are ignored; a backslash escapes the
    following character inside a string.
    """
    found: list[Any] = []
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, char in enumerate(text):
        if in_string:
            if char == "\\":
                escaped = not escaped
            elif char == '"' and not escaped:
                in_string = False
            else:
                escaped = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0 and start != -1:
                try:
                    found.append(json.loads(text[start : i + 1]))
                except json.JSONDecodeError:
                    pass
                start = -1

    return found


def _from_braces(text: str) -> list[ToolCall] | None:
    candidates = [obj for obj in scan_json_objects(text) if _has_name(obj)]
    if not candidates:
        return None
    logger.debug(f"Extracted {len(candidates)} tool calls via brace counting")
    return _to_calls(candidates)


def _from_tags(text: str) -> list[ToolCall] | None:
    match = _TAGGED_CALL_RE.search(text)
    if not match:
        return None
    try:
        arguments = json.loads(match.group("args"))
    except json.JSONDecodeError as e:
        logger.warning(f"Could not parse tagged tool call arguments: {e}")
        return None
    if not isinstance(arguments, dict):
        return None
    return [ToolCall.create(match.group("name"), arguments)]


def extract_tool_calls(text: str | None) -> list[ToolCall] | None:
    """Extract tool calls from the raw text of one model turn.

    Strategies are tried in order and the first success wins: a JSON array
    of calls, brace-counted JSON objects, then the tag-wrapped form.

    Args:
        text: The complete generated text

    Returns:
        The recovered calls with fresh ids, or None when the text holds no
        recognizable call (it is then plain conversational text)
    """
    if not text:
        return None

    try:
        cleaned = _FENCE_RE.sub("", text).strip()
        for strategy in (_from_array, _from_braces, _from_tags):
            calls = strategy(cleaned)
            if calls:
                return calls
    except Exception as e:
        logger.error(f"Tool call extraction failed: {e}", exc_info=True)
        return None

    return None


def normalize_native_calls(raw_calls: list[Any] | None) -> list[ToolCall] | None:
    """Normalize structured tool calls returned by the inference engine.

    Accepts the `{"function": {"name", "arguments"}}` shape Ollama returns,
    with arguments either as an object or as JSON text.
    """
    if not raw_calls:
        return None

    calls: list[ToolCall] = []
    for raw in raw_calls:
        if hasattr(raw, "model_dump"):
            raw = raw.model_dump()
        if not isinstance(raw, dict):
            continue
        function = raw.get("function") or raw
        name = function.get("name")
        if not name:
            continue
        calls.append(ToolCall.create(str(name), function.get("arguments")))

    return calls or None


def visible_content(text: str, calls: list[ToolCall] | None) -> str:
    """Return the assistant text to keep alongside extracted calls.

    A turn that is nothing but a call payload is cleared so the message
    reads as a pure tool request.
    """
    if calls and text.strip().startswith(("{", "[")):
        return ""
    return text
