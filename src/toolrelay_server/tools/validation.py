"""Schema validation of tool calls and corrective feedback.

Every candidate call is checked against its tool's JSON Schema before
anything runs. When a call is rejected, the model receives the schema and a
minimal valid example synthesized from it, so it has a concrete template to
imitate on its next attempt.
"""

import json
import logging
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from toolrelay_server.tools.types import (
    Invalid,
    ToolCall,
    ToolDefinition,
    Valid,
    ValidationOutcome,
    find_tool,
)

logger = logging.getLogger(__name__)

# Callable with no prior schema knowledge
SCHEMA_EXEMPT_TOOLS = frozenset({"getToolSchema", "listTools"})

_SHORT_CIRCUIT_KEYS = ("example", "default", "const")


def synthesize_example(schema: dict[str, Any] | None) -> Any:
    """Build a minimal value that satisfies a JSON Schema.

    Objects only get their required properties; arrays get a single element.
    `example`, `default`, `const` and `enum` short-circuit to their literal.

    Args:
        schema: A JSON Schema fragment

    Returns:
        An example value for the schema
    """
    if not schema or not isinstance(schema, dict):
        return {}

    for key in _SHORT_CIRCUIT_KEYS:
        if key in schema:
            return schema[key]
    if schema.get("enum"):
        return schema["enum"][0]

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        schema_type = schema_type[0] if schema_type else None

    if schema_type == "object":
        required = schema.get("required", [])
        properties = schema.get("properties", {})
        return {
            key: synthesize_example(prop)
            for key, prop in properties.items()
            if key in required
        }
    if schema_type == "array":
        items = schema.get("items")
        return [synthesize_example(items)] if isinstance(items, dict) else []
    if schema_type == "string":
        return "example_string"
    if schema_type in ("number", "integer"):
        return 123
    if schema_type == "boolean":
        return True
    if schema_type == "null":
        return None
    return {}


def schema_errors(schema: dict[str, Any], arguments: Any) -> str | None:
    """Validate arguments against a schema.

    Returns:
        The joined validation error text, or None when the arguments conform
    """
    try:
        validator = Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(arguments), key=lambda e: list(e.path))
    except SchemaError as e:
        return f"Tool schema is invalid: {e.message}"

    if not errors:
        return None

    parts = []
    for error in errors:
        location = "/".join(str(p) for p in error.absolute_path)
        parts.append(f"{location}: {error.message}" if location else error.message)
    return "; ".join(parts)


def _invalid_for(call: ToolCall, tool: ToolDefinition, message: str) -> Invalid:
    return Invalid(
        message=message,
        schema=tool.parameters,
        example_call={
            "name": call.name,
            "arguments": synthesize_example(tool.parameters),
        },
    )


def validate_call(call: ToolCall, tools: list[ToolDefinition]) -> ValidationOutcome:
    """Validate a single call against the full tool view.

    Args:
        call: The candidate call
        tools: The full (unredacted) tool definitions for this turn

    Returns:
        Valid, or Invalid with a message (and schema/example for known tools)
    """
    if call.name in SCHEMA_EXEMPT_TOOLS:
        return Valid()

    tool = find_tool(call.name, tools)
    if tool is None:
        return Invalid(message=f"Tool '{call.name}' not found.")

    try:
        arguments = call.parsed_arguments()
    except json.JSONDecodeError as e:
        return _invalid_for(call, tool, f"Invalid JSON arguments: {e}")

    if tool.parameters is None:
        return Valid()

    error_text = schema_errors(tool.parameters, arguments)
    if error_text is not None:
        logger.debug(f"Validation failed for {call.name}: {error_text}")
        return _invalid_for(call, tool, error_text)

    return Valid()


def correction_message(call: ToolCall, outcome: Invalid) -> str:
    """Render the tool-result text that tells the model how to fix a call."""
    content = f"Error: {outcome.message}"

    if outcome.example_call is not None:
        content += (
            f"\n\nExpected Schema:\n{json.dumps(outcome.schema, indent=2)}"
            f"\n\nExpected Example:\n{json.dumps(outcome.example_call, indent=2)}"
            f"\n\nYou MUST generate a NEW tool call with the name '{call.name}' "
            "and the corrected arguments based on the JSON schema above."
        )
    else:
        content += (
            f"\n\nThe tool '{call.name}' does not exist. "
            'Use \'{"name": "listTools", "arguments": {}}\' to see available tools.'
        )

    return content
