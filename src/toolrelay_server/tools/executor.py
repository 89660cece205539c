"""Execution of an authorized batch of tool calls.

Calls run strictly in sequence. Introspection failures are reported and the
batch continues; an evalCode failure or any failure on a remote provider
halts the batch, and the remaining calls are never attempted.
"""

import json
import logging
from typing import Any, AsyncIterator, Protocol

from toolrelay_server.errors import ProviderError
from toolrelay_server.tools.registry import EVAL_CODE, GET_TOOL_SCHEMA, LIST_TOOLS, ToolView
from toolrelay_server.tools.sandbox import CodeSandbox
from toolrelay_server.tools.search import filter_tools_regex, rank_tools
from toolrelay_server.tools.types import ToolCall, ToolResult
from toolrelay_server.tools.validation import schema_errors, synthesize_example

logger = logging.getLogger(__name__)

LIST_TOOLS_FOOTER = (
    "\n\nThese are the available tools. Only use them if the user's request requires it. "
    "To learn how to use a tool, call getToolSchema with the tool name."
)
NO_PROVIDER_MESSAGE = "Error: Tool not found on any connected server."


class ProviderLookup(Protocol):
    def find_for_tool(self, tool_name: str) -> Any: ...


def _loads_lenient(arguments: str) -> dict[str, Any]:
    try:
        parsed = json.loads(arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


class ToolExecutor:
    """Dispatches calls to built-in tools, the sandbox or remote providers.

    Args:
        view: The tool view of the current turn
        providers: Lookup from tool name to an active provider entry
        sandbox: Runner for evalCode
    """

    def __init__(self, view: ToolView, providers: ProviderLookup, sandbox: CodeSandbox):
        self.view = view
        self.providers = providers
        self.sandbox = sandbox

    async def execute(self, calls: list[ToolCall]) -> AsyncIterator[ToolResult]:
        """Run calls in order, yielding one ToolResult per attempted call.

        Stops after the first result that halts the batch.
        """
        for index, call in enumerate(calls):
            result = await self.execute_one(call)
            yield result
            if result.halted:
                skipped = len(calls) - index - 1
                if skipped:
                    logger.warning(
                        f"Tool {call.name} failed, abandoning {skipped} remaining call(s)"
                    )
                break

    async def execute_one(self, call: ToolCall) -> ToolResult:
        logger.info(f"Executing tool {call.name}")
        if call.name == GET_TOOL_SCHEMA:
            return self._get_tool_schema(call)
        if call.name == LIST_TOOLS:
            return self._list_tools(call)
        if call.name == EVAL_CODE:
            return await self._eval_code(call)
        return await self._call_remote(call)

    def _get_tool_schema(self, call: ToolCall) -> ToolResult:
        arguments = _loads_lenient(call.arguments)
        tool_name = arguments.get("tool_name") or arguments.get("name") or arguments.get("tool")
        tool = self.view.find(tool_name) if tool_name else None

        if tool is None:
            return ToolResult(call, f"Error: Tool '{tool_name}' not found.", is_error=True)
        return ToolResult(call, json.dumps(tool.parameters, indent=2))

    def _list_tools(self, call: ToolCall) -> ToolResult:
        arguments = _loads_lenient(call.arguments)
        query = arguments.get("query")
        tools = list(self.view.full_tools)

        if query:
            query = str(query)
            if arguments.get("use_regex"):
                try:
                    tools = filter_tools_regex(tools, query)
                except ValueError as e:
                    return ToolResult(call, f"Error: {e}", is_error=True)
            else:
                tools = rank_tools(tools, query)

        listing = [{"name": tool.name, "description": tool.description} for tool in tools]
        content = (
            f"AVAILABLE TOOLS ({len(listing)} found):\n\n"
            + json.dumps(listing, indent=2)
            + LIST_TOOLS_FOOTER
        )
        return ToolResult(call, content)

    async def _eval_code(self, call: ToolCall) -> ToolResult:
        try:
            code = call.parsed_arguments()["code"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            return ToolResult(call, f"Error: {e}", is_error=True, halted=True)

        try:
            outcome = await self.sandbox.run(str(code))
        except Exception as e:
            logger.error(f"Sandbox failed to run evalCode: {e}", exc_info=True)
            return ToolResult(call, f"Eval Error: {e}", is_error=True, halted=True)

        if outcome.logs:
            logger.debug(f"evalCode output: {outcome.logs}")
        if not outcome.success:
            return ToolResult(call, f"Eval Error: {outcome.error}", is_error=True, halted=True)
        return ToolResult(call, outcome.value if outcome.value is not None else "")

    async def _call_remote(self, call: ToolCall) -> ToolResult:
        tool = self.view.find(call.name)
        entry = self.providers.find_for_tool(call.name)
        if tool is None or entry is None or entry.client is None:
            return ToolResult(call, NO_PROVIDER_MESSAGE, is_error=True, halted=True)

        try:
            arguments = call.parsed_arguments()
        except json.JSONDecodeError as e:
            return ToolResult(call, f"Error: {e}", is_error=True, halted=True)

        error_text = schema_errors(tool.parameters, arguments) if tool.parameters else None
        if error_text is not None:
            logger.warning(f"Arguments for {call.name} failed re-validation: {error_text}")
            example = {"name": call.name, "arguments": synthesize_example(tool.parameters)}
            content = (
                f"Error: Invalid arguments: {error_text}. "
                f"\n\nExpected Schema:\n{json.dumps(tool.parameters, indent=2)}"
                f"\n\nExpected Request Example Payload:\n{json.dumps(example, indent=2)}"
                "\n\nPlease correct your input payload based on the schema and try again."
            )
            return ToolResult(call, content, is_error=True, halted=True)

        try:
            text = await entry.client.call_tool(call.name, arguments)
        except ProviderError as e:
            return ToolResult(call, f"Error: {e}", is_error=True, halted=True)
        except Exception as e:
            logger.error(f"Provider call {call.name} raised: {e}", exc_info=True)
            return ToolResult(call, f"Error: {e}", is_error=True, halted=True)

        return ToolResult(call, text)
