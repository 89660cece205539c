"""Tool-call orchestration engine.

This package turns free-form model output into validated, authorized and
sequenced tool invocations: call extraction, schema validation, batch
sequencing, the permission gate, and execution against built-in tools, the
code sandbox or remote providers.
"""

from toolrelay_server.tools.executor import ToolExecutor
from toolrelay_server.tools.extractor import extract_tool_calls, normalize_native_calls
from toolrelay_server.tools.permissions import PRE_GRANTED_TOOLS, PermissionGate
from toolrelay_server.tools.registry import (
    BUILTIN_TOOLS,
    DEFAULT_SYSTEM_PROMPT,
    ToolRegistry,
    ToolView,
    render_system_prompt,
)
from toolrelay_server.tools.sandbox import CodeSandbox, SandboxResult
from toolrelay_server.tools.sequencer import BatchPlan, ErrorCall, plan_batch
from toolrelay_server.tools.types import (
    GrantScope,
    Invalid,
    ToolCall,
    ToolDefinition,
    ToolOrigin,
    ToolResult,
    Valid,
    ValidationOutcome,
)
from toolrelay_server.tools.validation import (
    correction_message,
    synthesize_example,
    validate_call,
)

__all__ = [
    # Types
    "GrantScope",
    "Invalid",
    "ToolCall",
    "ToolDefinition",
    "ToolOrigin",
    "ToolResult",
    "Valid",
    "ValidationOutcome",
    # Registry
    "BUILTIN_TOOLS",
    "DEFAULT_SYSTEM_PROMPT",
    "ToolRegistry",
    "ToolView",
    "render_system_prompt",
    # Pipeline stages
    "extract_tool_calls",
    "normalize_native_calls",
    "validate_call",
    "synthesize_example",
    "correction_message",
    "BatchPlan",
    "ErrorCall",
    "plan_batch",
    "PRE_GRANTED_TOOLS",
    "PermissionGate",
    "CodeSandbox",
    "SandboxResult",
    "ToolExecutor",
]
