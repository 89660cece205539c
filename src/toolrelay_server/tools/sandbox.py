"""Execution of model-supplied code for the evalCode built-in.

In safe mode every call runs in a fresh child interpreter reached only
through a JSON request/response over its standard streams. The watchdog is
a race between that response and a timer: when the timer wins, the child
is killed and discarded without affecting the rest of the pipeline.
"""

import asyncio
import json
import logging
import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

RUNNER_PATH = Path(__file__).with_name("_sandbox_runner.py")
DEFAULT_TIMEOUT_MS = 1000
TIMEOUT_MESSAGE = "Execution timed out (Infinite loop detected?)"


@dataclass
class SandboxResult:
    """Outcome of one code execution.

    Attributes:
        success: Whether the code returned normally
        value: The returned value rendered as text
        logs: Captured print/stderr output, kept apart from the value
        error: Failure reason when success is False
    """

    success: bool
    value: str | None = None
    logs: list[str] = field(default_factory=list)
    error: str | None = None


def render_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


def _run_in_process(code: str) -> Any:
    source = "def __evaluated__():\n" + textwrap.indent(code or "pass", "    ")
    namespace: dict[str, Any] = {"__name__": "__evalcode__"}
    exec(compile(source, "<evalCode>", "exec"), namespace)
    return namespace["__evaluated__"]()


class CodeSandbox:
    """Runs evalCode bodies with or without isolation.

    Args:
        timeout_ms: Watchdog bound for isolated runs
        safe: Run in an isolated child process (True) or in-process (False)
    """

    def __init__(self, timeout_ms: int = DEFAULT_TIMEOUT_MS, safe: bool = True):
        self.timeout_ms = timeout_ms
        self.safe = safe

    async def run(self, code: str) -> SandboxResult:
        if self.safe:
            return await self._run_isolated(code)
        return await self._run_direct(code)

    async def _run_direct(self, code: str) -> SandboxResult:
        """In-process execution with no time bound."""
        try:
            value = await asyncio.to_thread(_run_in_process, code)
        except SyntaxError as e:
            return SandboxResult(success=False, error=f"SyntaxError: {e.msg}")
        except Exception as e:
            return SandboxResult(success=False, error=f"{type(e).__name__}: {e}")
        return SandboxResult(success=True, value=render_value(value))

    async def _run_isolated(self, code: str) -> SandboxResult:
        process = await asyncio.create_subprocess_exec(
            sys.executable,
            "-I",
            str(RUNNER_PATH),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        request = json.dumps({"code": code}).encode("utf-8")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(request), timeout=self.timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            logger.warning(f"evalCode exceeded {self.timeout_ms} ms, killing sandbox")
            process.kill()
            await process.wait()
            return SandboxResult(success=False, error=TIMEOUT_MESSAGE)

        try:
            response = json.loads(stdout.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
            reason = detail[-1] if detail else f"sandbox exited with code {process.returncode}"
            logger.error(f"Sandbox produced no response: {reason}")
            return SandboxResult(success=False, error=reason)

        return SandboxResult(
            success=bool(response.get("success")),
            value=response.get("result"),
            logs=list(response.get("logs") or []),
            error=response.get("error"),
        )
