"""Client for one remote tool provider speaking MCP over streamable HTTP.

The transport's cancel scopes must be entered and exited by the same task,
so each connection is owned by a dedicated background task. Callers talk to
that task through request/response futures on a queue.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Callable

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

from toolrelay_server.errors import ProviderError
from toolrelay_server.tools.types import ToolDefinition, ToolOrigin

logger = logging.getLogger(__name__)

CLIENT_NAME = "toolrelay-server"
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_DISCONNECT_TIMEOUT = 5.0
CONNECTION_CLOSED = "Connection closed"


@dataclass
class ProviderSession:
    """Per-provider session context captured from the transport.

    The session id is read from the connection that owns it; nothing is
    patched globally.
    """

    get_session_id: Callable[[], str | None] | None = None

    @property
    def session_id(self) -> str | None:
        return self.get_session_id() if self.get_session_id else None


@dataclass
class _Invocation:
    name: str
    arguments: dict[str, Any]
    future: asyncio.Future


def result_to_text(result: Any) -> str:
    """Render a CallToolResult as text.

    The first content item is used when it is text; otherwise the whole
    result is serialized.
    """
    content = getattr(result, "content", None) or []
    if content and getattr(content[0], "type", None) == "text":
        return content[0].text
    if hasattr(result, "model_dump_json"):
        return result.model_dump_json()
    return str(result)


class McpProvider:
    """A connection to one MCP server and the tools it reports.

    Attributes:
        url: Server endpoint
        headers: Extra HTTP headers sent on every request
        provider_id: Identifier used in tool origins
        tools: Tool definitions reported on connect, empty once the connection ends
        session: Session context of the live connection
        last_error: Why the last connection ended, if it failed
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        provider_id: str = "",
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self.url = url
        self.headers = headers or {}
        self.provider_id = provider_id or url
        self.connect_timeout = connect_timeout
        self.disconnect_timeout = DEFAULT_DISCONNECT_TIMEOUT
        self.tools: list[ToolDefinition] = []
        self.session = ProviderSession()
        self.last_error: str | None = None
        self._requests: asyncio.Queue[_Invocation | None] = asyncio.Queue()
        self._task: asyncio.Task | None = None
        self._current: _Invocation | None = None

    @property
    def is_connected(self) -> bool:
        return self._task is not None and not self._task.done()

    async def connect(self) -> list[ToolDefinition]:
        """Open the connection and list the server's tools.

        Raises:
            ProviderError: If the server cannot be reached or initialized
        """
        if self.is_connected:
            return self.tools

        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        self._requests = asyncio.Queue()
        self.last_error = None
        self._task = asyncio.create_task(self._serve(ready), name=f"mcp:{self.url}")

        try:
            self.tools = await asyncio.wait_for(ready, timeout=self.connect_timeout)
        except asyncio.TimeoutError as e:
            await self.disconnect()
            raise ProviderError(f"Timed out connecting to {self.url}") from e
        except Exception as e:
            await self.disconnect()
            raise ProviderError(str(e) or type(e).__name__) from e

        if not self.is_connected:
            self.tools = []
            raise ProviderError(self.last_error or CONNECTION_CLOSED)

        logger.info(f"Connected to {self.url} with {len(self.tools)} tools")
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Invoke a tool on the server and return its text result.

        Raises:
            ProviderError: If not connected or the server reports an error
        """
        if not self.is_connected:
            raise ProviderError("Not connected")

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        await self._requests.put(_Invocation(name, arguments, future))
        return await future

    async def disconnect(self) -> None:
        task, self._task = self._task, None
        self.tools = []
        if task is None:
            return
        if not task.done():
            await self._requests.put(None)
            try:
                await asyncio.wait_for(task, timeout=self.disconnect_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out closing {self.url}, cancelled its connection")
            except Exception as e:
                logger.warning(f"Error while disconnecting from {self.url}: {e}")
        logger.info(f"Disconnected from {self.url}")

    async def _serve(self, ready: asyncio.Future) -> None:
        """Own the transport and session for the connection's lifetime."""
        try:
            async with AsyncExitStack() as stack:
                read, write, get_session_id = await stack.enter_async_context(
                    streamablehttp_client(self.url, headers=self.headers)
                )
                self.session = ProviderSession(get_session_id=get_session_id)
                session = await stack.enter_async_context(ClientSession(read, write))
                await session.initialize()

                listed = await session.list_tools()
                tools = [
                    ToolDefinition(
                        name=tool.name,
                        description=tool.description or "",
                        parameters=tool.inputSchema,
                        origin=ToolOrigin.remote(self.provider_id),
                    )
                    for tool in listed.tools
                ]
                if not ready.done():
                    ready.set_result(tools)

                while True:
                    invocation = await self._requests.get()
                    if invocation is None:
                        break
                    self._current = invocation
                    await self._invoke(session, invocation)
                    self._current = None
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            else:
                self.last_error = str(e) or type(e).__name__
                logger.error(f"Connection to {self.url} failed: {self.last_error}")
        finally:
            self.tools = []
            self.session = ProviderSession()
            self._fail_pending()

    async def _invoke(self, session: ClientSession, invocation: _Invocation) -> None:
        try:
            result = await session.call_tool(invocation.name, invocation.arguments)
        except Exception as e:
            if not invocation.future.done():
                invocation.future.set_exception(ProviderError(str(e) or type(e).__name__))
            return

        text = result_to_text(result)
        if invocation.future.done():
            return
        if getattr(result, "isError", False):
            invocation.future.set_exception(ProviderError(text))
        else:
            invocation.future.set_result(text)

    def _fail_pending(self) -> None:
        """Fail the call in flight and every queued call."""
        pending = [self._current] if self._current else []
        self._current = None
        while not self._requests.empty():
            pending.append(self._requests.get_nowait())
        for invocation in pending:
            if invocation is not None and not invocation.future.done():
                invocation.future.set_exception(ProviderError(self.last_error or CONNECTION_CLOSED))
