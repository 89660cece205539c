"""The per-chat conversation loop.

A turn streams the model's answer, extracts tool calls from it, validates
and sequences them, asks the permission gate, runs the batch and feeds the
results back to the model until it answers without calling a tool.

State machine:

    idle -> generating -> idle                        (plain answer)
    generating -> executing -> generating -> ...      (tool rounds)
    generating -> awaiting_approval -> executing      (approve)
    awaiting_approval -> idle                         (decline)
    generating | executing -> reloading -> idle       (stop)

Only one turn is in flight per chat. Collaborators are reached through the
ConversationContext handed to every loop.
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator

from toolrelay_server.config import ToolRelaySettings
from toolrelay_server.conversation.history import (
    build_engine_messages,
    drop_leading_tool_results,
    recover_crash_output,
    trim_engine_errors,
)
from toolrelay_server.errors import ApprovalNotPendingError, ChatBusyError
from toolrelay_server.ollama import OllamaClient
from toolrelay_server.preferences import PreferencesStore
from toolrelay_server.providers import ProviderManager
from toolrelay_server.store import ChatStore
from toolrelay_server.store.chat_store import DEFAULT_CHAT_TITLE
from toolrelay_server.store.types import AssistantMessage, Message, ToolMessage, UserMessage, utc_now
from toolrelay_server.tools import (
    CodeSandbox,
    ErrorCall,
    GrantScope,
    PermissionGate,
    ToolCall,
    ToolExecutor,
    ToolRegistry,
    ToolView,
    correction_message,
    extract_tool_calls,
    normalize_native_calls,
    plan_batch,
    render_system_prompt,
    validate_call,
)
from toolrelay_server.tools.extractor import visible_content

logger = logging.getLogger(__name__)

DECLINED_MESSAGE = "_Tool execution declined._"
STOPPED_MESSAGE = "_Generation stopped. Reloading model to ensure a clean state..._"
ROUND_LIMIT_MESSAGE = "_Stopped after {rounds} tool rounds without a final answer._"
AUTO_TITLE_LENGTH = 30


class LoopState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    EXECUTING = "executing"
    AWAITING_APPROVAL = "awaiting_approval"
    RELOADING = "reloading"


@dataclass
class LoopEvent:
    """One step of a turn, forwarded to the client as an SSE event."""

    event: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class PendingApproval:
    """A batch suspended until the user approves or declines it."""

    calls: list[ToolCall]
    error_call: ErrorCall | None = None
    requested_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "calls": [call.to_dict() for call in self.calls],
            "error_call": self.error_call.call.to_dict() if self.error_call else None,
            "requested_at": self.requested_at,
        }


@dataclass
class ConversationContext:
    """Everything a conversation loop needs, created once per process."""

    settings: ToolRelaySettings
    store: ChatStore
    preferences: PreferencesStore
    gate: PermissionGate
    providers: ProviderManager
    ollama: OllamaClient

    def sandbox(self) -> CodeSandbox:
        return CodeSandbox(
            timeout_ms=self.settings.eval_timeout_ms,
            safe=self.preferences.load().safe_eval,
        )

    def build_view(self) -> ToolView:
        return ToolRegistry(self.providers.active()).build_view()


@dataclass(eq=False)
class _Turn:
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)


@dataclass
class _Generation:
    model: str = ""
    content: str = ""
    native_calls: list[Any] = field(default_factory=list)
    final_chunk: dict[str, Any] | None = None


def auto_title(content: str) -> str:
    title = content.strip()
    if len(title) > AUTO_TITLE_LENGTH:
        return title[:AUTO_TITLE_LENGTH] + "..."
    return title


class ConversationLoop:
    """Drives the turns of one chat.

    Attributes:
        chat_id: The chat this loop belongs to
        state: Current LoopState
        pending: The batch awaiting approval, if any
    """

    def __init__(self, chat_id: str, context: ConversationContext):
        self.chat_id = chat_id
        self.context = context
        self.state = LoopState.IDLE
        self.pending: PendingApproval | None = None
        self._active: _Turn | None = None

    @property
    def is_busy(self) -> bool:
        return self.state != LoopState.IDLE or self.pending is not None

    def status(self) -> dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "state": self.state.value,
            "pending_approval": self.pending.to_dict() if self.pending else None,
        }

    # --- Public operations ---

    def send(self, content: str) -> AsyncIterator[LoopEvent]:
        """Persist a user message and start a turn.

        Returns:
            An async iterator of the turn's events

        Raises:
            ChatBusyError: If a turn or an approval is outstanding
            ValueError: If the message is empty
            FileNotFoundError: If the chat doesn't exist
        """
        if self.is_busy:
            raise ChatBusyError(f"Chat {self.chat_id} is busy ({self.state.value})")
        if not content or not content.strip():
            raise ValueError("Message cannot be empty")

        store = self.context.store
        chat = store.get_chat(self.chat_id)
        store.add_message(self.chat_id, UserMessage(content=content))

        if chat.title == DEFAULT_CHAT_TITLE:
            chat.title = auto_title(content)
            store.update_chat(chat)
            logger.debug(f"Auto-titled chat {self.chat_id}: {chat.title!r}")

        self.context.preferences.update(last_project_id=chat.project_id, last_chat_id=chat.chat_id)
        return self._run(self._begin(LoopState.GENERATING))

    def approve(self, scope: GrantScope) -> AsyncIterator[LoopEvent]:
        """Grant the pending batch and resume the turn.

        Raises:
            ApprovalNotPendingError: If no batch is awaiting approval
        """
        pending = self._take_pending()
        self.context.gate.grant(scope, pending.calls)
        logger.info(f"Approved {len(pending.calls)} call(s) in chat {self.chat_id} ({scope.value})")
        return self._run(self._begin(LoopState.EXECUTING), resume=pending)

    def decline(self) -> AssistantMessage:
        """Abandon the pending batch; nothing in it runs.

        Raises:
            ApprovalNotPendingError: If no batch is awaiting approval
        """
        self._take_pending()
        self.state = LoopState.IDLE
        logger.info(f"Declined tool execution in chat {self.chat_id}")
        return self._add(AssistantMessage(content=DECLINED_MESSAGE, model=self._model()))

    async def stop(self) -> bool:
        """Interrupt the running turn and reload the model.

        A tool call already running is left to finish but its result is
        discarded and the model is not re-entered.

        Returns:
            True if a turn was interrupted
        """
        turn = self._active
        if turn is None or self.state not in (LoopState.GENERATING, LoopState.EXECUTING):
            return False

        self._active = None
        turn.stop_event.set()
        self.state = LoopState.RELOADING
        logger.info(f"Stopping generation in chat {self.chat_id}")
        try:
            await self.context.ollama.reload()
        finally:
            self.state = LoopState.IDLE

        self._add(AssistantMessage(content=STOPPED_MESSAGE, model=self._model()))
        return True

    async def clear(self) -> None:
        """Stop any turn, drop the pending approval and wipe the chat's messages."""
        await self.stop()
        self.pending = None
        self.state = LoopState.IDLE
        self.context.store.clear_messages(self.chat_id)

    # --- Turn ---

    def _begin(self, state: LoopState) -> _Turn:
        turn = _Turn()
        self._active = turn
        self.state = state
        return turn

    def _owns(self, turn: _Turn) -> bool:
        return self._active is turn

    def _take_pending(self) -> PendingApproval:
        if self.pending is None or self.state != LoopState.AWAITING_APPROVAL:
            raise ApprovalNotPendingError(f"No tool batch is awaiting approval in chat {self.chat_id}")
        pending, self.pending = self.pending, None
        return pending

    async def _run(
        self, turn: _Turn, resume: PendingApproval | None = None
    ) -> AsyncIterator[LoopEvent]:
        settings = self.context.settings
        rounds = 0

        try:
            if resume is not None:
                view = self.context.build_view()
                async for event in self._run_batch(turn, view, resume.calls, resume.error_call):
                    yield event
                rounds += 1

            while self._owns(turn):
                if rounds >= settings.max_tool_rounds:
                    logger.warning(
                        f"Chat {self.chat_id} reached {settings.max_tool_rounds} tool rounds, ending turn"
                    )
                    notice = ROUND_LIMIT_MESSAGE.format(rounds=rounds)
                    self._add(AssistantMessage(content=notice, model=self._model()))
                    yield LoopEvent("notice", {"message": notice})
                    break

                view = self.context.build_view()
                generation = _Generation()
                self.state = LoopState.GENERATING
                async for event in self._generate(turn, view, generation):
                    yield event
                if not self._owns(turn):
                    break

                calls = normalize_native_calls(generation.native_calls) or extract_tool_calls(
                    generation.content
                )
                if not calls:
                    message = self._add(self._assistant(generation, generation.content))
                    yield LoopEvent("message_complete", self._complete_data(message))
                    break

                outcomes = [validate_call(call, list(view.full_tools)) for call in calls]
                plan = plan_batch(calls, outcomes)
                message = self._assistant(generation, visible_content(generation.content, calls))
                message.tool_calls = [call.to_dict() for call in plan.visible_calls]
                self._add(message)
                logger.info(
                    f"Chat {self.chat_id}: {len(plan.to_execute)} call(s) to run, "
                    f"error call: {plan.error_call is not None}, dropped: {len(plan.dropped)}"
                )
                yield LoopEvent(
                    "tool_calls",
                    {
                        "message_id": message.message_id,
                        "content": message.content,
                        "tool_calls": message.tool_calls,
                        "dropped": len(plan.dropped),
                    },
                )

                if self.context.gate.needs_approval(plan.to_execute):
                    self.pending = PendingApproval(calls=plan.to_execute, error_call=plan.error_call)
                    self.state = LoopState.AWAITING_APPROVAL
                    self._active = None
                    logger.info(f"Chat {self.chat_id} awaiting approval")
                    yield LoopEvent("approval_required", self.pending.to_dict())
                    return

                async for event in self._run_batch(turn, view, plan.to_execute, plan.error_call):
                    yield event
                rounds += 1
        finally:
            if self._owns(turn):
                self._active = None
                self.state = LoopState.IDLE

    async def _generate(
        self, turn: _Turn, view: ToolView, generation: _Generation
    ) -> AsyncIterator[LoopEvent]:
        context = self.context
        settings = context.settings
        chat = context.store.get_chat(self.chat_id)
        project = context.store.get_project(chat.project_id)
        history = drop_leading_tool_results(
            context.store.get_messages(self.chat_id, limit=settings.history_window)
        )

        messages = build_engine_messages(render_system_prompt(project.system_prompt, view), history)
        tools = None
        if settings.native_tool_calling:
            tools = [tool.to_engine_dict() for tool in view.prompt_tools]

        generation.model = chat.model or settings.default_model
        logger.info(
            f"Generating in chat {self.chat_id} with {generation.model} ({len(messages)} messages)"
        )

        parts: list[str] = []
        stream = context.ollama.chat_stream(generation.model, messages, tools=tools)
        try:
            while True:
                chunk = await self._next_chunk(turn, stream)
                if chunk is None:
                    break

                message = chunk.get("message") or {}
                delta = message.get("content") or ""
                if delta:
                    parts.append(delta)
                    yield LoopEvent("content_delta", {"content": delta})
                if message.get("tool_calls"):
                    generation.native_calls.extend(message["tool_calls"])
                if chunk.get("done"):
                    generation.final_chunk = chunk
                    break
        except Exception as e:
            if not self._owns(turn):
                logger.debug(f"Generation in chat {self.chat_id} ended after stop: {e}")
                return
            recovered = recover_crash_output(e)
            if recovered is None:
                raise
            logger.warning(f"Recovered model output from engine crash in chat {self.chat_id}")
            parts = [recovered]
        finally:
            await stream.aclose()

        generation.content = trim_engine_errors("".join(parts))

    async def _next_chunk(self, turn: _Turn, stream: AsyncIterator[dict[str, Any]]) -> dict[str, Any] | None:
        """Race the next engine chunk against the turn's stop signal.

        Returns:
            The chunk, or None once the stream ends or the turn is stopped
        """
        next_chunk = asyncio.ensure_future(anext(stream))
        stopped = asyncio.ensure_future(turn.stop_event.wait())
        try:
            await asyncio.wait({next_chunk, stopped}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopped.cancel()

        if turn.stop_event.is_set():
            next_chunk.cancel()
            await asyncio.gather(next_chunk, return_exceptions=True)
            return None

        try:
            return next_chunk.result()
        except StopAsyncIteration:
            return None

    async def _run_batch(
        self,
        turn: _Turn,
        view: ToolView,
        calls: list[ToolCall],
        error_call: ErrorCall | None,
    ) -> AsyncIterator[LoopEvent]:
        self.state = LoopState.EXECUTING
        executor = ToolExecutor(view, self.context.providers, self.context.sandbox())

        async with aclosing(executor.execute(calls)) as results:
            async for result in results:
                if not self._owns(turn):
                    logger.info(f"Discarding result of {result.call.name} after stop")
                    return
                self._add(
                    ToolMessage(
                        tool_call_id=result.call.id,
                        tool_name=result.call.name,
                        content=result.content,
                        is_error=result.is_error,
                    )
                )
                yield LoopEvent(
                    "tool_result",
                    {
                        "tool_call_id": result.call.id,
                        "tool_name": result.call.name,
                        "content": result.content,
                        "is_error": result.is_error,
                        "halted": result.halted,
                    },
                )

        if error_call is None or not self._owns(turn):
            return

        content = correction_message(error_call.call, error_call.outcome)
        self._add(
            ToolMessage(
                tool_call_id=error_call.call.id,
                tool_name=error_call.call.name,
                content=content,
                is_error=True,
            )
        )
        yield LoopEvent(
            "tool_result",
            {
                "tool_call_id": error_call.call.id,
                "tool_name": error_call.call.name,
                "content": content,
                "is_error": True,
                "halted": False,
            },
        )

    # --- Helpers ---

    def _add(self, message: Message) -> Any:
        return self.context.store.add_message(self.chat_id, message)

    def _model(self) -> str:
        chat = self.context.store.get_chat(self.chat_id)
        return chat.model or self.context.settings.default_model

    def _assistant(self, generation: _Generation, content: str) -> AssistantMessage:
        final_chunk = generation.final_chunk or {}
        return AssistantMessage(
            content=content,
            model=generation.model,
            eval_count=final_chunk.get("eval_count"),
            prompt_eval_count=final_chunk.get("prompt_eval_count"),
        )

    def _complete_data(self, message: AssistantMessage) -> dict[str, Any]:
        return {
            "message_id": message.message_id,
            "content": message.content,
            "model": message.model,
            "eval_count": message.eval_count,
            "prompt_eval_count": message.prompt_eval_count,
        }
