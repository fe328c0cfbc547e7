"""Agent session for running chat turns with confirmation-gated tools."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol

from chat_agent.agent.bedrock_client import BedrockClient
from chat_agent.agent.enums import (
    MessageRole,
    StopReason,
    ToolCallState,
    ToolDecisionType,
    ToolMode,
)
from chat_agent.agent.exceptions import BedrockClientError, ExecutionTableMismatchError
from chat_agent.agent.executions import ExecutionTable, create_default_executions, run_tool_handler
from chat_agent.agent.models import (
    AgentRunResult,
    Message,
    PendingToolAction,
    TextPart,
    ToolCall,
    ToolDef,
    ToolInvocationPart,
    ToolResult,
)
from chat_agent.agent.reconciler import ResultCallback, reconcile_tool_calls
from chat_agent.agent.registry import ToolRegistry, validate_execution_table
from chat_agent.agent.sanitizer import sanitize_messages
from chat_agent.agent.tools import get_builtin_tools
from chat_agent.agent.transcript import parts_from_content, to_bedrock_messages, user_message
from chat_agent.agent.utils.config import DEFAULT_AGENT_CONFIG, AgentConfig
from chat_agent.scheduling.adapter import EXECUTE_TASK_HANDLER, ScheduleAdapter
from chat_agent.scheduling.models import ScheduledTask
from chat_agent.scheduling.scheduler import InMemoryScheduler

logger = logging.getLogger(__name__)

# Default system prompt for the agent (use {current_date} placeholder)
DEFAULT_SYSTEM_PROMPT = """You are a helpful assistant. You can check the weather, tell the local time in a city, and schedule tasks to run later.

Today's date is {current_date}.

When scheduling tasks:
1. Use "scheduled" with an ISO 8601 date when the user gives an exact time
2. Use "delayed" with delayInSeconds for relative times such as "in 10 minutes"
3. Use "cron" with a cron expression for recurring tasks
4. Use "no-schedule" when the request does not describe a time
5. Describe the task clearly so it can be run without the original conversation

Some tools need the user's approval before they run. If the user declines, acknowledge it and do not retry the same call.

Always be concise and helpful in your responses."""

SCHEDULED_TASK_PREFIX = "Running scheduled task: "

MAX_TOKENS_MESSAGE = (
    "Your request requires more processing than I can handle in one go. "
    "Please try breaking it into smaller parts."
)


class ToolProvider(Protocol):
    """Source of extra tools composed into each turn's registry."""

    def get_tools(self) -> Iterable[ToolDef]:
        """Return the tools this provider contributes."""
        ...


class TranscriptStore(Protocol):
    """Persistent storage for a session transcript."""

    def load(self, session_id: str) -> list[Message]:
        """Load a stored transcript, or an empty list."""
        ...

    def save(self, session_id: str, messages: list[Message]) -> None:
        """Replace the stored transcript."""
        ...


@dataclass
class _TurnState:
    """Mutable state for a single turn."""

    messages: list[Message]
    tool_calls: list[ToolCall] = field(default_factory=list)
    steps_taken: int = 0
    response: str = ""


class AgentSession:
    """A conversation with one transcript, one scheduler and one tool set.

    Each call to ``chat`` sanitises the transcript, reconciles pending tool
    calls against the user's decisions and then runs the model loop. Only one
    turn runs at a time per session.
    """

    def __init__(  # noqa: PLR0913 - session wires several collaborators
        self,
        session_id: str,
        client: BedrockClient | None = None,
        executions: ExecutionTable | None = None,
        tool_providers: Iterable[ToolProvider] = (),
        scheduler: InMemoryScheduler | None = None,
        store: TranscriptStore | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        config: AgentConfig = DEFAULT_AGENT_CONFIG,
    ) -> None:
        """Initialise the session.

        :param session_id: Identifier of the conversation.
        :param client: Bedrock client for model calls. Creates one if not provided.
        :param executions: Deferred executions for confirm tools.
        :param tool_providers: Extra tool sources composed after the built-ins.
        :param scheduler: Scheduler for this session. Defaults to in-memory.
        :param store: Optional transcript store; the transcript is loaded from it.
        :param system_prompt: System prompt with a {current_date} placeholder.
        :param config: Agent configuration.
        """
        self.session_id = session_id
        self.client = client or BedrockClient()
        self.executions = (
            executions if executions is not None else create_default_executions(config)
        )
        self.scheduler = scheduler if scheduler is not None else InMemoryScheduler()
        self.schedule_adapter = ScheduleAdapter(self.scheduler)
        self.system_prompt = system_prompt
        self._tool_providers = list(tool_providers)
        self._store = store
        self._config = config
        self._lock = threading.Lock()
        self._tool_executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=config.max_parallel_executions,
            thread_name_prefix="auto-tool",
        )
        self._messages: list[Message] = store.load(session_id) if store is not None else []

        logger.debug(
            f"Agent session created: id={session_id}, chat={config.chat_model}, "
            f"max_steps={config.max_steps}, messages={len(self._messages)}"
        )

    @property
    def messages(self) -> list[Message]:
        """Copy of the current transcript."""
        with self._lock:
            return list(self._messages)

    def build_registry(self) -> ToolRegistry:
        """Compose the built-in tools with every provider's tools.

        :returns: Registry for this turn.
        """
        sources: list[Iterable[ToolDef]] = [get_builtin_tools(self.schedule_adapter)]
        sources.extend(provider.get_tools() for provider in self._tool_providers)
        return ToolRegistry.compose(*sources)

    def chat(
        self,
        text: str | None = None,
        decisions: dict[str, ToolDecisionType] | None = None,
        cancel_event: threading.Event | None = None,
        on_result: ResultCallback | None = None,
    ) -> AgentRunResult:
        """Run one turn of the conversation.

        :param text: New user message text, if any.
        :param decisions: Approve or reject decisions keyed by tool call ID.
        :param cancel_event: Checked between model steps to abort the turn.
        :param on_result: Called with each tool result as soon as it is produced.
        :returns: Result of the turn.
        :raises BedrockClientError: If the model call fails.
        """
        with self._lock:
            if text or decisions:
                self._messages.append(user_message(text, decisions))

            registry = self.build_registry()
            try:
                validate_execution_table(registry, self.executions)
            except ExecutionTableMismatchError as e:
                # Affected calls resolve with error results instead of failing the turn
                logger.error(
                    f"Tool set does not match execution table: session={self.session_id}, {e}"
                )

            messages = sanitize_messages(self._messages)
            reconciled = reconcile_tool_calls(
                messages, registry, self.executions, self._config, on_result
            )
            state = _TurnState(messages=reconciled.messages, tool_calls=list(reconciled.results))

            try:
                pending = self._pending_confirmations(state.messages, registry)
                if pending and not text:
                    logger.info(f"Turn waiting on {len(pending)} confirmation(s)")
                    return self._build_result(state, StopReason.CONFIRMATION_REQUIRED, pending)
                return self._run_model_loop(state, registry, cancel_event, on_result)
            finally:
                self._messages = state.messages
                self._persist()

    def replace_messages(self, messages: list[Message]) -> None:
        """Replace the transcript with a client-supplied one.

        :param messages: New transcript. It is sanitised on the next turn.
        """
        with self._lock:
            self._messages = list(messages)
            self._persist()
        logger.info(f"Transcript replaced: id={self.session_id}, messages={len(messages)}")

    def execute_task(self, description: str) -> None:
        """Record that a scheduled task has fired.

        :param description: Description given when the task was scheduled.
        """
        message = Message(
            role=MessageRole.USER,
            parts=[TextPart(text=f"{SCHEDULED_TASK_PREFIX}{description}")],
        )
        with self._lock:
            self._messages.append(message)
            self._persist()
        logger.info(f"Scheduled task executed: session={self.session_id}")

    def run_due_tasks(self, now: datetime | None = None) -> int:
        """Fire every due task in this session's scheduler.

        :param now: Reference time. Defaults to the scheduler clock.
        :returns: Number of tasks fired.
        """
        return self.scheduler.run_pending(self._dispatch_task, now)

    def close(self) -> None:
        """Release worker threads."""
        self._tool_executor.shutdown(wait=False, cancel_futures=True)
        self.executions.shutdown()

    def _dispatch_task(self, task: ScheduledTask) -> None:
        if task.handler_name != EXECUTE_TASK_HANDLER:
            logger.error(f"Unknown scheduled task handler: {task.handler_name}")
            return
        self.execute_task(task.payload)

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self.session_id, self._messages)

    def _run_model_loop(
        self,
        state: _TurnState,
        registry: ToolRegistry,
        cancel_event: threading.Event | None,
        on_result: ResultCallback | None,
    ) -> AgentRunResult:
        """Call the model until it stops, a confirmation is needed or a limit is hit."""
        tool_config = registry.to_bedrock_tool_config()

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Turn aborted: steps={state.steps_taken}")
                return self._build_result(state, StopReason.ABORTED)

            if state.steps_taken >= self._config.max_steps:
                logger.warning(f"Agent reached max steps: max={self._config.max_steps}")
                return self._build_result(state, StopReason.MAX_STEPS)

            bedrock_messages = to_bedrock_messages(state.messages)
            if not bedrock_messages or bedrock_messages[-1]["role"] != "user":
                logger.debug("Nothing new for the model to respond to")
                return self._build_result(state, StopReason.END_TURN)

            response = self._call_llm(bedrock_messages, tool_config)
            state.steps_taken += 1
            stop_reason = self.client.get_stop_reason(response)
            logger.debug(f"Agent step {state.steps_taken}: stop_reason={stop_reason}")

            parts = parts_from_content(self.client.get_content(response))
            assistant = Message(role=MessageRole.ASSISTANT, parts=parts)
            if parts:
                state.messages.append(assistant)
            text = self.client.parse_text_response(response)
            if text:
                state.response = text

            if stop_reason == "max_tokens":
                # Tool input may have been cut off mid-stream
                for part in assistant.tool_parts:
                    part.state = ToolCallState.INPUT_STREAMING
                logger.warning(
                    f"Response truncated due to max_tokens limit: "
                    f"max_tokens={self._config.max_tokens}, steps={state.steps_taken}"
                )
                state.response = MAX_TOKENS_MESSAGE
                return self._build_result(state, StopReason.MAX_TOKENS)

            if assistant.tool_parts:
                self._run_auto_tools(assistant.tool_parts, registry, state, on_result)
                # Calls left undecided in earlier turns do not stop this one
                requested = self._pending_confirmations([assistant], registry)
                if requested:
                    logger.info(f"Confirmation required: tools={[p.tool_name for p in requested]}")
                    pending = self._pending_confirmations(state.messages, registry)
                    return self._build_result(state, StopReason.CONFIRMATION_REQUIRED, pending)
                continue

            match stop_reason:
                case "end_turn" | "stop_sequence":
                    logger.info(
                        f"Agent turn completed: steps={state.steps_taken}, "
                        f"tool_calls={len(state.tool_calls)}"
                    )
                    return self._build_result(state, StopReason.END_TURN)
                case "tool_use":
                    logger.warning("stop_reason is tool_use but no tool uses found")
                    return self._build_result(state, StopReason.UNKNOWN)
                case _:
                    logger.warning(f"Unexpected stop reason: {stop_reason}")
                    return self._build_result(state, StopReason.UNKNOWN)

    def _run_auto_tools(
        self,
        parts: list[ToolInvocationPart],
        registry: ToolRegistry,
        state: _TurnState,
        on_result: ResultCallback | None,
    ) -> None:
        """Execute auto tools inline; confirm tools are left pending."""
        for part in parts:
            if part.state != ToolCallState.INPUT_AVAILABLE:
                continue

            logger.info(f"Tool use requested: tool={part.tool_name}, id={part.tool_call_id}")
            if part.tool_name not in registry:
                logger.error(f"Model requested unknown tool: {part.tool_name}")
                result = ToolResult(output=f"Error: Unknown tool: {part.tool_name}", is_error=True)
            else:
                tool = registry.get(part.tool_name)
                if tool.handler is None:
                    continue
                result = run_tool_handler(
                    tool.name,
                    tool.args_model,
                    tool.handler,
                    part.input,
                    self._tool_executor,
                    self._config.tool_timeout_seconds,
                )

            part.resolve(result)
            record = ToolCall(
                tool_call_id=part.tool_call_id,
                tool_name=part.tool_name,
                input_args=part.input,
                output=part.output,
                is_error=part.is_error,
            )
            state.tool_calls.append(record)
            if on_result is not None:
                on_result(record)

    def _pending_confirmations(
        self,
        messages: list[Message],
        registry: ToolRegistry,
    ) -> list[PendingToolAction]:
        """List confirm-tool calls still waiting for a decision."""
        pending: list[PendingToolAction] = []
        for message in messages:
            for part in message.tool_parts:
                if part.state != ToolCallState.INPUT_AVAILABLE:
                    continue
                if part.tool_name not in registry:
                    continue
                tool = registry.get(part.tool_name)
                if tool.mode != ToolMode.CONFIRM:
                    continue
                pending.append(
                    PendingToolAction(
                        tool_call_id=part.tool_call_id,
                        tool_name=part.tool_name,
                        tool_description=tool.description,
                        input_args=part.input,
                        action_summary=self._generate_action_summary(
                            tool.description, part.input
                        ),
                    )
                )
        return pending

    def _call_llm(
        self,
        messages: list[dict[str, Any]],
        tool_config: dict[str, Any],
    ) -> dict[str, Any]:
        """Call the LLM and return the response."""
        formatted_prompt = self.system_prompt.format(current_date=date.today().isoformat())

        try:
            return self.client.converse(
                messages=messages,
                model_id=self._config.chat_model,
                system_prompt=formatted_prompt,
                tool_config=tool_config,
                max_tokens=self._config.max_tokens,
            )
        except BedrockClientError:
            logger.exception("Bedrock API call failed during agent turn")
            raise

    @staticmethod
    def _build_result(
        state: _TurnState,
        stop_reason: StopReason,
        pending: list[PendingToolAction] | None = None,
    ) -> AgentRunResult:
        return AgentRunResult(
            response=state.response,
            tool_calls=state.tool_calls,
            steps_taken=state.steps_taken,
            stop_reason=stop_reason,
            pending_confirmations=pending or [],
        )

    @staticmethod
    def _generate_action_summary(
        tool_description: str,
        input_args: dict[str, Any],
    ) -> str:
        """Generate a human-readable summary of a tool action.

        :param tool_description: Description of the tool.
        :param input_args: Arguments for the tool.
        :returns: Human-readable action summary.
        """
        args_display = ", ".join(f"{k}={v!r}" for k, v in input_args.items())
        return f"{tool_description}\nArguments: {args_display}"
