"""Tests for AgentSession."""

import threading
import unittest
from datetime import UTC, date, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock, patch

from pydantic import BaseModel

from chat_agent.agent.bedrock_client import BedrockClient
from chat_agent.agent.enums import MessageRole, StopReason, ToolCallState, ToolDecisionType
from chat_agent.agent.exceptions import BedrockClientError, ExecutionTableMismatchError
from chat_agent.agent.executions import ExecutionTable
from chat_agent.agent.models import ToolDef
from chat_agent.agent.reconciler import DECLINED_RESULT
from chat_agent.agent.runner import (
    DEFAULT_SYSTEM_PROMPT,
    MAX_TOKENS_MESSAGE,
    SCHEDULED_TASK_PREFIX,
    AgentSession,
)
from chat_agent.agent.utils.config import AgentConfig
from chat_agent.scheduling.models import Delayed


class DummyArgs(BaseModel):
    """Dummy argument model for testing."""

    value: str


def _text_response(text: str, stop_reason: str = "end_turn") -> dict[str, Any]:
    return {
        "output": {"message": {"role": "assistant", "content": [{"text": text}]}},
        "stopReason": stop_reason,
    }


def _tool_response(
    call_id: str,
    name: str,
    input_args: dict[str, Any],
    stop_reason: str = "tool_use",
) -> dict[str, Any]:
    return {
        "output": {
            "message": {
                "role": "assistant",
                "content": [{"toolUse": {"toolUseId": call_id, "name": name, "input": input_args}}],
            }
        },
        "stopReason": stop_reason,
    }


def _multi_tool_response(calls: list[tuple[str, str, dict[str, Any]]]) -> dict[str, Any]:
    content = [
        {"toolUse": {"toolUseId": call_id, "name": name, "input": input_args}}
        for call_id, name, input_args in calls
    ]
    return {
        "output": {"message": {"role": "assistant", "content": content}},
        "stopReason": "tool_use",
    }


class _StaticProvider:
    """Tool provider returning a fixed list."""

    def __init__(self, tools: list[ToolDef]) -> None:
        self._tools = tools

    def get_tools(self) -> list[ToolDef]:
        return self._tools


class TestAgentSession(unittest.TestCase):
    """Tests for AgentSession."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        boto_patcher = patch("chat_agent.agent.bedrock_client.boto3.client")
        self.mock_boto_client = boto_patcher.start()
        self.addCleanup(boto_patcher.stop)

        weather_patcher = patch("chat_agent.agent.executions.get_weather_information")
        self.mock_weather = weather_patcher.start()
        self.mock_weather.return_value = "Sunny"
        self.addCleanup(weather_patcher.stop)

        self.client = BedrockClient(region_name="eu-west-2")
        self.mock_converse: MagicMock = self.client._client.converse
        self.sessions: list[AgentSession] = []

    def tearDown(self) -> None:
        """Release worker threads."""
        for agent_session in self.sessions:
            agent_session.close()

    def _session(self, **kwargs: Any) -> AgentSession:
        agent_session = AgentSession("session-1", client=self.client, **kwargs)
        self.sessions.append(agent_session)
        return agent_session

    def test_init_defaults(self) -> None:
        """Test initialisation with default values."""
        agent_session = self._session()

        self.assertEqual(agent_session.system_prompt, DEFAULT_SYSTEM_PROMPT)
        self.assertEqual(agent_session.messages, [])
        self.assertEqual(len(agent_session.build_registry()), 5)

    def test_simple_reply(self) -> None:
        """Test a turn where the model answers without tools."""
        self.mock_converse.return_value = _text_response("Hello!")
        agent_session = self._session()

        result = agent_session.chat("Hi")

        self.assertEqual(result.stop_reason, StopReason.END_TURN)
        self.assertEqual(result.response, "Hello!")
        self.assertEqual(result.steps_taken, 1)
        roles = [m.role for m in agent_session.messages]
        self.assertEqual(roles, [MessageRole.USER, MessageRole.ASSISTANT])

    def test_system_prompt_includes_current_date(self) -> None:
        """Test that the date placeholder is filled in."""
        self.mock_converse.return_value = _text_response("Hello!")
        agent_session = self._session()

        agent_session.chat("Hi")

        system_text = self.mock_converse.call_args.kwargs["system"][0]["text"]
        self.assertIn(date.today().isoformat(), system_text)

    def test_auto_tool_runs_inline(self) -> None:
        """Test that an auto tool is executed and the loop continues."""
        self.mock_converse.side_effect = [
            _tool_response("t1", "getLocalTime", {"location": "London"}),
            _text_response("It is late in London."),
        ]
        agent_session = self._session()

        result = agent_session.chat("What time is it in London?")

        self.assertEqual(result.stop_reason, StopReason.END_TURN)
        self.assertEqual(result.steps_taken, 2)
        self.assertEqual(len(result.tool_calls), 1)
        self.assertTrue(result.tool_calls[0].output.startswith("The current time in London is:"))
        second_messages = self.mock_converse.call_args.kwargs["messages"]
        self.assertIn("toolResult", second_messages[-1]["content"][0])

    def test_confirm_tool_pauses_turn(self) -> None:
        """Test that a confirm tool stops the turn for a decision."""
        self.mock_converse.return_value = _tool_response(
            "w1", "getWeatherInformation", {"city": "Paris"}
        )
        agent_session = self._session()

        result = agent_session.chat("Weather in Paris?")

        self.assertEqual(result.stop_reason, StopReason.CONFIRMATION_REQUIRED)
        self.assertEqual(len(result.pending_confirmations), 1)
        pending = result.pending_confirmations[0]
        self.assertEqual(pending.tool_call_id, "w1")
        self.assertEqual(pending.input_args, {"city": "Paris"})
        self.assertIn("city='Paris'", pending.action_summary)
        self.mock_weather.assert_not_called()
        part = agent_session.messages[-1].tool_parts[0]
        self.assertEqual(part.state, ToolCallState.INPUT_AVAILABLE)

    def test_approved_tool_runs_before_model(self) -> None:
        """Test that an approval executes the tool and resumes the model."""
        self.mock_converse.side_effect = [
            _tool_response("w1", "getWeatherInformation", {"city": "Paris"}),
            _text_response("It is sunny in Paris."),
        ]
        agent_session = self._session()
        agent_session.chat("Weather in Paris?")
        emitted: list[str] = []

        result = agent_session.chat(
            decisions={"w1": ToolDecisionType.APPROVE},
            on_result=lambda call: emitted.append(call.tool_call_id),
        )

        self.assertEqual(result.stop_reason, StopReason.END_TURN)
        self.assertEqual(result.response, "It is sunny in Paris.")
        self.assertEqual(emitted, ["w1"])
        self.assertEqual(result.tool_calls[0].output, "Sunny")
        self.mock_weather.assert_called_once()
        sent = self.mock_converse.call_args.kwargs["messages"]
        tool_result = sent[-1]["content"][0]["toolResult"]
        self.assertEqual(tool_result["toolUseId"], "w1")
        self.assertEqual(tool_result["content"], [{"text": "Sunny"}])

    def test_rejected_tool_gets_declined_result(self) -> None:
        """Test that a rejection records the declined result."""
        self.mock_converse.side_effect = [
            _tool_response("w1", "getWeatherInformation", {"city": "Paris"}),
            _text_response("Okay, I will not check."),
        ]
        agent_session = self._session()
        agent_session.chat("Weather in Paris?")

        result = agent_session.chat(decisions={"w1": ToolDecisionType.REJECT})

        self.assertEqual(result.tool_calls[0].output, DECLINED_RESULT)
        self.mock_weather.assert_not_called()
        sent = self.mock_converse.call_args.kwargs["messages"]
        self.assertEqual(
            sent[-1]["content"][0]["toolResult"]["content"], [{"text": DECLINED_RESULT}]
        )

    def test_undecided_call_does_not_call_model(self) -> None:
        """Test that a turn with no relevant decision waits for one."""
        self.mock_converse.return_value = _tool_response(
            "w1", "getWeatherInformation", {"city": "Paris"}
        )
        agent_session = self._session()
        agent_session.chat("Weather in Paris?")

        result = agent_session.chat(decisions={"other": ToolDecisionType.APPROVE})

        self.assertEqual(result.stop_reason, StopReason.CONFIRMATION_REQUIRED)
        self.assertEqual(self.mock_converse.call_count, 1)

    def test_undecided_call_does_not_block_later_auto_tools(self) -> None:
        """Test that a call awaiting a decision does not stop later turns."""
        self.mock_converse.side_effect = [
            _tool_response("w1", "getWeatherInformation", {"city": "Paris"}),
            _tool_response("t1", "getLocalTime", {"location": "Tokyo"}),
            _text_response("It is evening in Tokyo."),
        ]
        agent_session = self._session()
        agent_session.chat("Weather in Paris?")

        result = agent_session.chat("Never mind, what time is it in Tokyo?")

        self.assertEqual(result.stop_reason, StopReason.END_TURN)
        self.assertEqual(result.response, "It is evening in Tokyo.")
        self.assertEqual(result.steps_taken, 2)
        self.assertEqual([c.tool_call_id for c in result.tool_calls], ["t1"])
        self.assertEqual(self.mock_converse.call_count, 3)
        weather_part = agent_session.messages[1].tool_parts[0]
        self.assertEqual(weather_part.tool_call_id, "w1")
        self.assertEqual(weather_part.state, ToolCallState.INPUT_AVAILABLE)

    def test_partial_decisions_wait_for_remaining_calls(self) -> None:
        """Test that approving one of two calls runs it but waits for the other."""
        self.mock_converse.return_value = _multi_tool_response(
            [
                ("w1", "getWeatherInformation", {"city": "Paris"}),
                ("w2", "getWeatherInformation", {"city": "Rome"}),
            ]
        )
        agent_session = self._session()
        agent_session.chat("Weather in Paris and Rome?")

        result = agent_session.chat(decisions={"w1": ToolDecisionType.APPROVE})

        self.assertEqual(result.stop_reason, StopReason.CONFIRMATION_REQUIRED)
        self.assertEqual(self.mock_converse.call_count, 1)
        self.assertEqual([c.tool_call_id for c in result.tool_calls], ["w1"])
        self.assertEqual(result.tool_calls[0].output, "Sunny")
        self.assertEqual([p.tool_call_id for p in result.pending_confirmations], ["w2"])
        parts = agent_session.messages[1].tool_parts
        self.assertEqual(parts[0].state, ToolCallState.OUTPUT_AVAILABLE)
        self.assertEqual(parts[1].state, ToolCallState.INPUT_AVAILABLE)

    def test_turns_and_task_execution_are_serialised(self) -> None:
        """Test that a fired task waits for the running turn to finish."""
        model_entered = threading.Event()
        release_model = threading.Event()

        def _blocking_converse(**kwargs: Any) -> dict[str, Any]:
            model_entered.set()
            release_model.wait(5)
            return _text_response("Hello!")

        self.mock_converse.side_effect = _blocking_converse
        agent_session = self._session()
        chat_thread = threading.Thread(target=agent_session.chat, args=("Hi",))
        task_thread = threading.Thread(
            target=agent_session.execute_task, args=("water the plants",)
        )

        chat_thread.start()
        self.assertTrue(model_entered.wait(5))
        task_thread.start()
        task_thread.join(0.2)
        self.assertTrue(task_thread.is_alive())

        release_model.set()
        chat_thread.join(5)
        task_thread.join(5)

        texts = [m.text for m in agent_session.messages]
        self.assertEqual(texts, ["Hi", "Hello!", "Running scheduled task: water the plants"])

    def test_max_steps_stops_turn(self) -> None:
        """Test that the loop stops after max_steps model calls."""
        self.mock_converse.side_effect = [
            _tool_response(f"t{i}", "getLocalTime", {"location": "Tokyo"}) for i in range(5)
        ]
        agent_session = self._session(config=AgentConfig(max_steps=2))

        result = agent_session.chat("Loop")

        self.assertEqual(result.stop_reason, StopReason.MAX_STEPS)
        self.assertEqual(result.steps_taken, 2)
        self.assertEqual(self.mock_converse.call_count, 2)

    def test_cancelled_turn_is_aborted(self) -> None:
        """Test that a set cancel event stops before the model is called."""
        cancel_event = threading.Event()
        cancel_event.set()
        agent_session = self._session()

        result = agent_session.chat("Hi", cancel_event=cancel_event)

        self.assertEqual(result.stop_reason, StopReason.ABORTED)
        self.mock_converse.assert_not_called()
        self.assertEqual(len(agent_session.messages), 1)

    def test_max_tokens_marks_tool_calls_incomplete(self) -> None:
        """Test that truncated tool calls are stripped on the next turn."""
        self.mock_converse.side_effect = [
            _tool_response("t1", "getLocalTime", {"location": "Par"}, stop_reason="max_tokens"),
            _text_response("Hello again"),
        ]
        agent_session = self._session()

        result = agent_session.chat("Time?")

        self.assertEqual(result.stop_reason, StopReason.MAX_TOKENS)
        self.assertEqual(result.response, MAX_TOKENS_MESSAGE)
        part = agent_session.messages[-1].tool_parts[0]
        self.assertEqual(part.state, ToolCallState.INPUT_STREAMING)

        agent_session.chat("Try again")

        roles = [m.role for m in agent_session.messages]
        self.assertEqual(roles, [MessageRole.USER, MessageRole.USER, MessageRole.ASSISTANT])

    def test_unknown_tool_gets_error_result(self) -> None:
        """Test that a call to an unregistered tool is answered with an error."""
        self.mock_converse.side_effect = [
            _tool_response("t1", "madeUpTool", {}),
            _text_response("Sorry."),
        ]
        agent_session = self._session()

        result = agent_session.chat("Do something")

        self.assertTrue(result.tool_calls[0].is_error)
        self.assertIn("Unknown tool: madeUpTool", result.tool_calls[0].output)
        self.assertEqual(result.stop_reason, StopReason.END_TURN)

    def test_bedrock_error_propagates(self) -> None:
        """Test that model errors are raised and the user message is kept."""
        self.mock_converse.side_effect = BedrockClientError("boom")
        agent_session = self._session()

        with self.assertRaises(BedrockClientError):
            agent_session.chat("Hi")

        self.assertEqual(len(agent_session.messages), 1)

    def test_execution_table_mismatch_does_not_break_session(self) -> None:
        """Test that an approved call with no execution entry gets an error result."""
        self.mock_converse.side_effect = [
            _tool_response("w1", "getWeatherInformation", {"city": "Paris"}),
            _text_response("Sorry, the lookup failed."),
        ]
        agent_session = self._session(executions=ExecutionTable())

        with self.assertLogs("chat_agent.agent.runner", level="ERROR"):
            first = agent_session.chat("Weather in Paris?")
        second = agent_session.chat(decisions={"w1": ToolDecisionType.APPROVE})

        self.assertEqual(first.stop_reason, StopReason.CONFIRMATION_REQUIRED)
        self.assertEqual(second.stop_reason, StopReason.END_TURN)
        self.assertTrue(second.tool_calls[0].is_error)
        self.assertIn("No execution registered", second.tool_calls[0].output)

    def test_provider_overriding_builtin_tool(self) -> None:
        """Test that a provider tool replacing a built-in runs inline."""
        handler = MagicMock(return_value="Provider forecast")
        provider = _StaticProvider(
            [
                ToolDef(
                    name="getWeatherInformation",
                    description="Provider weather",
                    args_model=DummyArgs,
                    handler=handler,
                )
            ]
        )
        self.mock_converse.side_effect = [
            _tool_response("w1", "getWeatherInformation", {"value": "Paris"}),
            _text_response("Provider says hello."),
        ]
        agent_session = self._session(tool_providers=[provider])

        result = agent_session.chat("Weather in Paris?")

        self.assertEqual(result.stop_reason, StopReason.END_TURN)
        self.assertEqual(result.tool_calls[0].output, "Provider forecast")
        self.mock_weather.assert_not_called()

    def test_tool_provider_tools_are_available(self) -> None:
        """Test that provider tools are composed into the registry."""
        handler = MagicMock(return_value="provided")
        provider = _StaticProvider(
            [ToolDef(name="extra", description="Extra", args_model=DummyArgs, handler=handler)]
        )
        self.mock_converse.side_effect = [
            _tool_response("t1", "extra", {"value": "v"}),
            _text_response("Done"),
        ]
        agent_session = self._session(tool_providers=[provider])

        result = agent_session.chat("Use extra")

        self.assertEqual(result.tool_calls[0].output, "provided")
        tool_names = [
            t["toolSpec"]["name"]
            for t in self.mock_converse.call_args.kwargs["toolConfig"]["tools"]
        ]
        self.assertIn("extra", tool_names)

    def test_store_loads_and_saves(self) -> None:
        """Test that the transcript is loaded from and saved to the store."""
        store = MagicMock()
        store.load.return_value = []
        self.mock_converse.return_value = _text_response("Hello!")
        agent_session = self._session(store=store)

        agent_session.chat("Hi")

        store.load.assert_called_once_with("session-1")
        saved_id, saved_messages = store.save.call_args.args
        self.assertEqual(saved_id, "session-1")
        self.assertEqual(len(saved_messages), 2)

    def test_replace_messages(self) -> None:
        """Test replacing the transcript."""
        agent_session = self._session()
        self.mock_converse.return_value = _text_response("Hello!")
        agent_session.chat("Hi")

        agent_session.replace_messages([])

        self.assertEqual(agent_session.messages, [])

    def test_execute_task_appends_message(self) -> None:
        """Test that a fired task is recorded as a user message."""
        agent_session = self._session()

        agent_session.execute_task("water the plants")

        message = agent_session.messages[-1]
        self.assertEqual(message.role, MessageRole.USER)
        self.assertEqual(message.text, f"{SCHEDULED_TASK_PREFIX}water the plants")

    def test_run_due_tasks_fires_scheduled_task(self) -> None:
        """Test that a due task reaches execute_task."""
        agent_session = self._session()
        agent_session.schedule_adapter.schedule_task(
            Delayed(delay_in_seconds=60), "water the plants"
        )

        fired = agent_session.run_due_tasks(datetime.now(UTC) + timedelta(minutes=5))

        self.assertEqual(fired, 1)
        self.assertEqual(
            agent_session.messages[-1].text, "Running scheduled task: water the plants"
        )
        self.assertEqual(len(agent_session.scheduler), 0)


if __name__ == "__main__":
    unittest.main()
