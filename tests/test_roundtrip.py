"""
llmbridge - Tool Round Trip Tests

Verifies:
- Each tool call is executed exactly once, results correlated by id
- Failures are raised or sent back as text, never retried
- Assistant turn and results are appended together or not at all
- ToolRunner loops generate -> execute -> append while tool_use
"""

import asyncio

import pytest

from llmbridge.adapters.stub_adapter import ScriptedAdapter
from llmbridge.client import LLMProvider
from llmbridge.core.errors import (
    MissingToolResultError,
    ToolCallCorrelationError,
    ToolExecutionError,
    UnknownToolError,
)
from llmbridge.core.models import (
    FinishReason,
    GenerationOptions,
    Message,
    Role,
    StreamResult,
    ToolCall,
)
from llmbridge.observability.logging import LogContext
from llmbridge.streaming.consumers import StreamHandlers
from llmbridge.tools.registry import ToolRegistry, tool
from llmbridge.tools.roundtrip import (
    ToolRunner,
    append_tool_turn,
    execute_tool_call,
    execute_tool_calls,
    tool_results_by_id,
)


CALLS = [
    ToolCall(id="c1", name="add", arguments={"a": 1, "b": 2}),
    ToolCall(id="c2", name="upper", arguments={"text": "hi"}),
]


@tool
def add(a: int, b: int) -> int:
    """Add two numbers."""
    return a + b


@tool
async def upper(text: str) -> str:
    """Uppercase text."""
    return text.upper()


def tool_call_turn(call_id, name, arguments):
    return [
        {"choices": [{"index": 0, "delta": {"tool_calls": [{
            "index": 0, "id": call_id, "type": "function",
            "function": {"name": name, "arguments": arguments},
        }]}, "finish_reason": None}]},
        {"choices": [{"index": 0, "delta": {}, "finish_reason": "tool_calls"}]},
        "[DONE]",
    ]


def text_turn(text):
    return [
        {"choices": [{"index": 0, "delta": {"content": text}, "finish_reason": None}]},
        {"choices": [{"index": 0, "delta": {}, "finish_reason": "stop"}]},
        "[DONE]",
    ]


# ============================================================
# Execution
# ============================================================

class TestExecuteToolCalls:

    @pytest.mark.asyncio
    async def test_results_in_call_order(self):
        messages = await execute_tool_calls(CALLS, ToolRegistry([add, upper]))

        assert tool_results_by_id(messages) == {"c1": "3", "c2": "HI"}
        assert [m.tool_results()[0].tool_call_id for m in messages] == ["c1", "c2"]
        assert all(m.role == Role.TOOL for m in messages)

    @pytest.mark.asyncio
    async def test_each_call_runs_once(self):
        seen = []

        def executor(call):
            seen.append(call.id)
            return "ok"

        await execute_tool_calls(CALLS, executor, concurrent=False)

        assert seen == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_mapping_executor(self):
        async def slow_upper(text):
            await asyncio.sleep(0)
            return text.upper()

        messages = await execute_tool_calls(CALLS, {"add": lambda a, b: a + b, "upper": slow_upper})

        assert tool_results_by_id(messages) == {"c1": "3", "c2": "HI"}

    @pytest.mark.asyncio
    async def test_failure_raises_after_all_calls(self):
        executed = []

        def executor(call):
            executed.append(call.id)
            if call.id == "c1":
                raise ValueError("bad input")
            return "fine"

        with pytest.raises(ToolExecutionError) as exc_info:
            await execute_tool_calls(CALLS, executor)

        assert isinstance(exc_info.value.cause, ValueError)
        assert sorted(executed) == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_failure_as_result(self):
        def executor(call):
            raise RuntimeError("service down")

        messages = await execute_tool_calls(CALLS[:1], executor, on_error="result")

        assert tool_results_by_id(messages) == {"c1": "Error: service down"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        with pytest.raises(UnknownToolError):
            await execute_tool_calls([ToolCall(id="c9", name="nope")], ToolRegistry([add]))

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def hang(call):
            await asyncio.sleep(10)

        messages = await execute_tool_calls(CALLS[:1], hang, on_error="result", timeout=0.01)

        assert tool_results_by_id(messages)["c1"].startswith("Error:")

    @pytest.mark.asyncio
    async def test_invalid_on_error(self):
        with pytest.raises(ValueError):
            await execute_tool_calls(CALLS, ToolRegistry(), on_error="ignore")

    @pytest.mark.asyncio
    async def test_execution_metrics(self, metrics_registry):
        await execute_tool_calls(CALLS[:1], ToolRegistry([add]))

        assert metrics_registry.get_sample_value(
            "llmbridge_tool_executions_total", {"tool": "add", "status": "success"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_execute_single_call(self):
        assert await execute_tool_call(CALLS[0], {"add": add}) == "3"
        with pytest.raises(UnknownToolError):
            await execute_tool_call(CALLS[1], {"add": add})


# ============================================================
# History
# ============================================================

class TestAppendToolTurn:

    def test_appends_turn_then_results(self):
        history = [Message.user("What is 1+2?")]
        result = StreamResult(content="", tool_calls=[CALLS[0]], finish_reason=FinishReason.TOOL_USE)

        append_tool_turn(history, result, [Message.tool_result("c1", "3")])

        assert [m.role for m in history] == [Role.USER, Role.ASSISTANT, Role.TOOL]
        assert history[1].tool_calls == [CALLS[0]]

    def test_rejects_unknown_call_id(self):
        history = []
        result = StreamResult(tool_calls=[CALLS[0]], finish_reason=FinishReason.TOOL_USE)

        with pytest.raises(ToolCallCorrelationError):
            append_tool_turn(history, result, [Message.tool_result("other", "x")])
        assert history == []

    def test_rejects_missing_result(self):
        history = []
        result = StreamResult(tool_calls=CALLS, finish_reason=FinishReason.TOOL_USE)

        with pytest.raises(MissingToolResultError) as exc_info:
            append_tool_turn(history, result, [Message.tool_result("c1", "3")])

        assert exc_info.value.error.details["missing_ids"] == ["c2"]
        assert history == []

    def test_accepts_assistant_message(self):
        history = []
        assistant = Message.assistant("", tool_calls=[CALLS[0]])
        append_tool_turn(history, assistant, [Message.tool_result("c1", "3")])
        assert history[0] is assistant


# ============================================================
# Runner
# ============================================================

class TestToolRunner:

    @pytest.mark.asyncio
    async def test_loop_until_stop(self):
        adapter = ScriptedAdapter("openai", [
            tool_call_turn("call_1", "add", '{"a": 2, "b": 3}'),
            text_turn("The sum is 5."),
        ])
        runner = ToolRunner([add])

        run = await runner.run(LLMProvider(adapter), [Message.user("2+3?")], {"model": "gpt-4o"})

        assert run.content == "The sum is 5."
        assert run.iterations == 2
        assert not run.stopped_by_limit
        assert [m.role for m in run.messages] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        assert run.tool_results[0].tool_call_id == "call_1"
        assert run.tool_results[0].result == "5"

        second_request = adapter.requests[1]
        assert second_request.messages[1].tool_calls[0].id == "call_1"
        assert second_request.messages[2].tool_results()[0].tool_call_id == "call_1"
        assert [t.name for t in second_request.options.tools] == ["add"]

    @pytest.mark.asyncio
    async def test_max_iterations(self):
        adapter = ScriptedAdapter("openai", [
            tool_call_turn("call_1", "add", '{"a": 1, "b": 1}'),
            tool_call_turn("call_2", "add", '{"a": 2, "b": 2}'),
        ])
        runner = ToolRunner([add], max_iterations=1)

        run = await runner.run(LLMProvider(adapter), [Message.user("loop")], GenerationOptions(model="gpt-4o"))

        assert run.iterations == 1
        assert run.stopped_by_limit
        assert adapter.remaining == 1

    @pytest.mark.asyncio
    async def test_tool_errors_go_back_to_model(self):
        @tool
        def fail() -> str:
            raise RuntimeError("broken")

        adapter = ScriptedAdapter("openai", [
            tool_call_turn("call_1", "fail", "{}"),
            text_turn("Sorry."),
        ])

        run = await ToolRunner([fail]).run(LLMProvider(adapter), [Message.user("x")], {"model": "gpt-4o"})

        assert run.tool_results[0].result == "Error: broken"
        assert run.content == "Sorry."

    @pytest.mark.asyncio
    async def test_callbacks_and_handlers(self):
        adapter = ScriptedAdapter("openai", [
            tool_call_turn("call_1", "upper", '{"text": "ok"}'),
            text_turn("Done"),
        ])
        executed = []
        deltas = []
        runner = ToolRunner(
            [upper],
            on_tool_call=lambda call, result: executed.append((call.name, result)),
            handlers=StreamHandlers(on_delta=deltas.append),
        )

        await runner.run(LLMProvider(adapter), [Message.user("x")], {"model": "gpt-4o"})

        assert executed == [("upper", "OK")]
        assert deltas == ["Done"]

    @pytest.mark.asyncio
    async def test_async_tool_call_callback_is_awaited(self):
        adapter = ScriptedAdapter("openai", [
            tool_call_turn("call_1", "upper", '{"text": "ok"}'),
            text_turn("Done"),
        ])
        executed = []

        async def record(call, result):
            executed.append((call.id, result))

        await ToolRunner([upper], on_tool_call=record).run(
            LLMProvider(adapter), [Message.user("x")], {"model": "gpt-4o"},
        )

        assert executed == [("call_1", "OK")]

    @pytest.mark.asyncio
    async def test_input_history_not_mutated(self):
        adapter = ScriptedAdapter("openai", [text_turn("Hi")])
        history = [Message.user("Hello")]

        run = await ToolRunner([add]).run(LLMProvider(adapter), history, {"model": "gpt-4o"})

        assert len(history) == 1
        assert len(run.messages) == 2
        assert LogContext.get_current() is None
