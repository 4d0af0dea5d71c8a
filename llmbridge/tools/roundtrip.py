"""
llmbridge - Tool Call Round Trip

A turn that finishes with `tool_use` continues the conversation:
1. The assistant turn is appended to history verbatim (text + tool calls)
2. Each tool call is executed exactly once
3. Each result is appended as a tool message correlated by call id
4. Only then is the next generation requested

Failures inside user tools are never retried. The caller decides whether
they abort the loop (on_error="raise") or are sent back to the model as
text (on_error="result").
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Literal,
    Mapping,
    Optional,
    Protocol,
    Union,
)

from ..core.errors import (
    LLMBridgeException,
    MissingToolResultError,
    ToolCallCorrelationError,
    ToolExecutionError,
    UnknownToolError,
)
from ..core.models import (
    FinishReason,
    GenerationOptions,
    Message,
    Role,
    StreamResult,
    ToolCall,
    ToolResultContent,
)
from ..observability.logging import LogContext, TimedOperation, get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import trace_operation
from ..streaming.consumers import StreamHandlers, _maybe_await, process_stream
from .registry import ToolFunction, ToolRegistry, format_tool_result

logger = get_logger(__name__)

OnError = Literal["raise", "result"]

# A callable receiving the ToolCall, a mapping of tool name to callable,
# or a ToolRegistry
ToolExecutor = Union[
    Callable[[ToolCall], Any],
    Mapping[str, Callable[..., Any]],
    ToolRegistry,
]


class GenerationProvider(Protocol):
    """Anything that streams chunks for a conversation."""

    def generate(self, messages: List[Message], options: Any) -> Any:
        ...


async def execute_tool_call(
    tool_call: ToolCall,
    services: Mapping[str, Callable[..., Any]],
) -> str:
    """
    Dispatch one call to the function registered under its name.

    The function receives the call's arguments as keyword arguments and
    may be sync or async.

    Raises:
        UnknownToolError: if `services` has no entry for the call's name
    """
    func = services.get(tool_call.name)
    if func is None:
        raise UnknownToolError(tool_call.name, tool_call.id)

    if isinstance(func, ToolFunction):
        return await func.invoke(tool_call.arguments)

    result = func(**tool_call.arguments)
    if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
        result = await result
    return format_tool_result(result)


def _as_callable(executor: ToolExecutor) -> Callable[[ToolCall], Awaitable[str]]:
    if isinstance(executor, ToolRegistry):
        return executor.execute

    if isinstance(executor, Mapping):
        async def dispatch(tool_call: ToolCall) -> str:
            return await execute_tool_call(tool_call, executor)
        return dispatch

    async def call(tool_call: ToolCall) -> str:
        result = executor(tool_call)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            result = await result
        return format_tool_result(result)
    return call


def _error_text(error: BaseException) -> str:
    cause = error.cause if isinstance(error, ToolExecutionError) else error
    return f"Error: {cause}"


async def execute_tool_calls(
    tool_calls: Iterable[ToolCall],
    executor: ToolExecutor,
    concurrent: bool = True,
    on_error: OnError = "raise",
    max_concurrent: int = 10,
    timeout: Optional[float] = None,
) -> List[Message]:
    """
    Execute every tool call exactly once.

    Args:
        tool_calls: Calls of one assistant turn
        executor: Callable taking a ToolCall, name->callable mapping, or ToolRegistry
        concurrent: Run calls concurrently (bounded by max_concurrent)
        on_error: "raise" to propagate the first failure (in call order)
            after all calls ran, "result" to send "Error: ..." back as the
            tool's result
        max_concurrent: Maximum concurrent executions
        timeout: Per-call timeout in seconds

    Returns:
        Tool-result messages, in the order of `tool_calls`

    Raises:
        ToolExecutionError / UnknownToolError: when on_error="raise"
    """
    if on_error not in ("raise", "result"):
        raise ValueError(f"on_error must be 'raise' or 'result', got: {on_error}")

    calls = list(tool_calls)
    run = _as_callable(executor)
    metrics = get_metrics()
    semaphore = asyncio.Semaphore(max_concurrent)

    async def execute_single(tool_call: ToolCall) -> Union[str, LLMBridgeException]:
        async with semaphore:
            started = time.perf_counter()
            try:
                with trace_operation(
                    "llmbridge.tool",
                    {"ai.tool.name": tool_call.name, "ai.tool.call_id": tool_call.id},
                ):
                    with TimedOperation(
                        f"tool.{tool_call.name}",
                        logger,
                        extra={"tool_call_id": tool_call.id},
                    ):
                        if timeout is not None:
                            result = await asyncio.wait_for(run(tool_call), timeout=timeout)
                        else:
                            result = await run(tool_call)
            except LLMBridgeException as e:
                metrics.record_tool_execution(tool_call.name, False, time.perf_counter() - started)
                return e
            except Exception as e:
                metrics.record_tool_execution(tool_call.name, False, time.perf_counter() - started)
                return ToolExecutionError(tool_call.name, tool_call.id, e)

            metrics.record_tool_execution(tool_call.name, True, time.perf_counter() - started)
            return result

    if concurrent:
        outcomes = await asyncio.gather(*(execute_single(tc) for tc in calls))
    else:
        outcomes = [await execute_single(tc) for tc in calls]

    messages: List[Message] = []
    for tool_call, outcome in zip(calls, outcomes):
        if isinstance(outcome, LLMBridgeException):
            if on_error == "raise":
                raise outcome
            logger.info(
                "Tool failed, returning error as result",
                tool_name=tool_call.name,
                tool_call_id=tool_call.id,
                error_code=outcome.error.code,
            )
            outcome = _error_text(outcome)
        messages.append(Message.tool_result(tool_call.id, outcome))

    return messages


def append_tool_turn(
    history: List[Message],
    result: Union[StreamResult, Message],
    tool_messages: List[Message],
) -> List[Message]:
    """
    Append an assistant turn and its tool results to `history`, in place.

    Every tool result must reference a call of the assistant turn, and
    every call must have a result. Nothing is appended when either check
    fails.

    Raises:
        ToolCallCorrelationError: a result references an unknown call id
        MissingToolResultError: a call has no result
    """
    assistant = result.to_message() if isinstance(result, StreamResult) else result
    known_ids = [call.id for call in assistant.tool_calls or []]

    answered = set()
    for message in tool_messages:
        for part in message.tool_results():
            if part.tool_call_id not in known_ids:
                raise ToolCallCorrelationError(part.tool_call_id, known_ids)
            answered.add(part.tool_call_id)

    missing = [call_id for call_id in known_ids if call_id not in answered]
    if missing:
        raise MissingToolResultError(missing)

    history.append(assistant)
    history.extend(tool_messages)
    return history


# ============================================================
# Tool Execution Runner
# ============================================================

@dataclass
class RunResult:
    """Result of a complete tool calling run."""
    result: StreamResult
    messages: List[Message] = field(default_factory=list)
    iterations: int = 0
    tool_results: List[ToolResultContent] = field(default_factory=list)

    @property
    def content(self) -> str:
        return self.result.content

    @property
    def stopped_by_limit(self) -> bool:
        """Whether the run ended on max_iterations with tool calls still pending."""
        return self.result.finish_reason == FinishReason.TOOL_USE


class ToolRunner:
    """
    Manages tool calling loops.

    Handles the complete flow:
    1. Generate a turn
    2. If it finished with tool_use, execute the tools
    3. Append the turn and the tool results
    4. Repeat until a turn finishes otherwise

    There is no iteration bound unless max_iterations is set.

    Example:
        runner = ToolRunner([get_weather, calculate])
        run = await runner.run(provider, [Message.user("Weather in Tokyo?")], options)
        print(run.content)
    """

    def __init__(
        self,
        tools: Union[ToolRegistry, Iterable[Union[ToolFunction, Callable]]],
        max_iterations: Optional[int] = None,
        on_error: OnError = "result",
        concurrent: bool = True,
        on_tool_call: Optional[Callable[[ToolCall, str], Any]] = None,
        handlers: Optional[StreamHandlers] = None,
    ):
        """
        Initialize the tool runner.

        Args:
            tools: ToolRegistry, or ToolFunctions / plain callables to register
            max_iterations: Maximum generations per run (None = unbounded)
            on_error: What a failing tool produces, see execute_tool_calls
            concurrent: Execute the calls of one turn concurrently
            on_tool_call: Callback (sync or async) with (tool_call, result)
                for each execution
            handlers: Stream handlers applied to every generated turn
        """
        self.registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
        self.max_iterations = max_iterations
        self.on_error = on_error
        self.concurrent = concurrent
        self.on_tool_call = on_tool_call
        self.handlers = handlers

    def _with_tools(self, options: Union[GenerationOptions, Dict[str, Any]]) -> Any:
        if isinstance(options, GenerationOptions):
            return options if options.tools else replace(options, tools=self.registry.tools)
        if options.get("tools"):
            return options
        return {**options, "tools": self.registry.tools}

    async def _generate(self, provider: GenerationProvider, messages: List[Message], options: Any) -> StreamResult:
        stream = provider.generate(list(messages), options)
        return await process_stream(stream, self.handlers or StreamHandlers())

    async def run(
        self,
        provider: GenerationProvider,
        messages: List[Message],
        options: Union[GenerationOptions, Dict[str, Any]],
    ) -> RunResult:
        """
        Run a conversation until a turn finishes without tool calls.

        Args:
            provider: Object with generate(messages, options) -> chunk stream
            messages: Conversation so far (copied, not mutated)
            options: Generation options; the registry's tools are added
                when the options declare none

        Returns:
            RunResult with the last turn's result and the full history
        """
        conversation: List[Message] = list(messages)
        options = self._with_tools(options)
        tool_results: List[ToolResultContent] = []
        iterations = 0

        token = LogContext.set_current(LogContext(extra={"run_id": f"run_{uuid.uuid4().hex[:12]}"}))
        try:
            while True:
                iterations += 1
                result = await self._generate(provider, conversation, options)

                if result.finish_reason != FinishReason.TOOL_USE or not result.tool_calls:
                    conversation.append(result.to_message())
                    break

                tool_messages = await execute_tool_calls(
                    result.tool_calls,
                    self.registry,
                    concurrent=self.concurrent,
                    on_error=self.on_error,
                )

                if self.on_tool_call:
                    for call, message in zip(result.tool_calls, tool_messages):
                        await _maybe_await(self.on_tool_call(call, message.tool_results()[0].result))

                append_tool_turn(conversation, result, tool_messages)
                for message in tool_messages:
                    tool_results.extend(message.tool_results())

                logger.debug(
                    "Tool turn completed",
                    iteration=iterations,
                    tool_calls=len(result.tool_calls),
                )

                if self.max_iterations is not None and iterations >= self.max_iterations:
                    logger.warning(
                        "Tool loop stopped at max_iterations",
                        max_iterations=self.max_iterations,
                    )
                    break
        finally:
            LogContext.reset(token)

        return RunResult(
            result=result,
            messages=conversation,
            iterations=iterations,
            tool_results=tool_results,
        )


def tool_results_by_id(messages: Iterable[Message]) -> Dict[str, str]:
    """Map tool call id to result text for the tool messages in `messages`."""
    return {
        part.tool_call_id: part.result
        for message in messages
        if message.role == Role.TOOL
        for part in message.tool_results()
    }
