"""
llmbridge - Tool Registry

Wraps Python callables as tools the model can call.

Example:
    from llmbridge.tools import ToolRegistry, tool

    @tool(description="Get the current weather")
    def get_weather(location: str, unit: str = "celsius") -> str:
        return f"Weather in {location}: 22{unit[0].upper()}"

    registry = ToolRegistry([get_weather])
    options = GenerationOptions(model="gpt-4o", tools=registry.tools)
"""

from __future__ import annotations

import enum
import inspect
import json
import typing
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    TypeVar,
    Union,
    get_type_hints,
)

from ..core.errors import UnknownToolError
from ..core.models import Tool, ToolCall

T = TypeVar("T")


# ============================================================
# Tool Definition Helpers
# ============================================================

def format_tool_result(value: Any) -> str:
    """Render a tool's return value as the string sent back to the model."""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


@dataclass
class ToolFunction:
    """
    A callable registered as a tool.

    The callable may be sync or async; invoke() handles both.
    """
    func: Callable[..., Any]
    tool: Tool

    @property
    def name(self) -> str:
        return self.tool.name

    @property
    def description(self) -> str:
        return self.tool.description

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.tool.parameters

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        """Call the underlying function."""
        return self.func(*args, **kwargs)

    async def invoke(self, arguments: Dict[str, Any]) -> str:
        """
        Run the function with parsed arguments.

        Exceptions raised by the function propagate to the caller.
        """
        result = self.func(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return format_tool_result(result)


def _python_type_to_json_schema(python_type: Any) -> Dict[str, Any]:
    """Convert Python type hints to JSON Schema types."""
    if python_type is None or python_type is type(None):
        return {"type": "null"}

    origin = typing.get_origin(python_type)
    args = typing.get_args(python_type)

    if origin is Union:
        non_null = [a for a in args if a is not type(None)]
        if len(non_null) == 1:
            return _python_type_to_json_schema(non_null[0])
        return {"anyOf": [_python_type_to_json_schema(a) for a in non_null]}

    if origin is typing.Literal:
        return {"type": _python_type_to_json_schema(type(args[0]))["type"], "enum": list(args)}

    if origin in (list, tuple, set) or python_type in (list, tuple, set):
        schema: Dict[str, Any] = {"type": "array"}
        if args and args[0] is not Ellipsis:
            schema["items"] = _python_type_to_json_schema(args[0])
        return schema

    if origin is dict or python_type is dict:
        return {"type": "object"}

    if inspect.isclass(python_type) and issubclass(python_type, enum.Enum):
        return {"type": "string", "enum": [m.value for m in python_type]}

    if python_type is bool:
        return {"type": "boolean"}
    if python_type is int:
        return {"type": "integer"}
    if python_type is float:
        return {"type": "number"}

    # Default to string for unknown types
    return {"type": "string"}


def _generate_parameters_schema(func: Callable) -> Dict[str, Any]:
    """Generate JSON Schema for function parameters."""
    sig = inspect.signature(func)
    hints = get_type_hints(func) if hasattr(func, "__annotations__") else {}

    properties: Dict[str, Any] = {}
    required: List[str] = []

    for name, param in sig.parameters.items():
        if name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        properties[name] = _python_type_to_json_schema(hints.get(name, str))

        if param.default is inspect.Parameter.empty:
            required.append(name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


def create_tool(
    func: Callable[..., Any],
    name: Optional[str] = None,
    description: Optional[str] = None,
    parameters: Optional[Dict[str, Any]] = None
) -> ToolFunction:
    """
    Create a ToolFunction from a regular function.

    Args:
        func: The function to wrap
        name: Tool name (defaults to function name)
        description: Tool description (defaults to the docstring)
        parameters: JSON Schema for parameters (generated from type hints if omitted)
    """
    return ToolFunction(
        func=func,
        tool=Tool(
            name=name or func.__name__,
            description=description or inspect.getdoc(func) or "",
            parameters=parameters or _generate_parameters_schema(func),
        ),
    )


def tool(
    func: Optional[Callable[..., Any]] = None,
    *,
    name: Optional[str] = None,
    description: str = "",
    parameters: Optional[Dict[str, Any]] = None
) -> Any:
    """
    Decorator to convert a function into a ToolFunction.

    Works bare or with arguments:

        @tool
        def add(a: int, b: int) -> int: ...

        @tool(description="Get current weather for a location")
        async def get_weather(location: str) -> str: ...
    """
    def decorator(f: Callable[..., T]) -> ToolFunction:
        return create_tool(f, name=name, description=description or None, parameters=parameters)

    if func is not None:
        return decorator(func)
    return decorator


# ============================================================
# Registry
# ============================================================

class ToolRegistry:
    """
    Name to callable dispatch for tool calls.

    A registry is itself a tool executor: `await registry(tool_call)`
    runs the matching function.
    """

    def __init__(self, tools: Optional[Iterable[Union[ToolFunction, Callable]]] = None):
        self._tools: Dict[str, ToolFunction] = {}
        for t in tools or []:
            self.register(t)

    def register(self, func: Union[ToolFunction, Callable], name: Optional[str] = None) -> ToolFunction:
        """Register a ToolFunction or a plain callable."""
        tool_function = func if isinstance(func, ToolFunction) else create_tool(func, name=name)
        if tool_function.name in self._tools:
            raise ValueError(f"Tool already registered: {tool_function.name}")
        self._tools[tool_function.name] = tool_function
        return tool_function

    def get(self, name: str) -> Optional[ToolFunction]:
        return self._tools.get(name)

    @property
    def tools(self) -> List[Tool]:
        """Declarations to pass as GenerationOptions.tools."""
        return [t.tool for t in self._tools.values()]

    @property
    def names(self) -> List[str]:
        return list(self._tools.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, tool_call: ToolCall) -> str:
        """
        Run the tool a call names.

        Raises:
            UnknownToolError: if no tool is registered under the name
        """
        tool_function = self._tools.get(tool_call.name)
        if tool_function is None:
            raise UnknownToolError(tool_call.name, tool_call.id)
        return await tool_function.invoke(tool_call.arguments)

    async def __call__(self, tool_call: ToolCall) -> str:
        return await self.execute(tool_call)
