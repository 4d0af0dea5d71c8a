"""
llmbridge - Options Validation

Pydantic models for the caller-facing options bag. Callers may pass a
plain mapping (snake_case or camelCase keys) or a GenerationOptions
instance; either way it is validated here before any request is built.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import InvalidOptionsError
from .models import GenerationOptions, Tool, ToolChoiceSpecific


class ToolInput(BaseModel):
    """Tool declaration."""
    name: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
    description: str = Field(default="", max_length=4096)
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ToolChoiceInput(BaseModel):
    """Force a specific tool by name."""
    name: str = Field(..., min_length=1)


class GenerationOptionsInput(BaseModel):
    """Validated generation options. Unknown keys are kept as vendor extras."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    model: str = Field(..., min_length=1)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, gt=0)
    stop_sequences: Optional[List[str]] = None
    tools: Optional[List[ToolInput]] = None
    tool_choice: Optional[Union[Literal["auto", "none", "required"], ToolChoiceInput]] = None

    @field_validator("stop_sequences", mode="before")
    @classmethod
    def coerce_stop_sequences(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    @model_validator(mode="after")
    def check_tools(self):
        names = [t.name for t in self.tools or []]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Tool names must be unique, duplicated: {', '.join(duplicates)}")

        if self.tool_choice == "required" and not names:
            raise ValueError("tool_choice 'required' needs at least one tool")

        if isinstance(self.tool_choice, ToolChoiceInput) and self.tool_choice.name not in names:
            raise ValueError(f"tool_choice names undeclared tool: {self.tool_choice.name}")

        return self

    def to_options(self) -> GenerationOptions:
        tool_choice: Any = self.tool_choice
        if isinstance(tool_choice, ToolChoiceInput):
            tool_choice = ToolChoiceSpecific(name=tool_choice.name)

        return GenerationOptions(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
            top_k=self.top_k,
            stop_sequences=self.stop_sequences,
            tools=[
                Tool(name=t.name, description=t.description, parameters=t.parameters)
                for t in self.tools
            ] if self.tools else None,
            tool_choice=tool_choice,
            extra=dict(self.model_extra or {}),
        )


def _tool_to_mapping(tool: Any) -> Any:
    if isinstance(tool, Tool):
        return {"name": tool.name, "description": tool.description, "parameters": tool.parameters}
    return tool


def _tool_choice_to_mapping(tool_choice: Any) -> Any:
    if isinstance(tool_choice, ToolChoiceSpecific):
        return {"name": tool_choice.name}
    return tool_choice


def _options_to_mapping(options: GenerationOptions) -> Dict[str, Any]:
    tool_choice = _tool_choice_to_mapping(options.tool_choice)

    data: Dict[str, Any] = dict(options.extra)
    data.update({
        "model": options.model,
        "max_tokens": options.max_tokens,
        "temperature": options.temperature,
        "top_p": options.top_p,
        "top_k": options.top_k,
        "stop_sequences": options.stop_sequences,
        "tools": [_tool_to_mapping(t) for t in options.tools] if options.tools else None,
        "tool_choice": tool_choice,
    })
    return data


def validate_options(
    options: Union[GenerationOptions, Mapping[str, Any]],
    **overrides: Any
) -> GenerationOptions:
    """
    Validate an options bag.

    Args:
        options: GenerationOptions or a mapping of option values
        **overrides: Values that replace keys of `options`

    Returns:
        Validated GenerationOptions

    Raises:
        InvalidOptionsError: if validation fails
    """
    if isinstance(options, GenerationOptions):
        data = _options_to_mapping(options)
    else:
        data = dict(options)
    data.update(overrides)

    # Mappings may carry Tool / ToolChoiceSpecific instances
    if data.get("tools"):
        data["tools"] = [_tool_to_mapping(t) for t in data["tools"]]
    if "tool_choice" in data:
        data["tool_choice"] = _tool_choice_to_mapping(data["tool_choice"])

    try:
        return GenerationOptionsInput.model_validate(data).to_options()
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidOptionsError(
            f"Invalid generation options: {errors[0]['loc'] or 'options'}: {errors[0]['msg']}",
            errors=errors,
        )
