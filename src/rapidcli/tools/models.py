"""Data models for the declarative tool registry and tool execution."""

from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel


def _scalar_to_text(value: Any) -> Any:
    # YAML turns `4`, `8080` or `true` into numbers and booleans; registry text fields take them as written
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


Text = Annotated[str, BeforeValidator(_scalar_to_text)]


class _Frozen(BaseModel):
    # Registry files may use either snake_case or camelCase keys
    model_config = ConfigDict(
        frozen=True, extra="ignore", alias_generator=to_camel, populate_by_name=True
    )


# ---------------------------------------------------------------------------
# Registry document
# ---------------------------------------------------------------------------
class ToolExecutionSpec(_Frozen):
    """How a tool is run: an external command or an in-process handler."""

    mode: Text = "cli"
    command: Optional[Text] = None
    arguments: List[Text] = Field(default_factory=list)
    handler: Optional[Text] = None
    working_directory: Optional[Text] = None
    environment: Dict[Text, Text] = Field(default_factory=dict)


class ToolConfiguration(_Frozen):
    """A single entry of the tool registry document."""

    name: Text
    display_name: Optional[Text] = None
    type: Optional[Text] = None
    enabled: bool = True
    priority: Optional[int] = None
    execution: ToolExecutionSpec = Field(default_factory=ToolExecutionSpec)
    tasks: List[Text] = Field(default_factory=list)
    languages: List[Text] = Field(default_factory=list)
    file_extensions: List[Text] = Field(default_factory=list)
    intent_keywords: List[Text] = Field(default_factory=list)
    metadata: Dict[Text, Text] = Field(default_factory=dict)
    description: Optional[Text] = None
    forward_result_to_agent: bool = True


# ---------------------------------------------------------------------------
# Availability & execution
# ---------------------------------------------------------------------------
class ToolAvailability(_Frozen):
    """Whether a tool can run right now, and why not if it cannot."""

    available: bool
    detail: str = ""

    @classmethod
    def ready(cls, detail: str = "available") -> "ToolAvailability":
        return cls(available=True, detail=detail)

    @classmethod
    def unavailable(cls, detail: str) -> "ToolAvailability":
        return cls(available=False, detail=detail)


class ToolExecutionResult(_Frozen):
    """Outcome of a single tool execution. Duration is in seconds."""

    success: bool
    output: str = ""
    error: Optional[str] = None
    duration: float = 0.0

    @classmethod
    def success_result(
        cls, output: str, error: Optional[str] = None, duration: float = 0.0
    ) -> "ToolExecutionResult":
        return cls(success=True, output=output, error=error or None, duration=duration)

    @classmethod
    def failure_result(
        cls, error: Optional[str], output: str = "", duration: float = 0.0
    ) -> "ToolExecutionResult":
        return cls(success=False, output=output, error=error or None, duration=duration)


class ToolInvocationContext(_Frozen):
    """Read-only inputs handed to a provider when it executes a tool."""

    objective: str
    target_path: str
    language: Optional[str] = None
    parameters: Dict[str, str] = Field(default_factory=dict)
