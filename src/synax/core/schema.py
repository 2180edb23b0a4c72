"""
Schema definitions for model <-> agent <-> tool messages.

These data models serve as the contract between the language model, the dispatch loop, and the
tool servers.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.  Anything the model produces is validated through one of these models before use.
"""

from datetime import datetime
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


class Route(str, Enum):
    """Branch chosen by the router for one user turn."""

    CONVERSATION = "CONVERSATION"
    TOOL = "TOOL"


class ParameterInfo(BaseModel):
    """Information about a tool parameter."""

    model_config = ConfigDict(frozen=True)

    type: str = "any"
    description: str = ""
    required: bool = False


class ToolSpec(BaseModel):
    """A tool advertised by a tool server."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: Dict[str, ParameterInfo] = Field(default_factory=dict)

    @classmethod
    def from_input_schema(
        cls, name: str, description: str | None, input_schema: Mapping[str, Any] | None
    ) -> "ToolSpec":
        """Build a spec from a JSON-schema object (``properties`` + ``required``)."""
        schema = input_schema or {}
        properties = schema.get("properties") or {}
        required = set(schema.get("required") or [])
        params: Dict[str, ParameterInfo] = {}
        for param_name, info in properties.items():
            info = info if isinstance(info, Mapping) else {}
            params[param_name] = ParameterInfo(
                type=str(info.get("type", "any")),
                description=str(info.get("description", "")),
                required=param_name in required,
            )
        return cls(name=name, description=description or "", parameters=params)

    def hint_for(self, param_name: str) -> str:
        """Human-readable hint for one parameter: its description, else its type."""
        info = self.parameters[param_name]
        return info.description or info.type


class ToolCallRequest(BaseModel):
    """A tool call the model wants the agent to execute."""

    tool: str = Field(..., min_length=1, description="Tool name")
    arguments: Dict[str, Any] = Field(..., description="Arguments keyed by parameter name")

    @field_validator("tool")
    @classmethod
    def _strip_tool(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("'tool' name is empty")
        return value


class ToolSelection(BaseModel):
    """Answer of the tool selector."""

    selected_tool: Optional[str] = None
    confidence: float = 0.0
    reason: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        return min(max(number, 0.0), 1.0)


class PlannedStep(BaseModel):
    """One atomic step of a plan, with the exact prompt for the tool agent."""

    number: int = Field(..., ge=1)
    step: str
    prompt: str = Field(..., min_length=1)


class PlanResult(BaseModel):
    """Ordered steps returned by the planner."""

    steps: List[PlannedStep] = Field(default_factory=list)


class ContentItem(BaseModel):
    """One content entry returned by a tool server."""

    type: str = "text"
    text: Optional[str] = None
    error: Optional[str] = None


class ToolResponse(BaseModel):
    """Normalised result of a tool-server call."""

    content: List[ContentItem] = Field(default_factory=list)
    is_error: bool = False


class ExecutionResult(BaseModel):
    """Outcome of one tool-agent attempt that did not fail."""

    success: bool = False
    cancelled: bool = False
    tool_name: Optional[str] = None
    output: Optional[str] = None


class Role(str, Enum):
    """Author of a transcript line."""

    USER = "USER"
    RESPONSE = "RESPONSE"


class TranscriptEntry(BaseModel):
    """A single timestamped transcript line."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    role: Role
    text: str

    def render(self) -> str:
        return f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] {self.role.value}: {self.text}"
