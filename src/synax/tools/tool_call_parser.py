"""
A lenient parser for tool calls embedded in model output.

Models are asked to answer with a single object like:
    {"tool": "<name>", "arguments": { ... }}
but often wrap it in prose or markdown fences.  Parsing is done in two stages:

1. :func:`extract_json_object` locates the first balanced ``{...}`` block (string-aware brace
   matching) that decodes as a JSON object.
2. :func:`parse_tool_call` validates that object against
   :class:`~synax.core.schema.ToolCallRequest`.
"""

import json
from typing import (
    Any,
    Dict,
    Type,
    TypeVar,
)

from pydantic import (
    BaseModel,
    ValidationError,
)

from synax.core.schema import ToolCallRequest

ModelT = TypeVar("ModelT", bound=BaseModel)


class ToolCallParseError(RuntimeError):
    """Raised when model output cannot be turned into the expected structure."""


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
def _skip_string(s: str, i: int) -> int:
    """Given s[i] == '"', return index just past the closing quote."""
    i += 1
    esc = False
    while i < len(s):
        ch = s[i]
        if esc:
            esc = False
        elif ch == "\\":
            esc = True
        elif ch == '"':
            return i + 1
        i += 1
    raise ToolCallParseError("unterminated string literal")


def _find_matching_brace(s: str, i: int) -> int:
    """Given s[i] == '{', return index just past its matching '}'."""
    depth = 0
    while i < len(s):
        ch = s[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
        elif ch == '"':
            i = _skip_string(s, i)  # braces inside strings do not count
            continue
        i += 1
    raise ToolCallParseError("unbalanced braces")


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------
def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Return the first top-level JSON object found in *text*.

    Candidates start at each ``{`` in turn; the first balanced block that decodes to a dict wins.

    Raises
    ------
    ToolCallParseError
        If no candidate decodes to a JSON object.
    """
    if not text:
        raise ToolCallParseError("empty response")

    start = text.find("{")
    if start < 0:
        raise ToolCallParseError("no JSON object in response")

    last_error = "no JSON object in response"
    while start >= 0:
        try:
            end = _find_matching_brace(text, start)
            candidate = json.loads(text[start:end])
        except ToolCallParseError as exc:
            last_error = str(exc)
        except json.JSONDecodeError as exc:
            last_error = f"invalid JSON: {exc.msg}"
        else:
            if isinstance(candidate, dict):
                return candidate
        start = text.find("{", start + 1)
    raise ToolCallParseError(last_error)


def parse_model(text: str, model: Type[ModelT]) -> ModelT:
    """Extract the first JSON object of *text* and validate it as *model*."""
    data = extract_json_object(text)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ToolCallParseError(f"unexpected structure: {exc.error_count()} error(s)") from exc


def parse_tool_call(text: str) -> ToolCallRequest:
    """
    Best-effort parser for strings containing
        {"tool": "<name>", "arguments": { ... }}

    Both keys are required and ``arguments`` must be an object; argument values are not checked
    against the tool's parameter schema.
    """
    data = extract_json_object(text)
    if "tool" not in data or "arguments" not in data:
        raise ToolCallParseError("both 'tool' and 'arguments' keys are required")
    try:
        return ToolCallRequest.model_validate(data)
    except ValidationError as exc:
        raise ToolCallParseError(f"invalid tool call: {exc.errors()[0]['msg']}") from exc
