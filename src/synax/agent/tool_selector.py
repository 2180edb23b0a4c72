"""Picks the tool that best matches a request."""

import logging
from typing import List

from synax.common import (
    AnsiColors,
    colored_print,
)
from synax.core.schema import (
    ToolSelection,
    ToolSpec,
)
from synax.llm.gateway import (
    SELECTION_OPTIONS,
    InferenceGateway,
    TransportError,
)
from synax.tools import format_tool_catalogue
from synax.tools.tool_call_parser import (
    ToolCallParseError,
    parse_model,
)

logger = logging.getLogger(__name__)


class ToolSelectorAgent:
    """
    Asks the model for ``{"selected_tool", "confidence", "reason"}``.

    The selection is advisory: every failure (transport, malformed JSON, unknown tool) yields
    ``None`` and is only logged.
    """

    def __init__(self, gateway: InferenceGateway, timeout: float | None = None) -> None:
        self.gateway = gateway
        self.timeout = timeout

    def build_prompt(self, tools: List[ToolSpec], user_input: str) -> str:
        return f"""\
You are a tool selection agent. Your task is to determine the most appropriate tool to use \
based on the user's request.

AVAILABLE TOOLS:
{format_tool_catalogue(tools, header="Parameters:")}

USER REQUEST:"{user_input}"

Analyze the user's request and respond with a JSON object containing:
{{
  "selected_tool": "name_of_the_best_matching_tool",  // or null if no tool matches
  "confidence": 0-1,  // confidence score (0-1)
  "reason": "brief_explanation"
}}

Only respond with the JSON object, nothing else."""

    async def select_tool(self, tools: List[ToolSpec], user_input: str) -> ToolSelection | None:
        """Return the selection for *user_input* when it names a known tool, else None.  Prints nothing."""
        if not tools:
            return None

        try:
            answer = await self.gateway.generate(
                self.build_prompt(tools, user_input), SELECTION_OPTIONS, timeout=self.timeout
            )
        except TransportError as exc:
            logger.warning("Tool selection error: %s", exc)
            return None

        try:
            selection = parse_model(answer, ToolSelection)
        except ToolCallParseError as exc:
            logger.warning("Failed to parse tool selection response: %s", exc)
            return None

        name = selection.selected_tool
        if not name or name not in {tool.name for tool in tools}:
            logger.info("Tool selector returned no known tool (%r)", name)
            return None

        logger.info("Selected tool %s: %s", name, selection.reason)
        return selection

    @staticmethod
    def announce(selection: ToolSelection | None) -> None:
        if selection is None:
            return
        colored_print(
            f"  Selected tool: {selection.selected_tool} (confidence: {selection.confidence * 100:.0f}%)",
            AnsiColors.GRAY,
        )

    async def select_best_tool(self, tools: List[ToolSpec], user_input: str) -> str | None:
        """Return the name of the best tool for *user_input*, or None, and print the pick."""
        selection = await self.select_tool(tools, user_input)
        self.announce(selection)
        return selection.selected_tool if selection else None
