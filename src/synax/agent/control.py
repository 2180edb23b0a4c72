"""Repairs the prompt of a failed tool attempt."""

import logging
from typing import List

import psutil

from synax.common import (
    AnsiColors,
    colored_print,
)
from synax.core import system_info
from synax.core.schema import ToolSpec
from synax.llm.gateway import (
    REPAIR_OPTIONS,
    InferenceGateway,
    TransportError,
)
from synax.tools import format_tool_catalogue

logger = logging.getLogger(__name__)


class ControlAgent:
    """
    Diagnoses a failed attempt and asks the model for a corrected prompt.

    The previous prompt is returned unchanged whenever the repair itself fails, so the retry loop
    always has something to run.
    """

    def __init__(self, gateway: InferenceGateway) -> None:
        self.gateway = gateway

    def build_prompt(
        self,
        tools: List[ToolSpec],
        tool_name: str | None,
        previous_prompt: str,
        error_text: str,
    ) -> str:
        snapshot = system_info.collect_snapshot()
        failed_tool = f"\n**Failed Tool:** {tool_name}\n" if tool_name else ""
        return f"""\
You are a control agent. Your role is to analyze the error from the previous tool execution and \
refine the prompt to ensure the next attempt is successful.

**System Information:**
{snapshot.render()}

**File System Structure:**
{system_info.list_directory(snapshot.home_dir)}
{failed_tool}
**Previous Prompt:**
{previous_prompt}

**Error:**
{error_text}

**Tools:**
{format_tool_catalogue(tools)}

**Instructions:**
1.  Analyze the error and the previous prompt.
2.  Identify the reason for the failure (e.g., missing parameters, incorrect format, incorrect \
path, etc.).
3.  Generate a new, corrected prompt that addresses the error.
4.  Ensure the new prompt is clear, complete, and follows all the rules of the original prompt.
5.  Respond with ONLY the new prompt.

**New Prompt:**
"""

    async def repair(
        self,
        tools: List[ToolSpec],
        tool_name: str | None,
        previous_prompt: str,
        error_text: str,
        attempt: int,
    ) -> str:
        """Return a corrected prompt, or *previous_prompt* if none could be produced."""
        try:
            prompt = self.build_prompt(tools, tool_name, previous_prompt, error_text)
        except (OSError, RuntimeError, psutil.Error) as exc:
            logger.warning("Cannot describe the host for try %d: %s", attempt, exc)
            colored_print(f"Control Agent Error: {exc}", AnsiColors.RED)
            return previous_prompt

        try:
            answer = await self.gateway.generate(prompt, REPAIR_OPTIONS)
        except TransportError as exc:
            logger.warning("Control agent error on try %d: %s", attempt, exc)
            colored_print(f"Control Agent Error: {exc}", AnsiColors.RED)
            return previous_prompt

        if not answer.strip():
            logger.warning("Control agent returned an empty prompt on try %d", attempt)
            return previous_prompt

        colored_print(
            f" 🧠 Control agent generated a new prompt... | try: {attempt}", AnsiColors.YELLOW
        )
        logger.debug("Repaired prompt (try %d): %s", attempt, answer)
        return answer.strip()
