"""Breaks a request into distinct, executable steps for the tool agent."""

import logging
from typing import (
    Any,
    List,
)

from synax.common import (
    AnsiColors,
    colored_print,
)
from synax.core.schema import (
    PlannedStep,
    PlanResult,
    ToolSpec,
)
from synax.llm.gateway import (
    PLANNING_OPTIONS,
    InferenceGateway,
    TransportError,
)
from synax.tools import format_tool_catalogue
from synax.tools.tool_call_parser import (
    ToolCallParseError,
    extract_json_object,
)

logger = logging.getLogger(__name__)


class PlanningError(RuntimeError):
    """Raised when no usable plan could be produced."""


class PlanningAgent:
    """Decomposes a user request into numbered steps, each with an exact tool-agent prompt."""

    def __init__(self, gateway: InferenceGateway, shell_tool_name: str) -> None:
        self.gateway = gateway
        self.shell_tool_name = shell_tool_name

    def build_prompt(self, tools: List[ToolSpec], request: str) -> str:
        catalogue = format_tool_catalogue(tools) if tools else "(none)"
        return f"""\
You are a planning agent. Your role is to decompose the user's request into a small number of \
DISTINCT, EXECUTABLE steps for a tool-execution agent.
Focus on the user's request and the available tools to generate a plan.
Do not add more steps than necessary.
If tools are not available, try to execute the user's request using the tool \
{self.shell_tool_name}.
Available tools:
{catalogue}

Rules:
- Steps must be self-contained and unambiguous.
- Each step must carry an exact prompt that the Tool Agent can use directly.
- Prefer 2-6 steps; keep it concise but complete.
- Keep the user's original intent and constraints.
- Do NOT include any explanations or prose outside JSON.
- Always keep the user's language.

Response format (JSON ONLY):
{{
    "steps": [
        {{ "number": 1, "step": "Title of the step", "prompt": "Exact prompt for the tool agent" }},
        {{ "number": 2, "step": "...", "prompt": "..." }}
    ]
}}

User request:
{request}
"""

    @staticmethod
    def _normalise(raw_steps: List[Any]) -> List[PlannedStep]:
        steps: List[PlannedStep] = []
        for idx, raw in enumerate(raw_steps, start=1):
            if not isinstance(raw, dict):
                raise PlanningError(f"Invalid step {idx}: not an object.")
            number = raw.get("number")
            if not isinstance(number, int) or isinstance(number, bool) or number < 1:
                number = idx
            title = str(raw.get("step") or raw.get("title") or f"Step {number}")
            prompt = str(raw.get("prompt") or "").strip()
            if not prompt:
                raise PlanningError(f"Invalid step {number}: missing prompt.")
            steps.append(PlannedStep(number=number, step=title, prompt=prompt))
        return steps

    async def plan_steps(self, tools: List[ToolSpec], request: str) -> PlanResult:
        """
        Return the plan for *request*.

        Raises
        ------
        PlanningError
            If the backend fails or the answer is not a plan.
        """
        try:
            answer = await self.gateway.generate(self.build_prompt(tools, request), PLANNING_OPTIONS)
        except TransportError as exc:
            raise PlanningError(str(exc)) from exc

        try:
            data = extract_json_object(answer)
        except ToolCallParseError as exc:
            raise PlanningError("Planner did not return a valid JSON payload.") from exc

        raw_steps = data.get("steps")
        if not isinstance(raw_steps, list):
            raise PlanningError("Invalid plan format: missing steps array.")

        plan = PlanResult(steps=self._normalise(raw_steps))
        logger.info("Planned %d step(s): %s", len(plan.steps), [s.step for s in plan.steps])
        return plan


def print_plan(plan: PlanResult) -> None:
    for step in plan.steps:
        colored_print(f"  {step.number}. {step.step}", AnsiColors.GRAY)
