"""Main orchestration loop for Synax: route, then converse or run tools with repair-and-retry."""

from __future__ import annotations

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from enum import Enum
from typing import (
    Callable,
    List,
)

from synax.agent.control import ControlAgent
from synax.agent.conversation import ConversationAgent
from synax.agent.planner import (
    PlanningAgent,
    PlanningError,
    print_plan,
)
from synax.agent.router import route_request
from synax.agent.tool_executor import (
    ToolAgent,
    ToolExecutionError,
)
from synax.agent.tool_selector import ToolSelectorAgent
from synax.common import (
    AnsiColors,
    LoadingAnimation,
    colored_print,
)
from synax.core.schema import (
    PlanResult,
    Route,
    ToolSpec,
)
from synax.llm.gateway import InferenceGateway
from synax.memory.transcript import Transcript
from synax.tools import ToolDirectory
from synax.tools.tool_call_parser import ToolCallParseError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class TurnOutcome(str, Enum):
    """How a user turn ended."""

    CONVERSATION = "conversation"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


@dataclass
class AttemptState:
    """Retry bookkeeping for one tool dispatch; lives only for the duration of a turn."""

    prompt: str
    attempts: int = 0
    tool_name: str | None = None
    terminal: bool = False


# ---------------------------------------------------------------------------
# Dispatch loop
# ---------------------------------------------------------------------------
class DispatchLoop:
    """
    Processes one line of user input to completion.

    The turn never raises (apart from ``KeyboardInterrupt``): failures are reported on the console
    and reflected in the returned :class:`TurnOutcome`.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        directory: ToolDirectory,
        transcript: Transcript,
        conversation: ConversationAgent,
        tool_agent: ToolAgent,
        selector: ToolSelectorAgent,
        control: ControlAgent,
        planner: PlanningAgent | None = None,
        is_connected: Callable[[], bool] = lambda: True,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        history_limit: int | None = None,
        spinner: LoadingAnimation | None = None,
    ) -> None:
        self.gateway = gateway
        self.directory = directory
        self.transcript = transcript
        self.conversation = conversation
        self.tool_agent = tool_agent
        self.selector = selector
        self.control = control
        self.planner = planner
        self.is_connected = is_connected
        self.max_attempts = max_attempts
        self.history_limit = history_limit
        self.spinner = spinner

    def _busy(self) -> LoadingAnimation | nullcontext:
        return self.spinner if self.spinner is not None else nullcontext()

    def with_history(self, user_input: str) -> str:
        """Append the formatted transcript to *user_input*."""
        block = self.transcript.render(self.history_limit)
        if not block.strip():
            return user_input
        return f"{user_input}\n\nCONVERSATION HISTORY:\n{block}\n\n"

    async def handle_turn(self, user_input: str) -> TurnOutcome:
        """Route *user_input* and run the matching branch."""
        try:
            self.transcript.add_user_input(user_input)
            tools = self.directory.tools()

            with self._busy():
                route = await route_request(user_input, self.gateway, tools, self.is_connected())
            effective_input = self.with_history(user_input)

            if route is Route.TOOL:
                return await self.run_tools(tools, effective_input)

            await self.conversation.handle_conversation(effective_input)
            return TurnOutcome.CONVERSATION
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unhandled error while processing turn")
            colored_print(f"\nProcessing Error: {exc}", AnsiColors.RED)
            return TurnOutcome.FAILED

    async def run_tools(self, tools: List[ToolSpec], prompt: str) -> TurnOutcome:
        """Select once, optionally plan, then run every step through the retry loop."""
        with self._busy():
            selection = await self.selector.select_tool(tools, prompt)
        self.selector.announce(selection)
        selected = selection.selected_tool if selection else None

        with self._busy():
            plan = await self._plan(tools, prompt)
        if plan is None:
            instructions = [prompt]
        else:
            if len(plan.steps) > 1:
                print_plan(plan)
            instructions = [step.prompt for step in plan.steps]

        for instruction in instructions:
            # The advisory pick was made for the whole request, not for individual plan steps.
            preselected = selected if len(instructions) == 1 else None
            outcome = await self.attempt(tools, instruction, preselected)
            if outcome is not TurnOutcome.SUCCESS:
                return outcome
        return TurnOutcome.SUCCESS

    async def _plan(self, tools: List[ToolSpec], prompt: str) -> PlanResult | None:
        if self.planner is None:
            return None
        try:
            plan = await self.planner.plan_steps(tools, prompt)
        except PlanningError as exc:
            logger.warning("Planning failed, running the request as a single step: %s", exc)
            return None
        return plan if plan.steps else None

    async def attempt(
        self, tools: List[ToolSpec], prompt: str, preselected: str | None = None
    ) -> TurnOutcome:
        """
        Retry state machine for one tool instruction.

        The attempt counter is incremented on each failure before it is compared to
        ``max_attempts``; no repair runs after the last failed attempt.
        """
        state = AttemptState(prompt=prompt)
        outcome = TurnOutcome.FAILED

        while not state.terminal:
            try:
                result = await self.tool_agent.execute(tools, state.prompt, preselected)
            except (ToolCallParseError, ToolExecutionError) as exc:
                state.attempts += 1
                state.tool_name = getattr(exc, "tool_name", None) or state.tool_name
                colored_print(f"  Attempt {state.attempts}", AnsiColors.RED)
                logger.warning("Attempt %d failed: %s", state.attempts, exc)

                if state.attempts >= self.max_attempts:
                    colored_print("Max attempts reached. Tool execution failed.", AnsiColors.RED)
                    outcome = TurnOutcome.EXHAUSTED
                    state.terminal = True
                    continue

                with self._busy():
                    state.prompt = await self.control.repair(
                        tools, state.tool_name, state.prompt, str(exc), state.attempts
                    )
                continue

            state.tool_name = result.tool_name
            state.terminal = True
            outcome = TurnOutcome.CANCELLED if result.cancelled else TurnOutcome.SUCCESS

        logger.info("Tool dispatch ended: %s after %d failure(s)", outcome.value, state.attempts)
        return outcome
