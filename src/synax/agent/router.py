"""Classifies a user utterance as conversation or tool use."""

import logging
from typing import List

from synax.common import (
    AnsiColors,
    colored_print,
)
from synax.core.schema import (
    Route,
    ToolSpec,
)
from synax.llm.gateway import (
    ROUTING_OPTIONS,
    InferenceGateway,
    TransportError,
)

logger = logging.getLogger(__name__)


def build_routing_prompt(user_input: str, tools: List[ToolSpec]) -> str:
    catalogue = ", ".join(f"{t.name}: {t.description}" for t in tools)
    return f"""\
You are a routing agent. Your job is to determine if the user wants to:
1. Have a normal conversation (CONVERSATION)
2. Execute a tool/function (TOOL)

Available tools: {catalogue}

User input: "{user_input}"

Analyze the user input and respond with EXACTLY one word at the beginning of your response:
- "CONVERSATION" if the user wants to chat, ask questions, or have a discussion
- "TOOL" if the user wants to execute a specific action, use a tool, or perform a task that \
matches one of the available tools

Your response format should be: CONVERSATION or TOOL followed by a brief explanation."""


async def route_request(
    user_input: str,
    gateway: InferenceGateway,
    tools: List[ToolSpec],
    connected: bool,
) -> Route:
    """
    Decide whether *user_input* goes to the conversation agent or the tool agent.

    No model call is made when no tool server is connected or no tool is known.  Any transport
    failure degrades to :attr:`Route.CONVERSATION`.
    """
    if not connected or not tools:
        return Route.CONVERSATION

    try:
        answer = await gateway.generate(build_routing_prompt(user_input, tools), ROUTING_OPTIONS)
    except TransportError as exc:
        logger.warning("Routing failed, defaulting to conversation: %s", exc)
        colored_print("Routing error, defaulting to conversation", AnsiColors.RED)
        return Route.CONVERSATION

    decision = answer.strip().upper()
    route = Route.TOOL if decision.startswith("TOOL") else Route.CONVERSATION
    logger.info("Routing decision: %s", route.value)
    return route
