"""Streams conversational answers for requests that need no tool."""

import logging
import sys
from typing import (
    List,
    TextIO,
)

from synax.common import (
    AnsiColors,
    colored,
    colored_print,
)
from synax.llm.gateway import (
    CONVERSATION_OPTIONS,
    InferenceGateway,
    TransportError,
)
from synax.memory.transcript import Transcript

logger = logging.getLogger(__name__)


class ConversationAgent:
    """Writes the model's reply as it streams and records it in the transcript."""

    def __init__(
        self, gateway: InferenceGateway, transcript: Transcript, out: TextIO | None = None
    ) -> None:
        self.gateway = gateway
        self.transcript = transcript
        self.out = out or sys.stdout

    @staticmethod
    def build_prompt(prompt: str) -> str:
        return (
            "ALWAYS answer in the language of the user input.\n"
            "DO NOT speak other languages than the user language except if the user ask for "
            "translation.\n"
            f"Here is the ask of the user: {prompt}\n"
        )

    async def handle_conversation(self, prompt: str) -> str:
        """Stream the answer to *prompt*; returns the accumulated text."""
        parts: List[str] = []
        try:
            async for fragment in self.gateway.stream(self.build_prompt(prompt), CONVERSATION_OPTIONS):
                self.out.write(colored(fragment, AnsiColors.BLUE))
                self.out.flush()
                parts.append(fragment)
        except TransportError as exc:
            logger.error("Conversation error: %s", exc)
            colored_print(f"\nConversation Error: {exc}", AnsiColors.RED)
            self.transcript.add_response(f"Conversation Error: {exc}")

        self.out.write("\n\n")
        reply = "".join(parts)
        if reply.strip():
            self.transcript.add_response(reply)
        return reply
