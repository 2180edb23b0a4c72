"""Interactive shell for Synax."""

from __future__ import annotations

import logging
from typing import (
    Awaitable,
    Callable,
    Dict,
)

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.history import InMemoryHistory

from synax.agent.agent_loop import DispatchLoop
from synax.common import (
    AnsiColors,
    colored,
    colored_print,
)
from synax.llm.gateway import InferenceGateway
from synax.mcp.hub import McpHub
from synax.memory.transcript import Transcript

logger = logging.getLogger(__name__)

HELP_TEXT = """\
  exit/quit - Exit the application
  history   - Show conversation history
  clear     - Clear conversation history
  help      - Display this help
  status    - Check connection to the model
  mcp       - Show MCP servers status
  tools     - List available tools per MCP server"""


class SynaxShell:
    """
    Read-eval loop over :class:`DispatchLoop`.

    Bare commands are handled here; any other non-empty line is a user turn.
    """

    def __init__(
        self,
        loop: DispatchLoop,
        gateway: InferenceGateway,
        hub: McpHub,
        transcript: Transcript,
    ) -> None:
        self.loop = loop
        self.gateway = gateway
        self.hub = hub
        self.transcript = transcript
        self._commands: Dict[str, Callable[[], Awaitable[None]]] = {
            "history": self.show_history,
            "clear": self.clear_history,
            "help": self.show_help,
            "status": self.show_status,
            "mcp": self.show_servers,
            "tools": self.show_tools,
        }

    def print_banner(self) -> None:
        colored_print(f" Connected to: {self.gateway.base_url}", AnsiColors.GRAY)
        colored_print(f" Model: {colored(self.gateway.model, AnsiColors.MAGENTA)}", AnsiColors.GRAY)
        colored_print(" Type exit or quit to quit, clear to clear history", AnsiColors.GRAY)
        colored_print(" Type help to see available commands\n", AnsiColors.GRAY)
        names = "\n".join(f" . {name}" for name in self.hub.statuses) or "none"
        colored_print(f" MCP servers: \n{names}\n", AnsiColors.CYAN)

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #
    async def show_history(self) -> None:
        colored_print(self.transcript.render() or "(empty)", AnsiColors.GRAY)

    async def clear_history(self) -> None:
        self.transcript.clear()
        colored_print("History cleared.", AnsiColors.GRAY)

    async def show_help(self) -> None:
        colored_print("\nAvailable commands:", AnsiColors.CYAN)
        colored_print(HELP_TEXT, AnsiColors.GRAY)

    async def show_status(self) -> None:
        colored_print("Checking connection to model...", AnsiColors.BLUE)
        if await self.gateway.ping():
            colored_print(f"✓ Connected to Ollama with model {self.gateway.model}", AnsiColors.GREEN)
        else:
            colored_print("✗ Could not connect to Ollama. Is it running?", AnsiColors.RED)

    async def show_servers(self) -> None:
        colored_print("MCP servers status:", AnsiColors.BLUE)
        if not self.hub.statuses:
            colored_print("  No MCP servers configured.", AnsiColors.GRAY)
            return
        for name, ok in self.hub.statuses.items():
            if ok:
                colored_print(f"  ● {name} - connected", AnsiColors.GREEN)
            else:
                colored_print(f"  ○ {name} - disconnected", AnsiColors.RED)

    async def show_tools(self) -> None:
        colored_print("MCP tools by server:", AnsiColors.BLUE)
        listing = await self.hub.live_tools()
        if not listing:
            colored_print("  No MCP servers connected.", AnsiColors.GRAY)
            return
        for name, tool_names in listing.items():
            if tool_names is None:
                colored_print(f"\n ○ {name} - disconnected", AnsiColors.RED)
                continue
            plural = "s" if len(tool_names) != 1 else ""
            colored_print(f"\n ● {name} ({len(tool_names)} tool{plural})", AnsiColors.GREEN)
            for tool_name in tool_names:
                colored_print(f"  - {tool_name}", AnsiColors.MAGENTA)

    # ------------------------------------------------------------------ #
    # Loop
    # ------------------------------------------------------------------ #
    async def handle_line(self, line: str) -> bool:
        """Process one input line; returns False when the shell should exit."""
        line = line.strip()
        if not line:
            return True
        if line.lower() in {"exit", "quit"}:
            return False

        command = self._commands.get(line.lower())
        if command is not None:
            await command()
            print()
            return True

        await self.loop.handle_turn(line)
        return True

    async def run(self) -> None:
        """Prompt until ``exit``/``quit``, EOF or Ctrl-C."""
        session: PromptSession[str] = PromptSession(history=InMemoryHistory())
        prompt = ANSI(colored(" > ", AnsiColors.MAGENTA))
        colored_print(f" {self.gateway.model} CLI started!\n", AnsiColors.MAGENTA)

        while True:
            try:
                line = await session.prompt_async(prompt)
            except (EOFError, KeyboardInterrupt):
                break
            if not await self.handle_line(line):
                break
        colored_print("\nGoodbye! 👋", AnsiColors.YELLOW)
