"""
Synax entry point.

This file handles startup concerns (arg-parsing, settings overrides, logging, backend process)
and wires the agents into the interactive shell.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from types import FrameType

from synax.agent.agent_loop import DispatchLoop
from synax.agent.control import ControlAgent
from synax.agent.conversation import ConversationAgent
from synax.agent.planner import PlanningAgent
from synax.agent.tool_executor import ToolAgent
from synax.agent.tool_selector import ToolSelectorAgent
from synax.client.cli import SynaxShell
from synax.client.confirm import confirm_execution
from synax.common import (
    AnsiColors,
    LoadingAnimation,
    colored_print,
)
from synax.config import (
    ConfigError,
    load_mcp_config,
    settings,
)
from synax.llm.gateway import InferenceGateway
from synax.mcp.hub import McpHub
from synax.memory.transcript import Transcript
from synax.services.ollama_service import OllamaService
from synax.tools import ToolDirectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str, log_dir: str) -> None:
    numeric = getattr(logging, level.upper(), logging.WARNING)
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric)
    logging.basicConfig(
        level=min(numeric, logging.INFO),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        handlers=[logging.FileHandler(Path(log_dir) / "synax.log", encoding="utf-8"), console],
    )
    # Keep transport chatter out of the shell
    for noisy in ("httpx", "httpcore", "mcp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _raise_interrupt(signum: int, frame: FrameType | None) -> None:
    raise KeyboardInterrupt(f"signal {signum}")


def build_shell(hub: McpHub, directory: ToolDirectory, transcript: Transcript) -> SynaxShell:
    """Wire gateway, agents and dispatch loop from the current settings."""
    gateway = InferenceGateway(settings.OLLAMA_URL, settings.MODEL, timeout=settings.TIMEOUT)
    spinner = LoadingAnimation()

    def confirm(command: str) -> bool:
        spinner.stop()
        return confirm_execution(command)

    loop = DispatchLoop(
        gateway=gateway,
        directory=directory,
        transcript=transcript,
        conversation=ConversationAgent(gateway, transcript),
        tool_agent=ToolAgent(
            gateway, directory, transcript, confirm, shell_tool_name=settings.SHELL_TOOL_NAME
        ),
        selector=ToolSelectorAgent(gateway, timeout=settings.SELECTOR_TIMEOUT),
        control=ControlAgent(gateway),
        planner=PlanningAgent(gateway, settings.SHELL_TOOL_NAME) if settings.ENABLE_PLANNER else None,
        is_connected=lambda: hub.connected,
        max_attempts=settings.MAX_ATTEMPTS,
        history_limit=settings.HISTORY_MAX_ENTRIES or None,
        spinner=spinner,
    )
    return SynaxShell(loop, gateway, hub, transcript)


async def _run() -> None:
    directory = ToolDirectory()
    transcript = Transcript()
    hub = McpHub(directory)
    try:
        try:
            servers = load_mcp_config()
        except ConfigError as exc:
            logger.error("%s", exc)
            colored_print(str(exc), AnsiColors.RED)
            servers = {}
        await hub.connect_all(servers)

        shell = build_shell(hub, directory, transcript)
        shell.print_banner()
        await shell.run()
    finally:
        await hub.close()


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the Synax shell.

    Parses arguments, starts the inference backend if needed, connects the tool servers and runs
    the interactive loop.  The backend is stopped and every tool server closed on exit.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(description="Local LLM agent shell with MCP tools")
    parser.add_argument("--url", default=settings.OLLAMA_URL, help="Inference backend URL")
    parser.add_argument("--model", default=settings.MODEL, help="Model name (default: %(default)s)")
    parser.add_argument(
        "--config", default=settings.MCP_CONFIG_PATH, help="MCP servers config file"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Console logging level (default from env: %(default)s)",
    )
    parser.add_argument(
        "--no-ollama", action="store_true", help="Do not start or stop the local Ollama service"
    )
    parser.add_argument(
        "--plan", action="store_true", help="Split tool requests into planned steps"
    )
    args = parser.parse_args(argv)

    # Override settings with command-line arguments
    settings.OLLAMA_URL = args.url
    settings.MODEL = args.model
    settings.MCP_CONFIG_PATH = args.config
    settings.LOG_LEVEL = args.log_level
    settings.MANAGE_OLLAMA = settings.MANAGE_OLLAMA and not args.no_ollama
    settings.ENABLE_PLANNER = settings.ENABLE_PLANNER or args.plan

    _init_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    logger.info("Starting Synax (model=%s, url=%s)", settings.MODEL, settings.OLLAMA_URL)
    logger.debug("Settings: %s", settings.model_dump())

    service = OllamaService(log_dir=settings.LOG_DIR) if settings.MANAGE_OLLAMA else None
    if service is not None:
        colored_print("Starting Ollama service...", AnsiColors.BLUE)
        try:
            service.start()
        except OSError as exc:
            logger.error("Failed to start Ollama service: %s", exc)
            colored_print(f"Failed to start Ollama service: {exc}", AnsiColors.RED)
            sys.exit(1)

    signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        colored_print("\nShutting down...", AnsiColors.BLUE)
    finally:
        if service is not None:
            service.stop()


if __name__ == "__main__":
    main()
