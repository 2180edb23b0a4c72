"""
Connections to Model Context Protocol tool servers.

Each configured server is spawned over stdio with the official ``mcp`` SDK.  After the
``initialize`` handshake its tools are listed and registered in the shared
:class:`~synax.tools.ToolDirectory`.  A server that fails to start is logged and marked
disconnected; it never aborts startup.
"""

import logging
import os
from contextlib import AsyncExitStack
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

from mcp import (
    ClientSession,
    StdioServerParameters,
)
from mcp.client.stdio import stdio_client

from synax.common import (
    AnsiColors,
    colored_print,
)
from synax.config import McpServerSettings
from synax.core.schema import (
    ContentItem,
    ToolResponse,
    ToolSpec,
)
from synax.tools import ToolDirectory

logger = logging.getLogger(__name__)


class McpConnection:
    """One live stdio session with a tool server."""

    def __init__(self, name: str, server: McpServerSettings) -> None:
        self.name = name
        self.server = server
        self._stack: AsyncExitStack | None = None
        self._session: ClientSession | None = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> None:
        """Spawn the server and run the handshake."""
        params = StdioServerParameters(
            command=self.server.command,
            args=list(self.server.args),
            env={**os.environ, **self.server.env},
        )
        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read, write))
            await session.initialize()
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        self._session = session
        logger.info("Connected to MCP server '%s'", self.name)

    def _require_session(self) -> ClientSession:
        if self._session is None:
            raise RuntimeError(f"MCP server '{self.name}' is not connected")
        return self._session

    async def list_tools(self) -> List[ToolSpec]:
        result = await self._require_session().list_tools()
        return [
            ToolSpec.from_input_schema(tool.name, tool.description, tool.inputSchema)
            for tool in result.tools
        ]

    async def call_tool(self, tool_name: str, arguments: Mapping[str, Any]) -> ToolResponse:
        result = await self._require_session().call_tool(tool_name, arguments=dict(arguments))
        items: List[ContentItem] = []
        for content in result.content:
            content_type = getattr(content, "type", "text")
            items.append(ContentItem(type=content_type, text=getattr(content, "text", None)))
        return ToolResponse(content=items, is_error=bool(result.isError))

    async def close(self) -> None:
        if self._stack is None:
            return
        stack, self._stack, self._session = self._stack, None, None
        await stack.aclose()
        logger.info("Closed MCP server '%s'", self.name)


class McpHub:
    """All configured tool servers, their status, and the tools they registered."""

    def __init__(self, directory: ToolDirectory) -> None:
        self.directory = directory
        self.connections: Dict[str, McpConnection] = {}
        self.statuses: Dict[str, bool] = {}

    @property
    def connected(self) -> bool:
        return any(self.statuses.values())

    async def connect_all(self, servers: Mapping[str, McpServerSettings]) -> None:
        """Connect every server with a command, one attempt each."""
        for name, server in servers.items():
            if not server.command:
                logger.warning("Skipping MCP server '%s': no command", name)
                continue
            self.statuses[name] = False
            await self.connect(name, server)

    async def connect(self, name: str, server: McpServerSettings) -> bool:
        connection = McpConnection(name, server)
        try:
            await connection.connect()
            tools = await connection.list_tools()
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Could not connect to MCP server '%s': %s", name, exc)
            colored_print(f"Could not connect to MCP server: {name}.", AnsiColors.RED)
            await self._safe_close(connection)
            self.statuses[name] = False
            return False

        self.connections[name] = connection
        self.statuses[name] = True
        self.directory.register_many(tools, connection)
        logger.info("MCP server '%s' registered %d tool(s)", name, len(tools))
        return True

    async def live_tools(self) -> Dict[str, List[str] | None]:
        """Ask every connected server for its current tool names; None marks a dead server."""
        listing: Dict[str, List[str] | None] = {}
        for name, connection in self.connections.items():
            try:
                listing[name] = [tool.name for tool in await connection.list_tools()]
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Listing tools of '%s' failed: %s", name, exc)
                self.statuses[name] = False
                listing[name] = None
        return listing

    async def close(self) -> None:
        for connection in list(self.connections.values()):
            await self._safe_close(connection)
        self.connections.clear()

    @staticmethod
    async def _safe_close(connection: McpConnection) -> None:
        try:
            await connection.close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error closing MCP server '%s': %s", connection.name, exc)
