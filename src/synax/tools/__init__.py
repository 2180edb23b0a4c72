"""
Tool directory for Synax.

The directory maps every tool name advertised by a connected tool server to its
:class:`~synax.core.schema.ToolSpec` and to the transport that serves it.  It is filled while the
tool servers connect and only read during a turn.
"""

import logging
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Protocol,
    Tuple,
)

from synax.core.schema import (
    ToolResponse,
    ToolSpec,
)

logger = logging.getLogger(__name__)


class ToolTransport(Protocol):
    """Anything able to run a named tool (an MCP connection in production)."""

    name: str

    async def call_tool(self, tool_name: str, arguments: Mapping[str, Any]) -> ToolResponse:
        ...


class ToolDirectory:
    """
    Registry of tools and their owning transports.

    On a name collision the last registration wins; the previous owner is logged.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[ToolSpec, ToolTransport]] = {}
        self.default_owner: ToolTransport | None = None

    def register(self, tool: ToolSpec, owner: ToolTransport) -> None:
        """
        Register *tool* as served by *owner*.

        The most recently registered owner also becomes the default transport used for names
        with no specific owner.
        """
        previous = self._entries.get(tool.name)
        if previous is not None and previous[1] is not owner:
            logger.warning(
                "Tool '%s' from '%s' replaces the one from '%s'",
                tool.name,
                owner.name,
                previous[1].name,
            )
        self._entries[tool.name] = (tool, owner)
        self.default_owner = owner

    def register_many(self, tools: List[ToolSpec], owner: ToolTransport) -> None:
        for tool in tools:
            self.register(tool, owner)

    def tools(self) -> List[ToolSpec]:
        """Snapshot of the registered tools, in registration order."""
        return [spec for spec, _ in self._entries.values()]

    def names(self) -> List[str]:
        return list(self._entries)

    def get(self, name: str) -> ToolSpec | None:
        entry = self._entries.get(name)
        return entry[0] if entry else None

    def owner_for(self, name: str) -> ToolTransport | None:
        """Transport serving *name*, falling back to the default transport."""
        entry = self._entries.get(name)
        if entry is not None:
            return entry[1]
        return self.default_owner

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def format_tool_catalogue(tools: List[ToolSpec], header: str = "Parameters required:") -> str:
    """Render tools as ``- name: description`` lines with indented parameter hints."""
    lines: List[str] = []
    for tool in tools:
        lines.append(f"- {tool.name}: {tool.description or 'No description'}")
        if tool.parameters:
            lines.append(f"  {header}")
            for param_name in tool.parameters:
                lines.append(f"    - {param_name}: {tool.hint_for(param_name)}")
    return "\n".join(lines)
