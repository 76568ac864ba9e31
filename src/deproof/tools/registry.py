"""Tool registry: manages the tools a server exposes.

Provides registration, lookup and listing of tools that implement the
:class:`Tool` protocol. Execution goes through
:class:`deproof.mcp.dispatcher.ProofDispatcher`, never directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from deproof.tools.base import ToolDefinition

if TYPE_CHECKING:
    from deproof.tools.base import Tool


class ToolRegistry:
    """Registry for managing available tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            msg = f"Tool already registered: {tool.name}"
            raise ValueError(msg)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            KeyError: If the tool is not found.
        """
        if name not in self._tools:
            msg = f"Tool not found: {name}"
            raise KeyError(msg)
        return self._tools[name]

    def list_definitions(self) -> list[ToolDefinition]:
        """Return tool definitions for all registered tools."""
        return [
            ToolDefinition(
                name=t.name,
                description=t.description,
                parameters_schema=t.parameters_schema,
            )
            for t in self._tools.values()
        ]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
