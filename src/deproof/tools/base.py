"""Tool protocol and definition type.

Defines the ``Tool`` protocol that every tool exposed behind DeProof
validation must satisfy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Schema definition for a tool, suitable for listing to clients."""

    name: str
    description: str
    parameters_schema: dict[str, Any]


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool implementations must satisfy."""

    @property
    def name(self) -> str:
        """Unique name for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's parameters (without the proof field)."""
        ...

    async def execute(self, **kwargs: Any) -> str:
        """Execute the tool with already-validated arguments.

        Returns:
            String result of the tool execution.

        Raises:
            Exception: On execution failure.
        """
        ...
