"""Tools exposed behind DeProof validation."""

from deproof.tools.base import Tool, ToolDefinition
from deproof.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolDefinition", "ToolRegistry"]
