"""deproof - signed, replay-protected tool calls over MCP."""

__version__ = "0.1.0"
