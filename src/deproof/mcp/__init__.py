"""MCP transport integration: dispatcher and server."""
