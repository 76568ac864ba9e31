"""Client side: signed MCP tool calls and the LLM chat loop."""
