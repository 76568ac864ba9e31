"""MCP server exposing weather tools behind DeProof validation."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from deproof.mcp.dispatcher import ProofDispatcher
from deproof.proof.models import PROOF_FIELD
from deproof.proof.nonce_store import InMemoryNonceStore
from deproof.proof.validator import ProofValidator
from deproof.tools.registry import ToolRegistry
from deproof.tools.weather import default_tools

if TYPE_CHECKING:
    from deproof.config.schema import DeProofConfig
    from deproof.proof.nonce_store import NonceStore

logger = logging.getLogger(__name__)

PROOF_SCHEMA: dict[str, Any] = {
    "type": "object",
    "description": "Security validation data",
    "properties": {
        "signerAddress": {"type": "string"},
        "nonce": {"type": "integer", "minimum": 0},
        "session": {"type": "string"},
        "timestamp": {"type": "string"},
        "digest": {"type": "string"},
        "signature": {"type": "string"},
    },
    "required": [
        "signerAddress",
        "nonce",
        "session",
        "timestamp",
        "digest",
        "signature",
    ],
}


def with_proof_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a tool schema that also accepts the proof field."""
    extended = dict(schema)
    properties = dict(extended.get("properties") or {})
    properties[PROOF_FIELD] = PROOF_SCHEMA
    extended["properties"] = properties
    return extended


def _get_tools(registry: ToolRegistry) -> list[Tool]:
    """Define the MCP tools."""
    return [
        Tool(
            name=definition.name,
            description=definition.description,
            inputSchema=with_proof_schema(definition.parameters_schema),
        )
        for definition in registry.list_definitions()
    ]


async def handle_call(
    registry: ToolRegistry,
    dispatcher: ProofDispatcher,
    name: str,
    arguments: dict[str, Any] | None,
) -> list[TextContent]:
    """Route one tool call through proof validation."""
    logger.info("Tool call received: %s", name)
    if name not in registry:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]

    tool = registry.get(name)

    async def _run(params: dict[str, Any]) -> str:
        return await tool.execute(**params)

    result = await dispatcher.dispatch(dict(arguments or {}), _run)
    return [TextContent(type="text", text=result.content)]


def create_server(
    config: DeProofConfig,
    *,
    store: NonceStore | None = None,
    registry: ToolRegistry | None = None,
) -> Server:
    """Build the MCP server with its validator, dispatcher and tools."""
    if registry is None:
        registry = ToolRegistry()
        for tool in default_tools(config.weather):
            registry.register(tool)

    validator = ProofValidator(
        store or InMemoryNonceStore(),
        tolerance=timedelta(seconds=config.validator.tolerance_seconds),
    )
    dispatcher = ProofDispatcher(
        validator,
        validation_timeout=config.validator.validation_timeout,
        execution_timeout=config.server.tool_execution_timeout,
    )

    server = Server(config.server.name, version=config.server.version)

    @server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
    async def list_tools() -> list[Tool]:
        """List available MCP tools."""
        return _get_tools(registry)

    # Malformed proofs must reach the validator to get their rejection code
    @server.call_tool(validate_input=False)  # type: ignore[untyped-decorator]
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:  # type: ignore[type-arg]
        """Handle tool calls."""
        return await handle_call(registry, dispatcher, name, arguments)

    return server


async def run_server(config: DeProofConfig) -> None:
    """Start the MCP server on stdio."""
    server = create_server(config)
    logger.info("%s MCP server running on stdio", config.server.name)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
