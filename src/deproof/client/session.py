"""MCP client session that signs every tool call with a DeProof."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from contextlib import AsyncExitStack
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from deproof.core.errors import (
    ConnectionTimeoutError,
    ErrorCode,
    RemoteRejectionError,
    ToolCallTimeoutError,
    ToolResultError,
)
from deproof.proof.models import attach_proof, strip_proof
from deproof.tools.base import ToolDefinition

if TYPE_CHECKING:
    from mcp.types import CallToolResult

    from deproof.proof.generator import ProofGenerator

logger = logging.getLogger(__name__)

# Rejections raised after the server committed the nonce
_NONCE_CONSUMED = frozenset({ErrorCode.EXECUTION_FAILED, ErrorCode.EXECUTION_TIMEOUT})


def server_parameters(script: str | Path | None = None) -> StdioServerParameters:
    """Pick the interpreter for a server script from its suffix.

    Without a script, the bundled weather server (``deproof serve``) is run.

    Raises:
        ValueError: If the script is neither ``.py`` nor ``.js``.
    """
    if script is None:
        return StdioServerParameters(
            command=sys.executable,
            args=["-m", "deproof", "serve"],
            env=dict(os.environ),
        )
    path = Path(script)
    if path.suffix == ".py":
        command = sys.executable
    elif path.suffix == ".js":
        command = "node"
    else:
        msg = "Server script must be a .js or .py file"
        raise ValueError(msg)
    return StdioServerParameters(command=command, args=[str(path)])


def result_text(result: CallToolResult) -> str:
    """Join the text parts of a tool result."""
    return "\n".join(
        part.text for part in result.content if getattr(part, "type", None) == "text"
    )


def _rejection(text: str) -> RemoteRejectionError | None:
    """Return the rejection encoded in a tool result, if it is one."""
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("code"), int):
        return RemoteRejectionError(error["code"], str(error.get("message", "")))
    return None


class SecureToolClient:
    """Calls MCP tools with a fresh DeProof attached to each call.

    The session identifier is minted by the first generated proof and reused
    for every later call, so the server sees one increasing nonce sequence.

    Usage::

        async with SecureToolClient(ProofGenerator(key)) as client:
            await client.connect("build/server.py")
            text = await client.call_tool("get-alerts", {"state": "CA"})
    """

    def __init__(
        self,
        generator: ProofGenerator,
        *,
        connect_timeout: float = 1.0,
        call_timeout: float = 3.0,
        session: ClientSession | None = None,
    ) -> None:
        self._generator = generator
        self.connect_timeout = connect_timeout
        self.call_timeout = call_timeout
        self._session = session
        self._stack: AsyncExitStack | None = None
        self.proof_session: str | None = None

    async def __aenter__(self) -> SecureToolClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self, script: str | Path | None = None) -> None:
        """Start the server script over stdio and initialize the session.

        Raises:
            ValueError: On an unsupported script type.
            ConnectionTimeoutError: If initialization exceeds the deadline.
        """
        params = server_parameters(script)
        logger.info("Connecting to MCP server: %s %s", params.command, params.args)

        stack = AsyncExitStack()
        try:
            read, write = await stack.enter_async_context(stdio_client(params))
            session = await stack.enter_async_context(ClientSession(read, write))
            async with asyncio.timeout(self.connect_timeout):
                await session.initialize()
        except TimeoutError as e:
            await stack.aclose()
            msg = f"Connection to MCP server timeout ({self.connect_timeout:g} seconds)"
            raise ConnectionTimeoutError(msg) from e
        except BaseException:
            await stack.aclose()
            raise

        self._stack = stack
        self._session = session
        logger.info("Connected to MCP server")

    def _require_session(self) -> ClientSession:
        if self._session is None:
            msg = "Not connected to an MCP server"
            raise RuntimeError(msg)
        return self._session

    async def list_tools(self) -> list[ToolDefinition]:
        """Return the tools advertised by the server."""
        result = await self._require_session().list_tools()
        return [
            ToolDefinition(
                name=tool.name,
                description=tool.description or "",
                parameters_schema=dict(tool.inputSchema),
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        """Sign and send one tool call.

        Any ``_deProof`` already present in ``arguments`` is discarded.
        A failure that leaves the server-side nonce unconsumed ends the proof
        session; the next call starts a fresh one at nonce 0.

        Returns:
            The text content of the tool result.

        Raises:
            ToolCallTimeoutError: If no response arrives before the deadline.
            RemoteRejectionError: If the server refused the call.
            ToolResultError: If the server flagged the result as an error
                without a rejection code.
        """
        session = self._require_session()
        params = strip_proof(arguments)
        proof = self._generator.generate(params, self.proof_session)
        if self.proof_session is None:
            self.proof_session = proof.session
            logger.info("Created new session: %s...", proof.session[:8])

        logger.info("Calling tool %s with nonce %d", name, proof.nonce)
        try:
            async with asyncio.timeout(self.call_timeout):
                result = await session.call_tool(name, attach_proof(params, proof))
        except TimeoutError as e:
            self._abandon_session("call timed out")
            msg = f"Tool call {name} timed out after {self.call_timeout:g} seconds"
            raise ToolCallTimeoutError(msg) from e

        text = result_text(result)
        rejection = _rejection(text)
        if rejection is not None:
            logger.warning("Tool %s rejected: %s", name, rejection)
            if rejection.code not in _NONCE_CONSUMED:
                self._abandon_session(f"rejection {rejection.code}")
            raise rejection
        if result.isError:
            logger.warning("Tool %s returned an error: %s", name, text)
            self._abandon_session("error result")
            raise ToolResultError(text or f"Tool {name} failed")
        return text

    def _abandon_session(self, reason: str) -> None:
        if self.proof_session is not None:
            logger.info(
                "Dropping session %s... (%s)", self.proof_session[:8], reason
            )
        self.proof_session = None

    async def aclose(self) -> None:
        if self._stack is not None:
            await self._stack.aclose()
            self._stack = None
        self._session = None
