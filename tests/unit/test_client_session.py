"""Tests for the signing MCP client session."""

from __future__ import annotations

import asyncio
import sys
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from mcp.types import CallToolResult, ListToolsResult, TextContent, Tool

from deproof.client.session import (
    SecureToolClient,
    _rejection,
    result_text,
    server_parameters,
)
from deproof.core.errors import (
    RemoteRejectionError,
    ToolCallTimeoutError,
    ToolResultError,
)
from deproof.mcp.dispatcher import ProofDispatcher
from deproof.mcp.server import handle_call
from deproof.proof.generator import ProofGenerator
from deproof.proof.models import PROOF_FIELD
from deproof.proof.validator import ProofValidator
from deproof.tools.registry import ToolRegistry
from tests.fixtures.proofs import ADDRESS_A

# ── Helpers ──────────────────────────────────────────────────────


def _result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)])


def _fake_session(text: str = "ok") -> MagicMock:
    session = MagicMock()
    session.call_tool = AsyncMock(return_value=_result(text))
    return session


class _EchoTool:
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo the message back"

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {"message": {"type": "string"}}}

    async def execute(self, **kwargs: Any) -> str:
        return f"echo: {kwargs['message']}"


class _InProcessSession:
    """Routes call_tool straight into the server-side handler."""

    def __init__(self, validator: ProofValidator) -> None:
        self.registry = ToolRegistry()
        self.registry.register(_EchoTool())
        self.dispatcher = ProofDispatcher(validator)
        self.sent: list[dict[str, Any]] = []

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> CallToolResult:
        self.sent.append(arguments)
        content = await handle_call(self.registry, self.dispatcher, name, arguments)
        return CallToolResult(content=content)


# ── server_parameters ────────────────────────────────────────────


class TestServerParameters:
    def test_default_runs_bundled_server(self) -> None:
        params = server_parameters()
        assert params.command == sys.executable
        assert params.args == ["-m", "deproof", "serve"]

    def test_python_script(self) -> None:
        params = server_parameters("build/server.py")
        assert params.command == sys.executable
        assert params.args == ["build/server.py"]

    def test_node_script(self) -> None:
        assert server_parameters("build/index.js").command == "node"

    def test_other_script_rejected(self) -> None:
        with pytest.raises(ValueError, match=r"\.js or \.py"):
            server_parameters("server.sh")


# ── Result parsing ───────────────────────────────────────────────


class TestResultParsing:
    def test_result_text_joins_parts(self) -> None:
        result = CallToolResult(
            content=[
                TextContent(type="text", text="a"),
                TextContent(type="text", text="b"),
            ]
        )
        assert result_text(result) == "a\nb"

    def test_rejection_parsed(self) -> None:
        err = _rejection('{"error": {"code": -32003, "message": "nonce"}}')
        assert isinstance(err, RemoteRejectionError)
        assert err.code == -32003
        assert err.message == "nonce"

    @pytest.mark.parametrize(
        "text",
        [
            "No active alerts for CA",
            "[1, 2]",
            '{"error": "plain"}',
            '{"error": {"code": "x"}}',
        ],
    )
    def test_non_rejection(self, text: str) -> None:
        assert _rejection(text) is None


# ── SecureToolClient ─────────────────────────────────────────────


class TestSecureToolClient:
    async def test_requires_connection(self, generator: ProofGenerator) -> None:
        client = SecureToolClient(generator)
        assert not client.connected
        with pytest.raises(RuntimeError, match=r"Not connected"):
            await client.call_tool("echo", {})

    async def test_attaches_proof(self, generator: ProofGenerator) -> None:
        session = _fake_session("done")
        client = SecureToolClient(generator, session=session)

        text = await client.call_tool("get-alerts", {"state": "CA"})

        assert text == "done"
        name, arguments = session.call_tool.call_args.args
        assert name == "get-alerts"
        assert arguments["state"] == "CA"
        proof = arguments[PROOF_FIELD]
        assert proof["signerAddress"] == ADDRESS_A
        assert proof["nonce"] == 0
        assert proof["session"] == client.proof_session

    async def test_session_reused_nonce_increments(
        self, generator: ProofGenerator
    ) -> None:
        session = _fake_session()
        client = SecureToolClient(generator, session=session)

        await client.call_tool("get-alerts", {"state": "CA"})
        await client.call_tool("get-alerts", {"state": "NY"})

        proofs = [c.args[1][PROOF_FIELD] for c in session.call_tool.call_args_list]
        assert [p["nonce"] for p in proofs] == [0, 1]
        assert proofs[0]["session"] == proofs[1]["session"]

    async def test_stray_proof_replaced(self, generator: ProofGenerator) -> None:
        session = _fake_session()
        client = SecureToolClient(generator, session=session)
        await client.call_tool("echo", {"message": "hi", PROOF_FIELD: {"nonce": 99}})
        sent = session.call_tool.call_args.args[1]
        assert sent[PROOF_FIELD]["nonce"] == 0

    async def test_rejection_raised(self, generator: ProofGenerator) -> None:
        session = _fake_session('{"error": {"code": -32005, "message": "tampered"}}')
        client = SecureToolClient(generator, session=session)
        with pytest.raises(RemoteRejectionError) as exc_info:
            await client.call_tool("echo", {"message": "hi"})
        assert exc_info.value.code == -32005

    async def test_call_timeout(self, generator: ProofGenerator) -> None:
        async def _hang(*args: Any) -> CallToolResult:
            await asyncio.sleep(10)
            return _result("late")

        session = MagicMock()
        session.call_tool = AsyncMock(side_effect=_hang)
        client = SecureToolClient(generator, session=session, call_timeout=0.05)

        with pytest.raises(ToolCallTimeoutError, match=r"timed out"):
            await client.call_tool("echo", {"message": "hi"})

    async def test_list_tools(self, generator: ProofGenerator) -> None:
        session = MagicMock()
        session.list_tools = AsyncMock(
            return_value=ListToolsResult(
                tools=[
                    Tool(
                        name="echo",
                        description="Echo",
                        inputSchema={"type": "object"},
                    )
                ]
            )
        )
        client = SecureToolClient(generator, session=session)
        definitions = await client.list_tools()
        assert [d.name for d in definitions] == ["echo"]
        assert definitions[0].parameters_schema == {"type": "object"}

    async def test_error_result_raises(self, generator: ProofGenerator) -> None:
        session = MagicMock()
        session.call_tool = AsyncMock(
            return_value=CallToolResult(
                content=[TextContent(type="text", text="Input validation error")],
                isError=True,
            )
        )
        client = SecureToolClient(generator, session=session)
        with pytest.raises(ToolResultError, match=r"Input validation error"):
            await client.call_tool("echo", {"message": "hi"})

    async def test_error_result_with_rejection_payload(
        self, generator: ProofGenerator
    ) -> None:
        session = MagicMock()
        session.call_tool = AsyncMock(
            return_value=CallToolResult(
                content=[
                    TextContent(
                        type="text",
                        text='{"error": {"code": -32602, "message": "missing"}}',
                    )
                ],
                isError=True,
            )
        )
        client = SecureToolClient(generator, session=session)
        with pytest.raises(RemoteRejectionError) as exc_info:
            await client.call_tool("echo", {"message": "hi"})
        assert exc_info.value.code == -32602

    async def test_aclose_without_stack(self, generator: ProofGenerator) -> None:
        async with SecureToolClient(generator, session=_fake_session()) as client:
            assert client.connected
        assert not client.connected


# ── Client and server together ───────────────────────────────────


class TestEndToEnd:
    async def test_signed_calls_accepted(
        self, generator: ProofGenerator, validator: ProofValidator
    ) -> None:
        session = _InProcessSession(validator)
        client = SecureToolClient(generator, session=session)  # type: ignore[arg-type]

        assert await client.call_tool("echo", {"message": "one"}) == "echo: one"
        assert await client.call_tool("echo", {"message": "two"}) == "echo: two"

    async def test_replayed_call_rejected(
        self, generator: ProofGenerator, validator: ProofValidator
    ) -> None:
        session = _InProcessSession(validator)
        client = SecureToolClient(generator, session=session)  # type: ignore[arg-type]
        await client.call_tool("echo", {"message": "one"})

        content = await handle_call(
            session.registry, session.dispatcher, "echo", session.sent[0]
        )
        assert '"code": -32003' in content[0].text

    async def test_unknown_tool_text(
        self, generator: ProofGenerator, validator: ProofValidator
    ) -> None:
        session = _InProcessSession(validator)
        client = SecureToolClient(generator, session=session)  # type: ignore[arg-type]
        assert await client.call_tool("nope", {}) == "Unknown tool: nope"


# ── Session recovery ─────────────────────────────────────────────


class TestSessionRecovery:
    """Failures that leave the server nonce unconsumed start a new session."""

    @staticmethod
    def _sent_proofs(session: MagicMock) -> list[dict[str, Any]]:
        return [c.args[1][PROOF_FIELD] for c in session.call_tool.call_args_list]

    @pytest.mark.parametrize("code", [-32001, -32003, -32005, -32000, -32099])
    async def test_unconsumed_rejection_drops_session(
        self, generator: ProofGenerator, code: int
    ) -> None:
        rejection = f'{{"error": {{"code": {code}, "message": "no"}}}}'
        session = MagicMock()
        session.call_tool = AsyncMock(side_effect=[_result(rejection), _result("ok")])
        client = SecureToolClient(generator, session=session)

        with pytest.raises(RemoteRejectionError):
            await client.call_tool("echo", {"message": "one"})
        assert client.proof_session is None
        await client.call_tool("echo", {"message": "two"})

        first, second = self._sent_proofs(session)
        assert second["session"] != first["session"]
        assert second["nonce"] == 0
        assert client.proof_session == second["session"]

    @pytest.mark.parametrize("code", [-32008, -32009])
    async def test_execution_failure_keeps_session(
        self, generator: ProofGenerator, code: int
    ) -> None:
        rejection = f'{{"error": {{"code": {code}, "message": "tool broke"}}}}'
        session = MagicMock()
        session.call_tool = AsyncMock(side_effect=[_result(rejection), _result("ok")])
        client = SecureToolClient(generator, session=session)

        with pytest.raises(RemoteRejectionError):
            await client.call_tool("echo", {"message": "one"})
        await client.call_tool("echo", {"message": "two"})

        first, second = self._sent_proofs(session)
        assert second["session"] == first["session"]
        assert second["nonce"] == 1

    async def test_timeout_drops_session(self, generator: ProofGenerator) -> None:
        async def _hang(*args: Any) -> CallToolResult:
            await asyncio.sleep(10)
            return _result("late")

        session = MagicMock()
        session.call_tool = AsyncMock(side_effect=_hang)
        client = SecureToolClient(generator, session=session, call_timeout=0.05)

        with pytest.raises(ToolCallTimeoutError):
            await client.call_tool("echo", {"message": "one"})
        assert client.proof_session is None

    async def test_error_result_drops_session(self, generator: ProofGenerator) -> None:
        session = MagicMock()
        session.call_tool = AsyncMock(
            return_value=CallToolResult(
                content=[TextContent(type="text", text="boom")], isError=True
            )
        )
        client = SecureToolClient(generator, session=session)
        with pytest.raises(ToolResultError):
            await client.call_tool("echo", {"message": "one"})
        assert client.proof_session is None

    async def test_success_keeps_session(self, generator: ProofGenerator) -> None:
        client = SecureToolClient(generator, session=_fake_session())
        await client.call_tool("echo", {"message": "one"})
        session_id = client.proof_session
        await client.call_tool("echo", {"message": "two"})
        assert client.proof_session == session_id
