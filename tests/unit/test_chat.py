"""Tests for the LLM chat agent."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai

from deproof.client.chat import ChatAgent, to_openai_tool
from deproof.core.errors import RemoteRejectionError
from deproof.mcp.server import with_proof_schema
from deproof.proof.models import PROOF_FIELD
from deproof.tools.base import ToolDefinition

# ── Helpers ──────────────────────────────────────────────────────

ALERTS = ToolDefinition(
    name="get-alerts",
    description="Get weather alerts for a state",
    parameters_schema=with_proof_schema(
        {
            "type": "object",
            "properties": {"state": {"type": "string"}},
            "required": ["state"],
        }
    ),
)


class _Message:
    def __init__(
        self, content: str | None = None, tool_calls: list[Any] | None = None
    ) -> None:
        self.role = "assistant"
        self.content = content
        self.tool_calls = tool_calls

    def model_dump(self, **kwargs: Any) -> dict[str, Any]:
        dumped: dict[str, Any] = {"role": self.role}
        if self.content is not None:
            dumped["content"] = self.content
        if self.tool_calls:
            dumped["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.function.name,
                        "arguments": tc.function.arguments,
                    },
                }
                for tc in self.tool_calls
            ]
        return dumped


def _response(message: _Message | None) -> SimpleNamespace:
    choices = [] if message is None else [SimpleNamespace(message=message)]
    return SimpleNamespace(choices=choices)


def _tool_call(name: str, arguments: str, call_id: str = "call_1") -> SimpleNamespace:
    return SimpleNamespace(
        id=call_id, function=SimpleNamespace(name=name, arguments=arguments)
    )


def _agent(*responses: Any) -> tuple[ChatAgent, MagicMock, MagicMock]:
    client = MagicMock()
    client.list_tools = AsyncMock(return_value=[ALERTS])
    client.call_tool = AsyncMock(return_value="No active alerts for CA")
    llm = MagicMock()
    llm.chat.completions.create = AsyncMock(side_effect=list(responses))
    return ChatAgent(client, llm, "gpt-4o-mini"), client, llm


# ── Tool conversion ──────────────────────────────────────────────


class TestToOpenAITool:
    def test_hides_proof_field(self) -> None:
        spec = to_openai_tool(ALERTS)
        assert spec["type"] == "function"
        assert spec["function"]["name"] == "get-alerts"
        params = spec["function"]["parameters"]
        assert PROOF_FIELD not in params["properties"]
        assert params["properties"]["state"] == {"type": "string"}
        assert params["required"] == ["state"]

    def test_definition_untouched(self) -> None:
        to_openai_tool(ALERTS)
        assert PROOF_FIELD in ALERTS.parameters_schema["properties"]

    def test_schema_without_properties(self) -> None:
        spec = to_openai_tool(
            ToolDefinition(name="ping", description="", parameters_schema={})
        )
        assert spec["function"]["parameters"] == {"properties": {}}


# ── Queries ──────────────────────────────────────────────────────


class TestProcessQuery:
    async def test_refresh_tools(self) -> None:
        agent, _, _ = _agent()
        assert await agent.refresh_tools() == ["get-alerts"]
        assert agent.tools[0]["function"]["name"] == "get-alerts"

    async def test_plain_answer(self) -> None:
        agent, client, llm = _agent(_response(_Message("Hello")))
        assert await agent.process_query("hi") == "Hello"
        client.call_tool.assert_not_called()
        assert "tools" not in llm.chat.completions.create.call_args.kwargs

    async def test_tools_offered(self) -> None:
        agent, _, llm = _agent(_response(_Message("Hello")))
        await agent.refresh_tools()
        await agent.process_query("hi")
        kwargs = llm.chat.completions.create.call_args.kwargs
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["tools"] == agent.tools

    async def test_tool_call_round(self) -> None:
        first = _Message(tool_calls=[_tool_call("get-alerts", '{"state": "CA"}')])
        agent, client, llm = _agent(
            _response(first), _response(_Message("No alerts in California."))
        )

        answer = await agent.process_query("Any alerts in CA?")

        assert answer == "No alerts in California."
        client.call_tool.assert_awaited_once_with("get-alerts", {"state": "CA"})
        messages = llm.chat.completions.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "user", "content": "Any alerts in CA?"}
        assert messages[1]["tool_calls"][0]["id"] == "call_1"
        assert messages[2] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": "No active alerts for CA",
        }

    async def test_multiple_tool_calls_serial(self) -> None:
        first = _Message(
            tool_calls=[
                _tool_call("get-alerts", '{"state": "CA"}', "call_1"),
                _tool_call("get-alerts", '{"state": "NY"}', "call_2"),
            ]
        )
        agent, client, _ = _agent(_response(first), _response(_Message("Done")))
        await agent.process_query("CA and NY?")
        states = [c.args[1]["state"] for c in client.call_tool.await_args_list]
        assert states == ["CA", "NY"]

    async def test_rejection_reported_to_llm(self) -> None:
        first = _Message(tool_calls=[_tool_call("get-alerts", '{"state": "CA"}')])
        agent, client, llm = _agent(_response(first), _response(_Message("Sorry")))
        client.call_tool.side_effect = RemoteRejectionError(-32003, "nonce")

        assert await agent.process_query("alerts?") == "Sorry"
        messages = llm.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1]["content"] == "Tool call error: [-32003] nonce"

    async def test_invalid_arguments_reported(self) -> None:
        first = _Message(tool_calls=[_tool_call("get-alerts", "{not json")])
        agent, client, llm = _agent(_response(first), _response(_Message("Sorry")))

        await agent.process_query("alerts?")

        client.call_tool.assert_not_called()
        messages = llm.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1]["content"].startswith("Tool call error: invalid arguments")

    async def test_empty_choices(self) -> None:
        agent, _, _ = _agent(_response(None))
        assert await agent.process_query("hi") == "Error: LLM returned an invalid response"

    async def test_empty_second_choices(self) -> None:
        first = _Message(tool_calls=[_tool_call("get-alerts", '{"state": "CA"}')])
        agent, _, _ = _agent(_response(first), _response(None))
        answer = await agent.process_query("alerts?")
        assert answer.startswith("Error: LLM returned an invalid response after")

    async def test_api_error(self) -> None:
        request = httpx.Request("POST", "https://llm.test/v1/chat/completions")
        agent, _, _ = _agent(openai.APIError("down", request, body=None))
        assert await agent.process_query("hi") == "LLM error: down"
