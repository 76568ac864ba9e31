"""LLM chat loop whose tool calls go through :class:`SecureToolClient`."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import openai

from deproof.core.errors import DeProofError
from deproof.proof.models import PROOF_FIELD

if TYPE_CHECKING:
    from deproof.client.session import SecureToolClient
    from deproof.tools.base import ToolDefinition

logger = logging.getLogger(__name__)


def to_openai_tool(definition: ToolDefinition) -> dict[str, Any]:
    """Convert a tool definition to an OpenAI function spec.

    The proof field is hidden from the model; the client adds it itself.
    """
    schema = dict(definition.parameters_schema)
    properties = {
        k: v for k, v in (schema.get("properties") or {}).items() if k != PROOF_FIELD
    }
    schema["properties"] = properties
    if "required" in schema:
        schema["required"] = [r for r in schema["required"] if r != PROOF_FIELD]
    return {
        "type": "function",
        "function": {
            "name": definition.name,
            "description": definition.description,
            "parameters": schema,
        },
    }


class ChatAgent:
    """Answers questions with an LLM that may call signed MCP tools."""

    def __init__(
        self,
        client: SecureToolClient,
        llm: openai.AsyncOpenAI,
        model: str,
    ) -> None:
        self._client = client
        self._llm = llm
        self._model = model
        self.tools: list[dict[str, Any]] = []

    async def refresh_tools(self) -> list[str]:
        """Load the server's tools; returns their names."""
        definitions = await self._client.list_tools()
        self.tools = [to_openai_tool(d) for d in definitions]
        return [d.name for d in definitions]

    async def _call_tool(self, name: str, raw_arguments: str) -> str:
        try:
            arguments = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError as e:
            return f"Tool call error: invalid arguments ({e})"
        if not isinstance(arguments, dict):
            return "Tool call error: arguments must be an object"
        try:
            return await self._client.call_tool(name, arguments)
        except DeProofError as e:
            logger.warning("Tool %s failed: %s", name, e)
            return f"Tool call error: {e}"

    async def process_query(self, query: str) -> str:
        """Run one question through the LLM, executing requested tools serially."""
        messages: list[dict[str, Any]] = [{"role": "user", "content": query}]
        kwargs: dict[str, Any] = {"model": self._model, "messages": messages}
        if self.tools:
            kwargs["tools"] = self.tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await self._llm.chat.completions.create(**kwargs)
            if not response.choices or response.choices[0].message is None:
                return "Error: LLM returned an invalid response"
            message = response.choices[0].message
            if not message.tool_calls:
                return message.content or ""

            logger.info(
                "LLM requests tool calls: %s",
                [tc.function.name for tc in message.tool_calls],
            )
            messages.append(message.model_dump(exclude_none=True))
            for tool_call in message.tool_calls:
                content = await self._call_tool(
                    tool_call.function.name, tool_call.function.arguments
                )
                messages.append(
                    {"role": "tool", "tool_call_id": tool_call.id, "content": content}
                )

            second = await self._llm.chat.completions.create(
                model=self._model, messages=messages
            )
        except openai.APIError as e:
            logger.error("LLM error: %s", e)
            return f"LLM error: {e}"

        if not second.choices or second.choices[0].message is None:
            return (
                "Error: LLM returned an invalid response after processing "
                "tool call results"
            )
        return second.choices[0].message.content or ""
