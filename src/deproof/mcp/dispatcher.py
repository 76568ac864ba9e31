"""Timeout-bounded dispatch of authenticated tool calls.

Validation and tool execution each run under their own deadline. A stalled
operation is cancelled and reported as a timeout; nothing is retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from deproof.core.errors import (
    ExecutionFailedError,
    ExecutionTimeoutError,
    InternalValidationError,
    ProofRejectedError,
    ValidationTimeoutError,
)
from deproof.proof.validator import ProofValidator

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome of one dispatched call: tool output or a structured error."""

    content: str
    error: dict[str, Any] | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def rejected(cls, error: ProofRejectedError) -> DispatchResult:
        payload = error.to_dict()
        return cls(content=json.dumps({"error": payload}), error=payload)


class ProofDispatcher:
    """Validates a call's DeProof, then runs the tool handler.

    Every rejection, timeout and tool failure is converted into a
    :class:`DispatchResult`; none propagate to the transport.
    """

    def __init__(
        self,
        validator: ProofValidator,
        *,
        validation_timeout: float = 5.0,
        execution_timeout: float = 20.0,
    ) -> None:
        self._validator = validator
        self.validation_timeout = validation_timeout
        self.execution_timeout = execution_timeout

    async def validate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Run validation under its deadline.

        Raises:
            ProofRejectedError: Rejection from the validator, or
                ValidationTimeoutError if the deadline passed.
        """
        try:
            async with asyncio.timeout(self.validation_timeout) as deadline:
                return await self._validator.validate(arguments)
        except TimeoutError as e:
            if not deadline.expired():
                raise
            msg = f"DeProof validation timed out ({self.validation_timeout:g} seconds)"
            raise ValidationTimeoutError(msg) from e

    async def execute(self, handler: ToolHandler, params: dict[str, Any]) -> str:
        """Run tool logic under its deadline.

        Raises:
            ExecutionTimeoutError: If the deadline passed.
            ExecutionFailedError: If the handler raised.
        """
        try:
            async with asyncio.timeout(self.execution_timeout) as deadline:
                return await handler(params)
        except TimeoutError as e:
            if deadline.expired():
                msg = f"Tool execution timed out ({self.execution_timeout:g} seconds)"
                raise ExecutionTimeoutError(msg) from e
            msg = f"Tool execution failed: {e}"
            raise ExecutionFailedError(msg) from e
        except Exception as e:
            msg = f"Tool execution failed: {e}"
            raise ExecutionFailedError(msg) from e

    async def dispatch(
        self, arguments: dict[str, Any], handler: ToolHandler
    ) -> DispatchResult:
        """Validate ``arguments`` and, if admitted, run ``handler`` on them."""
        start = time.monotonic()
        try:
            params = await self.validate(arguments)
        except ProofRejectedError as e:
            logger.warning("DeProof validation failed: [%d] %s", e.code, e.message)
            return DispatchResult.rejected(e)
        except Exception as e:
            logger.exception("DeProof validation exception")
            msg = f"DeProof validation failed: {e}"
            return DispatchResult.rejected(InternalValidationError(msg))

        logger.info(
            "DeProof validation passed in %.0fms, executing tool",
            (time.monotonic() - start) * 1000,
        )
        try:
            content = await self.execute(handler, params)
        except ProofRejectedError as e:
            logger.error("Tool execution error: [%d] %s", e.code, e.message)
            return DispatchResult.rejected(e)

        logger.info("Tool completed in %.0fms", (time.monotonic() - start) * 1000)
        return DispatchResult(content=content)
