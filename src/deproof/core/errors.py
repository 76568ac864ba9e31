"""Exception hierarchy for deproof.

Every module imports from here. The hierarchy is:

    DeProofError
    ├── ProofRejectedError(code, message)
    │   ├── MissingProofError
    │   ├── TimestampInvalidError
    │   │   └── TimestampOutOfRangeError
    │   ├── NonceInvalidError
    │   ├── StoreUnavailableError
    │   ├── DigestMismatchError
    │   ├── SignatureInvalidError
    │   │   └── SignatureFormatError
    │   ├── ValidationTimeoutError
    │   ├── ExecutionFailedError
    │   ├── ExecutionTimeoutError
    │   └── InternalValidationError
    ├── ClientError
    │   ├── ConnectionTimeoutError
    │   ├── ToolCallTimeoutError
    │   ├── RemoteRejectionError(code, message)
    │   └── ToolResultError
    └── ConfigError

Rejections carry a stable JSON-RPC style error code (see :class:`ErrorCode`)
and are surfaced to callers as ``{"code": ..., "message": ...}``.
"""

from __future__ import annotations

import enum
from typing import ClassVar


class ErrorCode(enum.IntEnum):
    """Stable rejection codes returned to tool callers."""

    STORE_UNAVAILABLE = -32000
    TIMESTAMP_OUT_OF_RANGE = -32001
    TIMESTAMP_INVALID = -32002
    NONCE_INVALID = -32003
    DIGEST_MISMATCH = -32005
    SIGNATURE_MISMATCH = -32006
    SIGNATURE_FORMAT = -32007
    EXECUTION_FAILED = -32008
    EXECUTION_TIMEOUT = -32009
    VALIDATION_TIMEOUT = -32099
    MISSING_PROOF = -32602
    INTERNAL_ERROR = -32603


class DeProofError(Exception):
    """Base exception for all deproof errors."""


# ─── Rejections ───────────────────────────────────────────────


class ProofRejectedError(DeProofError):
    """A tool call was refused. Carries the code reported to the caller."""

    code: ClassVar[ErrorCode]

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        return {"code": int(self.code), "message": self.message}


class MissingProofError(ProofRejectedError):
    """No ``_deProof`` record, or one with missing or mistyped fields."""

    code = ErrorCode.MISSING_PROOF


class TimestampInvalidError(ProofRejectedError):
    """Timestamp could not be parsed as an ISO-8601 instant."""

    code = ErrorCode.TIMESTAMP_INVALID


class TimestampOutOfRangeError(TimestampInvalidError):
    """Timestamp lies outside the accepted clock-skew window."""

    code = ErrorCode.TIMESTAMP_OUT_OF_RANGE

    def __init__(self, difference: float, tolerance: float) -> None:
        self.difference = difference
        self.tolerance = tolerance
        super().__init__(
            f"Timestamp validation failed: Difference {difference:.0f}seconds, "
            f"allowed {tolerance:.0f}seconds"
        )


class NonceInvalidError(ProofRejectedError):
    """Presented nonce is not the next value expected for the session."""

    code = ErrorCode.NONCE_INVALID

    def __init__(self, received: int, expected: int) -> None:
        self.received = received
        self.expected = expected
        super().__init__(
            f"Nonce validation failed: Received {received}, Expected {expected}"
        )


class StoreUnavailableError(ProofRejectedError):
    """The nonce store could not be read or updated.

    When raised from the commit stage the request was cryptographically
    valid; it must not count as a failed authentication attempt.
    """

    code = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, message: str, *, during_commit: bool = False) -> None:
        self.during_commit = during_commit
        super().__init__(message)


class DigestMismatchError(ProofRejectedError):
    """Recomputed digest differs from the declared one."""

    code = ErrorCode.DIGEST_MISMATCH


class SignatureInvalidError(ProofRejectedError):
    """Signature does not recover to the declared signer."""

    code = ErrorCode.SIGNATURE_MISMATCH


class SignatureFormatError(SignatureInvalidError):
    """Signature is malformed and no address can be recovered from it."""

    code = ErrorCode.SIGNATURE_FORMAT


class ValidationTimeoutError(ProofRejectedError):
    """Validation did not finish before its deadline; outcome indeterminate."""

    code = ErrorCode.VALIDATION_TIMEOUT


class ExecutionFailedError(ProofRejectedError):
    """Tool logic raised after the proof was accepted."""

    code = ErrorCode.EXECUTION_FAILED


class ExecutionTimeoutError(ProofRejectedError):
    """Tool logic did not finish before its deadline."""

    code = ErrorCode.EXECUTION_TIMEOUT


class InternalValidationError(ProofRejectedError):
    """Validation broke for a reason outside the rejection taxonomy."""

    code = ErrorCode.INTERNAL_ERROR


# ─── Client Errors ────────────────────────────────────────────


class ClientError(DeProofError):
    """Base for errors raised on the calling side."""


class ConnectionTimeoutError(ClientError):
    """The MCP server did not finish initialization in time."""


class ToolCallTimeoutError(ClientError):
    """A signed tool call got no response in time."""


class RemoteRejectionError(ClientError):
    """The server refused a tool call and reported why."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ToolResultError(ClientError):
    """The server flagged a tool result as an error without a rejection code."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(DeProofError):
    """Invalid configuration."""
