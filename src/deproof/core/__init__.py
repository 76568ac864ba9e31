"""Core types and errors."""

from deproof.core.errors import (
    ClientError,
    ConfigError,
    ConnectionTimeoutError,
    DeProofError,
    DigestMismatchError,
    ErrorCode,
    ExecutionFailedError,
    ExecutionTimeoutError,
    InternalValidationError,
    MissingProofError,
    NonceInvalidError,
    ProofRejectedError,
    RemoteRejectionError,
    SignatureFormatError,
    SignatureInvalidError,
    StoreUnavailableError,
    TimestampInvalidError,
    TimestampOutOfRangeError,
    ToolCallTimeoutError,
    ToolResultError,
    ValidationTimeoutError,
)

__all__ = [
    "ClientError",
    "ConfigError",
    "ConnectionTimeoutError",
    "DeProofError",
    "DigestMismatchError",
    "ErrorCode",
    "ExecutionFailedError",
    "ExecutionTimeoutError",
    "InternalValidationError",
    "MissingProofError",
    "NonceInvalidError",
    "ProofRejectedError",
    "RemoteRejectionError",
    "SignatureFormatError",
    "SignatureInvalidError",
    "StoreUnavailableError",
    "TimestampInvalidError",
    "TimestampOutOfRangeError",
    "ToolCallTimeoutError",
    "ToolResultError",
    "ValidationTimeoutError",
]
