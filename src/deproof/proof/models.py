"""The DeProof record and its wire representation.

A proof travels inside the tool arguments under the reserved key
``_deProof``, with camelCase field names::

    {
        "state": "CA",
        "_deProof": {
            "signerAddress": "0x...",
            "nonce": 0,
            "session": "5f0c...",
            "timestamp": "2024-05-01T12:00:00.000Z",
            "digest": "ab12...",
            "signature": "cd34..."
        }
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from deproof.core.errors import MissingProofError, TimestampInvalidError

PROOF_FIELD = "_deProof"

_WIRE_FIELDS: dict[str, type] = {
    "signerAddress": str,
    "nonce": int,
    "session": str,
    "timestamp": str,
    "digest": str,
    "signature": str,
}


@dataclass(frozen=True, slots=True)
class DeProof:
    """Signed, timestamped, nonce-bound proof accompanying one tool call."""

    signer_address: str
    nonce: int
    session: str
    timestamp: str
    digest: str
    signature: str

    def to_wire(self) -> dict[str, Any]:
        return {
            "signerAddress": self.signer_address,
            "nonce": self.nonce,
            "session": self.session,
            "timestamp": self.timestamp,
            "digest": self.digest,
            "signature": self.signature,
        }

    @classmethod
    def from_wire(cls, data: object) -> DeProof:
        """Parse a wire record, checking every field is present and typed.

        Raises:
            MissingProofError: If the record is absent or malformed.
        """
        if data is None:
            msg = f"Invalid request: Missing {PROOF_FIELD} object"
            raise MissingProofError(msg)
        if not isinstance(data, Mapping):
            msg = f"Invalid request: {PROOF_FIELD} must be an object"
            raise MissingProofError(msg)

        for name, expected in _WIRE_FIELDS.items():
            if name not in data:
                msg = f"Invalid request: {PROOF_FIELD} is missing '{name}'"
                raise MissingProofError(msg)
            value = data[name]
            if isinstance(value, bool) or not isinstance(value, expected):
                msg = (
                    f"Invalid request: {PROOF_FIELD}.{name} must be "
                    f"{'an integer' if expected is int else 'a string'}"
                )
                raise MissingProofError(msg)

        if data["nonce"] < 0:
            msg = f"Invalid request: {PROOF_FIELD}.nonce must be non-negative"
            raise MissingProofError(msg)

        return cls(
            signer_address=data["signerAddress"],
            nonce=data["nonce"],
            session=data["session"],
            timestamp=data["timestamp"],
            digest=data["digest"],
            signature=data["signature"],
        )


def strip_proof(arguments: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of the arguments without the proof field."""
    return {k: v for k, v in arguments.items() if k != PROOF_FIELD}


def attach_proof(params: Mapping[str, Any], proof: DeProof) -> dict[str, Any]:
    """Return a copy of the params with the proof merged in."""
    secured = strip_proof(params)
    secured[PROOF_FIELD] = proof.to_wire()
    return secured


def utcnow() -> datetime:
    return datetime.now(UTC)


def format_timestamp(moment: datetime) -> str:
    """Render an instant as ISO-8601 UTC with milliseconds and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    text = moment.astimezone(UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 instant. Naive values are taken as UTC.

    Raises:
        TimestampInvalidError: If the value is not a valid ISO-8601 instant.
    """
    try:
        moment = datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        msg = "Timestamp validation failed: Invalid format"
        raise TimestampInvalidError(msg) from e
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment
