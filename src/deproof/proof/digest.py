"""Keccak-256 digests over canonical payloads.

This is Keccak-256 with the pre-standard padding used by Ethereum, not
SHA3-256. Digests travel as lowercase hex without a ``0x`` prefix.
"""

from __future__ import annotations

import hmac
from typing import Any

from eth_utils import keccak

from deproof.proof.canonical import canonicalize

DIGEST_SIZE = 32


def digest(data: bytes) -> bytes:
    """Return the 32-byte Keccak-256 hash of ``data``."""
    return keccak(data)


def digest_hex(data: bytes) -> str:
    return digest(data).hex()


def normalize_hex(value: str) -> str:
    """Strip an optional ``0x`` prefix and lower-case the rest."""
    value = value.strip()
    if value[:2].lower() == "0x":
        value = value[2:]
    return value.lower()


def hex_equal(a: str, b: str) -> bool:
    """Compare two hex strings ignoring case and ``0x`` prefixes."""
    return hmac.compare_digest(normalize_hex(a).encode(), normalize_hex(b).encode())


def signing_payload(
    params: dict[str, Any], nonce: int, session: str, timestamp: str
) -> dict[str, Any]:
    """Build the object whose canonical form is hashed and signed."""
    return {
        "params": params,
        "nonce": nonce,
        "session": session,
        "timestamp": timestamp,
    }


def proof_digest(params: dict[str, Any], nonce: int, session: str, timestamp: str) -> str:
    """Return the hex digest binding params, nonce, session and timestamp."""
    return digest_hex(canonicalize(signing_payload(params, nonce, session, timestamp)))
