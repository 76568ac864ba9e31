"""Recoverable secp256k1 signatures over proof digests.

Signatures use the personal-message convention (EIP-191 version ``0x45``):
the 32 digest bytes are prefixed with ``"\\x19Ethereum Signed Message:\\n32"``
and hashed again before signing. The verifier must apply the same prefix or
it recovers an unrelated address.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeysValidationError

from deproof.core.errors import SignatureFormatError
from deproof.proof.digest import DIGEST_SIZE, normalize_hex

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

SIGNATURE_SIZE = 65
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_VALID_V = frozenset({0, 1, 27, 28})


def load_account(private_key: str | bytes | LocalAccount) -> LocalAccount:
    if isinstance(private_key, str | bytes):
        return Account.from_key(private_key)
    return private_key


def address_of(private_key: str | bytes | LocalAccount) -> str:
    """Return the checksummed address controlled by ``private_key``."""
    return load_account(private_key).address


def _check_digest(digest_bytes: bytes) -> None:
    if len(digest_bytes) != DIGEST_SIZE:
        msg = f"Digest must be {DIGEST_SIZE} bytes, got {len(digest_bytes)}"
        raise ValueError(msg)


def sign(digest_bytes: bytes, private_key: str | bytes | LocalAccount) -> str:
    """Sign a digest and return the 65-byte ``r || s || v`` signature as hex."""
    _check_digest(digest_bytes)
    account = load_account(private_key)
    signed = account.sign_message(encode_defunct(primitive=digest_bytes))
    return bytes(signed.signature).hex()


def decode_signature(signature: str | bytes) -> bytes:
    """Decode and structurally check a signature.

    Raises:
        SignatureFormatError: On bad hex, wrong length, an invalid recovery
            id, or ``r``/``s`` outside the curve order.
    """
    if isinstance(signature, str):
        try:
            raw = bytes.fromhex(normalize_hex(signature))
        except ValueError as e:
            msg = "Signature validation failed: signature is not valid hex"
            raise SignatureFormatError(msg) from e
    else:
        raw = bytes(signature)

    if len(raw) != SIGNATURE_SIZE:
        msg = (
            f"Signature validation failed: expected {SIGNATURE_SIZE} bytes, "
            f"got {len(raw)}"
        )
        raise SignatureFormatError(msg)

    r = int.from_bytes(raw[:32], "big")
    s = int.from_bytes(raw[32:64], "big")
    v = raw[64]
    if v not in _VALID_V:
        msg = f"Signature validation failed: invalid recovery id {v}"
        raise SignatureFormatError(msg)
    if not (0 < r < SECP256K1_N and 0 < s < SECP256K1_N):
        msg = "Signature validation failed: r or s out of range"
        raise SignatureFormatError(msg)
    return raw


def recover_address(digest_bytes: bytes, signature: str | bytes) -> str:
    """Recover the checksummed signer address from a digest signature.

    Raises:
        SignatureFormatError: If the signature is malformed or no public key
            can be recovered from it.
    """
    _check_digest(digest_bytes)
    raw = decode_signature(signature)
    try:
        return Account.recover_message(
            encode_defunct(primitive=digest_bytes), signature=raw
        )
    except (BadSignature, KeysValidationError, ValueError) as e:
        msg = f"Signature validation failed: {e}"
        raise SignatureFormatError(msg) from e
