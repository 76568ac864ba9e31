"""Server-side DeProof validation.

Stages run strictly in order and the first failure ends the attempt:

    1. presence    -> MissingProofError
    2. timestamp   -> TimestampInvalidError / TimestampOutOfRangeError
    3. nonce       -> NonceInvalidError / StoreUnavailableError
    4. digest      -> DigestMismatchError
    5. signature   -> SignatureInvalidError / SignatureFormatError
    6. commit      -> NonceInvalidError / StoreUnavailableError

Only stage 6 mutates the nonce store. Stages 3-6 run under a per
``(signer, session)`` lock so two requests racing on one session cannot both
pass the nonce check.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from deproof.core.errors import (
    DigestMismatchError,
    NonceInvalidError,
    SignatureInvalidError,
    StoreUnavailableError,
    TimestampOutOfRangeError,
)
from deproof.proof.digest import hex_equal, normalize_hex, proof_digest
from deproof.proof.models import (
    PROOF_FIELD,
    DeProof,
    parse_timestamp,
    strip_proof,
    utcnow,
)
from deproof.proof.nonce_store import KeyedLock, NonceStore, store_key
from deproof.proof.signing import recover_address

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = timedelta(seconds=60)


class ProofValidator:
    """Admits or rejects tool calls based on their DeProof record."""

    def __init__(
        self,
        store: NonceStore,
        *,
        tolerance: timedelta = DEFAULT_TOLERANCE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._tolerance = tolerance
        self._clock = clock
        self._locks = KeyedLock()

    @property
    def store(self) -> NonceStore:
        return self._store

    async def validate(self, arguments: Mapping[str, Any]) -> dict[str, Any]:
        """Validate the proof carried in ``arguments``.

        Returns:
            The arguments with the proof field removed, ready for tool logic.

        Raises:
            ProofRejectedError: The specific rejection for the first stage
                that failed.
        """
        start = time.monotonic()
        proof = DeProof.from_wire(arguments.get(PROOF_FIELD))
        logger.info(
            "Validating proof: signer=%s session=%s nonce=%d",
            proof.signer_address[:10],
            proof.session[:8],
            proof.nonce,
        )

        self._check_timestamp(proof)

        async with self._locks.hold(store_key(proof.signer_address, proof.session)):
            await self._check_nonce(proof)
            params = strip_proof(arguments)
            self._check_digest(proof, params)
            self._check_signature(proof)
            await self._commit(proof)

        logger.info(
            "Proof accepted in %.1fms", (time.monotonic() - start) * 1000
        )
        return params

    def _check_timestamp(self, proof: DeProof) -> None:
        issued = parse_timestamp(proof.timestamp)
        difference = abs(self._clock() - issued)
        if difference > self._tolerance:
            logger.warning(
                "Timestamp out of range: %s (%.1fs off)",
                proof.timestamp,
                difference.total_seconds(),
            )
            raise TimestampOutOfRangeError(
                difference.total_seconds(), self._tolerance.total_seconds()
            )

    async def _check_nonce(self, proof: DeProof) -> None:
        try:
            expected = await self._store.get_expected_nonce(
                proof.signer_address, proof.session
            )
        except Exception as e:
            logger.exception("Nonce store read failed")
            msg = "Server error: Nonce store unavailable"
            raise StoreUnavailableError(msg) from e
        if proof.nonce != expected:
            logger.warning(
                "Nonce mismatch: received=%d expected=%d", proof.nonce, expected
            )
            raise NonceInvalidError(proof.nonce, expected)

    def _check_digest(self, proof: DeProof, params: dict[str, Any]) -> None:
        try:
            calculated = proof_digest(params, proof.nonce, proof.session, proof.timestamp)
        except (TypeError, ValueError) as e:
            msg = f"Digest validation failed: {e}"
            raise DigestMismatchError(msg) from e
        if not hex_equal(calculated, proof.digest):
            logger.warning(
                "Digest mismatch: client=%s server=%s",
                normalize_hex(proof.digest)[:10],
                calculated[:10],
            )
            msg = "Digest validation failed: Data may have been tampered with"
            raise DigestMismatchError(msg)

    def _check_signature(self, proof: DeProof) -> None:
        try:
            digest_bytes = bytes.fromhex(normalize_hex(proof.digest))
        except ValueError as e:
            msg = "Digest validation failed: digest is not valid hex"
            raise DigestMismatchError(msg) from e
        recovered = recover_address(digest_bytes, proof.signature)
        if recovered.lower() != proof.signer_address.lower():
            logger.warning(
                "Signature address mismatch: recovered=%s declared=%s",
                recovered[:10],
                proof.signer_address[:10],
            )
            msg = "Signature validation failed: Address mismatch"
            raise SignatureInvalidError(msg)

    async def _commit(self, proof: DeProof) -> None:
        try:
            await self._store.advance(proof.signer_address, proof.session, proof.nonce)
        except NonceInvalidError:
            logger.warning("Nonce %d consumed concurrently", proof.nonce)
            raise
        except Exception as e:
            logger.exception("Failed to update nonce store")
            msg = "Server error: Unable to update Nonce store"
            raise StoreUnavailableError(msg, during_commit=True) from e
        logger.info("Nonce advanced: %d -> %d", proof.nonce, proof.nonce + 1)
