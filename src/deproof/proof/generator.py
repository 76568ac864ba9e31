"""Client-side DeProof generation."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from deproof.proof.digest import proof_digest
from deproof.proof.models import DeProof, format_timestamp, strip_proof, utcnow
from deproof.proof.nonce_store import store_key
from deproof.proof.signing import load_account, sign

if TYPE_CHECKING:
    from eth_account.signers.local import LocalAccount

logger = logging.getLogger(__name__)


class ClientNonceCounter:
    """Per ``(address, session)`` counter handing out each nonce exactly once."""

    def __init__(self) -> None:
        self._next: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    def take(self, address: str, session: str) -> int:
        """Return the current nonce for the pair and advance it."""
        key = store_key(address, session)
        with self._lock:
            nonce = self._next.get(key, 0)
            self._next[key] = nonce + 1
        return nonce

    def peek(self, address: str, session: str) -> int:
        with self._lock:
            return self._next.get(store_key(address, session), 0)


class ProofGenerator:
    """Builds signed DeProof records for outgoing tool calls.

    Usage::

        generator = ProofGenerator(private_key)
        proof = generator.generate({"state": "CA"})
        again = generator.generate({"state": "NY"}, proof.session)
    """

    def __init__(
        self,
        private_key: str | bytes | LocalAccount,
        *,
        counter: ClientNonceCounter | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._account = load_account(private_key)
        self._counter = counter or ClientNonceCounter()
        self._clock = clock

    @property
    def address(self) -> str:
        return self._account.address

    def generate(self, params: Mapping[str, Any], session: str | None = None) -> DeProof:
        """Create a proof for ``params``.

        Mints a fresh UUID session when none is given. The nonce is taken
        from the local counter before signing, so two calls never share one.
        ``params`` is not modified; a stray proof field in it is ignored.
        """
        if session is None:
            session = str(uuid.uuid4())
        nonce = self._counter.take(self.address, session)
        timestamp = format_timestamp(self._clock())
        clean = strip_proof(params)

        digest = proof_digest(clean, nonce, session, timestamp)
        signature = sign(bytes.fromhex(digest), self._account)
        logger.debug(
            "Generated proof: signer=%s session=%s nonce=%d digest=%s",
            self.address[:10],
            session[:8],
            nonce,
            digest[:10],
        )
        return DeProof(
            signer_address=self.address,
            nonce=nonce,
            session=session,
            timestamp=timestamp,
            digest=digest,
            signature=signature,
        )
