"""Nonce bookkeeping for replay protection.

The store tracks, per ``(signer, session)``, the next nonce it will accept.
:class:`InMemoryNonceStore` keeps that table in process memory; a deployment
that must survive restarts supplies its own :class:`NonceStore` with the same
compare-and-swap ``advance`` semantics.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager
from typing import Protocol, runtime_checkable

from deproof.core.errors import NonceInvalidError

logger = logging.getLogger(__name__)


def store_key(signer: str, session: str) -> tuple[str, str]:
    """Key under which a signer's session counter is kept.

    Addresses compare case-insensitively, so the same identity written in
    checksum and lower-case form must share one counter.
    """
    return signer.lower(), session


@runtime_checkable
class NonceStore(Protocol):
    """Interface every nonce store implementation must satisfy."""

    async def get_expected_nonce(self, signer: str, session: str) -> int:
        """Return the next nonce accepted for the pair (0 if never seen)."""
        ...

    async def advance(self, signer: str, session: str, accepted_nonce: int) -> None:
        """Record ``accepted_nonce`` as consumed.

        The expected value becomes ``accepted_nonce + 1``.

        Raises:
            NonceInvalidError: If ``accepted_nonce`` is no longer the
                expected value (another request consumed it first).
        """
        ...


class InMemoryNonceStore:
    """Process-local nonce table. Lost on restart."""

    def __init__(self) -> None:
        self._expected: dict[tuple[str, str], int] = {}

    async def get_expected_nonce(self, signer: str, session: str) -> int:
        expected = self._expected.get(store_key(signer, session), 0)
        logger.debug(
            "Expected nonce for %s / %s: %d", signer[:10], session[:8], expected
        )
        return expected

    async def advance(self, signer: str, session: str, accepted_nonce: int) -> None:
        key = store_key(signer, session)
        current = self._expected.get(key, 0)
        if current != accepted_nonce:
            raise NonceInvalidError(accepted_nonce, current)
        self._expected[key] = accepted_nonce + 1
        logger.debug(
            "Advanced nonce for %s / %s: %d -> %d",
            signer[:10],
            session[:8],
            accepted_nonce,
            accepted_nonce + 1,
        )

    def snapshot(self) -> dict[tuple[str, str], int]:
        """Return a copy of the nonce table."""
        return dict(self._expected)

    def __len__(self) -> int:
        return len(self._expected)


class KeyedLock:
    """One :class:`asyncio.Lock` per key, dropped once nobody holds or waits.

    Holders of different keys never block each other.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
