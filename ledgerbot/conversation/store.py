"""
Pending Proposal Store

Holds at most one unconfirmed TransactionProposal per sender. A sender is
"awaiting confirmation" exactly when the store has an entry for them.

DESIGN DECISION: The store is an injected interface rather than a
module-level dict, so the engine can be tested in isolation and a
shared store could replace the in-memory one later.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

import structlog

from ledgerbot.models.transaction import TransactionProposal


logger = structlog.get_logger(__name__)


class PendingStore(ABC):
    """Per-sender pending proposals."""

    @abstractmethod
    async def has(self, sender: str) -> bool:
        pass

    @abstractmethod
    async def get(self, sender: str) -> Optional[TransactionProposal]:
        pass

    @abstractmethod
    async def set(self, sender: str, proposal: TransactionProposal) -> None:
        """Store a proposal, replacing any existing one."""
        pass

    @abstractmethod
    async def remove(self, sender: str) -> None:
        """Remove the sender's entry. No-op when absent."""
        pass

    @abstractmethod
    async def count(self) -> int:
        pass


class InMemoryPendingStore(PendingStore):
    """
    Process-memory store.

    Entries never expire unless ttl_seconds is set, in which case stale
    entries are dropped lazily when read.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: dict[str, tuple[TransactionProposal, float]] = {}
        self._ttl = ttl_seconds
        self._clock = clock

    def _expired(self, stored_at: float) -> bool:
        return self._ttl is not None and self._clock() - stored_at > self._ttl

    def _lookup(self, sender: str) -> Optional[TransactionProposal]:
        entry = self._entries.get(sender)
        if entry is None:
            return None
        proposal, stored_at = entry
        if self._expired(stored_at):
            del self._entries[sender]
            logger.info("pending_expired", sender=sender)
            return None
        return proposal

    async def has(self, sender: str) -> bool:
        return self._lookup(sender) is not None

    async def get(self, sender: str) -> Optional[TransactionProposal]:
        return self._lookup(sender)

    async def set(self, sender: str, proposal: TransactionProposal) -> None:
        self._entries[sender] = (proposal, self._clock())

    async def remove(self, sender: str) -> None:
        self._entries.pop(sender, None)

    async def count(self) -> int:
        for sender in list(self._entries):
            self._lookup(sender)
        return len(self._entries)


class SenderLocks:
    """
    One asyncio.Lock per sender, created on demand.

    A lock is discarded as soon as nobody holds or waits on it, so the
    map only grows with concurrently active senders.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, sender: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(sender, asyncio.Lock())
        self._users[sender] = self._users.get(sender, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[sender] -= 1
            if self._users[sender] == 0:
                del self._users[sender]
                del self._locks[sender]
