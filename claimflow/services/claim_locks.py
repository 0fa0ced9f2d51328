"""
Per-claim Locking.

At most one transition may be in flight per claim identifier. Transitions on
different claims never contend. Waiting for a busy claim is bounded; on timeout
``ClaimBusy`` is raised so the caller can retry.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from claimflow.utils.errors import ClaimBusy
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


class ClaimLockManager:
    """Keyed asyncio locks, created on demand and dropped when idle."""

    def __init__(self, timeout_seconds: float = 2.0):
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def is_locked(self, claim_id: str) -> bool:
        lock = self._locks.get(claim_id)
        return lock is not None and lock.locked()

    @property
    def active_claims(self) -> int:
        """Number of claims with a holder or waiter."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(
        self,
        claim_id: str,
        timeout_seconds: Optional[float] = None,
    ) -> AsyncIterator[None]:
        """
        Hold the exclusive lock for a claim.

        Raises:
            ClaimBusy: if the lock is not acquired within the timeout
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        lock = self._locks.setdefault(claim_id, asyncio.Lock())
        self._users[claim_id] = self._users.get(claim_id, 0) + 1

        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Claim {claim_id} busy after waiting {timeout}s")
                raise ClaimBusy(claim_id, timeout) from None

            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[claim_id] -= 1
            if self._users[claim_id] == 0:
                del self._users[claim_id]
                del self._locks[claim_id]
