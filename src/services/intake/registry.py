"""Per-sender intake sessions with idle expiry.

Sessions are JSON documents in a :class:`~src.services.cache.CacheManager`
namespace (Redis when reachable, in-memory otherwise), keyed by a hash of
the sender address so phone numbers never appear in cache keys.  The TTL
is applied on every write; a session read back after it has been idle
longer than the TTL is treated as absent.

All reads and writes for one sender are expected to happen inside
``async with registry.lock(sender_id)``.  The periodic sweep takes the
same lock before evicting, so it can never remove a session in the middle
of a transition.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError

from src.models.enums import IntakeState
from src.models.intake import IntakeSession
from src.services.cache import CacheManager, stable_hash
from src.services.keyed_lock import KeyedLock

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionRegistry:
    """Fetch-or-create, store and expire :class:`IntakeSession` objects.

    Parameters
    ----------
    cache:
        Backing store for serialised sessions.
    ttl_seconds:
        Idle lifetime of a session.
    sweep_interval_seconds:
        Period of the background sweep started by :meth:`start_sweeper`.
    clock:
        Returns the current aware UTC time; injectable for tests.
    """

    def __init__(
        self,
        cache: CacheManager,
        *,
        ttl_seconds: int = 3_600,
        sweep_interval_seconds: int = 300,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache = cache
        self._ttl = ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock
        self._locks = KeyedLock()
        # sender_id -> last_activity, for the senders this process has seen
        self._last_seen: dict[str, datetime] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def active_count(self) -> int:
        return len(self._last_seen)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def lock(self, sender_id: str) -> AbstractAsyncContextManager[None]:
        """Serialise all work for *sender_id*; different senders never contend."""
        return self._locks.hold(sender_id)

    @staticmethod
    def _key(sender_id: str) -> str:
        return f"session:{stable_hash(sender_id)}"

    # -- Session access ----------------------------------------------------------

    async def get(self, sender_id: str) -> IntakeSession | None:
        raw = await self._cache.get(self._key(sender_id))
        if raw is None:
            self._last_seen.pop(sender_id, None)
            return None
        try:
            session = IntakeSession.model_validate(raw)
        except ValidationError:
            logger.warning("registry.corrupt_session_dropped")
            await self.evict(sender_id)
            return None
        if session.is_expired(self._clock(), self._ttl):
            await self.evict(sender_id)
            return None
        return session

    async def get_or_create(self, sender_id: str) -> IntakeSession:
        session = await self.get(sender_id)
        if session is not None:
            return session
        now = self._clock()
        return IntakeSession(sender_id=sender_id, created_at=now, last_activity=now)

    async def put(self, session: IntakeSession) -> IntakeSession:
        """Store *session*, stamping its activity time.

        An idle session without a draft carries nothing worth keeping and
        is evicted instead.
        """
        if session.state == IntakeState.IDLE and session.draft is None:
            await self.evict(session.sender_id)
            return session

        now = self._clock()
        stored = session.model_copy(update={"last_activity": now})
        await self._cache.set(
            self._key(session.sender_id),
            stored.model_dump(mode="json"),
            ttl_seconds=self._ttl,
        )
        self._last_seen[session.sender_id] = now
        return stored

    async def evict(self, sender_id: str) -> None:
        await self._cache.delete(self._key(sender_id))
        self._last_seen.pop(sender_id, None)

    # -- Expiry --------------------------------------------------------------------

    async def sweep_expired(self) -> int:
        """Evict every known session idle longer than the TTL; return the count."""
        now = self._clock()
        candidates = [
            sender_id
            for sender_id, seen in self._last_seen.items()
            if (now - seen).total_seconds() > self._ttl
        ]
        evicted = 0
        for sender_id in candidates:
            async with self.lock(sender_id):
                # Re-check under the lock: a transition may have refreshed it.
                seen = self._last_seen.get(sender_id)
                if seen is None or (self._clock() - seen).total_seconds() <= self._ttl:
                    continue
                await self.evict(sender_id)
                evicted += 1
        if evicted:
            logger.info("registry.swept", evicted=evicted, remaining=len(self._last_seen))
        return evicted

    def start_sweeper(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._sweep_loop(), name="intake-session-sweeper")

    async def _sweep_loop(self) -> None:
        logger.info("registry.sweeper_started", interval_seconds=self._sweep_interval)
        try:
            while True:
                await asyncio.sleep(self._sweep_interval)
                try:
                    await self.sweep_expired()
                except Exception:
                    logger.error("registry.sweep_failed", exc_info=True)
        except asyncio.CancelledError:
            logger.info("registry.sweeper_cancelled")
            raise

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=10.0)
            except (asyncio.CancelledError, TimeoutError):
                pass
            self._task = None
        logger.info("registry.sweeper_stopped")
