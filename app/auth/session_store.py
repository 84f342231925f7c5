"""
Session Store
In-memory TTL map for ephemeral login and phone change sessions, plus the
background sweeper that evicts expired entries
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from .constants import SESSION_CLEANUP_INTERVAL_SECONDS
from .models import EphemeralSession
from .rate_limiter import RateLimiter
from .utils import utc_now

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Concurrency-safe map from session id to session state

    Map mutation is serialised by a store-wide lock. Step handlers additionally
    hold the per-session lock returned by `lock()` for the whole step, so two
    requests against the same session never interleave.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._sessions: Dict[str, EphemeralSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def add(self, session: EphemeralSession) -> None:
        async with self._lock:
            if session.id in self._sessions:
                raise KeyError(f"Session {session.id} already exists")
            self._sessions[session.id] = session
            self._locks[session.id] = asyncio.Lock()

    async def get(self, session_id: str) -> Optional[EphemeralSession]:
        async with self._lock:
            return self._sessions.get(session_id)

    async def delete(self, session_id: str) -> bool:
        """Remove a session; deleting an absent id is a no-op"""
        async with self._lock:
            self._locks.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def lock(self, session_id: str) -> asyncio.Lock:
        """
        Per-session lock

        Unknown ids get a throwaway lock; the caller then finds no session
        once it holds it.
        """
        return self._locks.get(session_id) or asyncio.Lock()

    async def evict_expired(self, now: Optional[datetime] = None) -> int:
        """Delete every expired session; returns the number removed"""
        now = now or self._clock()
        async with self._lock:
            expired = [sid for sid, session in self._sessions.items() if session.is_expired(now)]
            for sid in expired:
                self._sessions.pop(sid, None)
                self._locks.pop(sid, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions


class SessionSweeper:
    """Periodic cleanup task with an explicit start/stop lifecycle"""

    def __init__(
        self,
        store: SessionStore,
        rate_limiter: RateLimiter,
        interval_seconds: float = SESSION_CLEANUP_INTERVAL_SECONDS,
    ):
        self.store = store
        self.rate_limiter = rate_limiter
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="auth-session-sweeper")
        logger.info(f"Session sweeper started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")

    async def sweep_once(self) -> int:
        sessions = await self.store.evict_expired()
        windows = await self.rate_limiter.evict_expired()
        if sessions or windows:
            logger.info(f"Swept {sessions} expired sessions and {windows} rate limit windows")
        return sessions

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except Exception as e:
                # Keep the loop alive; the next tick retries
                logger.error(f"Session sweep failed: {str(e)}")
