"""
Rate Limiter
Fixed-window counter gating OTP challenge issuance per identifier
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from .constants import OTP_RATE_LIMIT, RATE_LIMIT_WINDOW_SECONDS
from .utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: datetime


class RateLimiter:
    """
    In-memory fixed-window rate limiter

    Keys are phone numbers for login and `phone_change:<user id>` for
    phone changes. Entries are created lazily and dropped once their
    window has passed.
    """

    def __init__(
        self,
        limit: int = OTP_RATE_LIMIT,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = asyncio.Lock()

    async def is_limited(self, key: str) -> bool:
        """True when `key` has used up its issuances for the current window"""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False

            if self._clock() >= entry.window_reset_at:
                del self._entries[key]
                return False

            return entry.count >= self.limit

    async def try_acquire(self, key: str) -> bool:
        """
        Atomically check the window for `key` and count one issuance

        Returns False, counting nothing, when the window is used up.
        """
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now >= entry.window_reset_at:
                self._entries[key] = RateLimitEntry(count=1, window_reset_at=now + self.window)
                return True

            if entry.count >= self.limit:
                return False

            entry.count += 1
            logger.debug(f"Rate limit for {key}: {entry.count}/{self.limit}")
            return True

    async def release(self, key: str) -> None:
        """Give back one issuance counted in the current window"""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() >= entry.window_reset_at:
                return
            entry.count -= 1
            if entry.count <= 0:
                del self._entries[key]

    async def record_attempt(self, key: str) -> None:
        """Count one challenge issuance against `key`"""
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is not None and now < entry.window_reset_at:
                entry.count += 1
            else:
                entry = RateLimitEntry(count=1, window_reset_at=now + self.window)
                self._entries[key] = entry

            logger.debug(f"Rate limit for {key}: {entry.count}/{self.limit}")

    async def retry_after(self, key: str) -> int:
        """Seconds until the window for `key` resets, 0 when not tracked"""
        async with self._lock:
            entry: Optional[RateLimitEntry] = self._entries.get(key)
            if entry is None:
                return 0
            return max(0, int((entry.window_reset_at - self._clock()).total_seconds()))

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def evict_expired(self) -> int:
        """Drop every entry whose window has passed; returns the number dropped"""
        async with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now >= entry.window_reset_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
