"""
Database connection
Thin asyncpg pool wrapper shared by the repositories
"""

import logging
from typing import Any, Optional

import asyncpg

from app.core.config import settings

logger = logging.getLogger(__name__)


class Database:
    """Owns the asyncpg connection pool for the process"""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        if self.pool is not None:
            return
        if not self.dsn:
            logger.warning("DATABASE_URL not configured, durable user store unavailable")
            return
        self.pool = await asyncpg.create_pool(self.dsn, min_size=1, max_size=10)
        logger.info("Database pool created")

    async def disconnect(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None
        logger.info("Database pool closed")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise RuntimeError("Database is not connected")
        return self.pool

    async def fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        return await self._require_pool().fetchrow(query, *args)

    async def execute(self, query: str, *args: Any) -> str:
        return await self._require_pool().execute(query, *args)


db = Database(settings.DATABASE_URL)
