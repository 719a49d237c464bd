"""
Database connection and pooling for PostgreSQL.

Provides async connection pooling and connection management for the assessment
repositories. Handles connection lifecycle, error recovery, and resource cleanup.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional

import asyncpg

from ..config import settings


logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """Database connection pool configuration."""
    dsn: str
    min_size: int = 1
    max_size: int = 10
    max_inactive_connection_lifetime: float = 300.0
    command_timeout: float = 60.0


class DatabaseConnectionError(Exception):
    """Raised when database connection fails."""
    pass


class DatabasePool:
    """
    Async PostgreSQL connection pool manager.

    Usage:
        pool = DatabasePool(PoolConfig(dsn="postgresql://..."))
        await pool.initialize()
        async with pool.acquire_connection() as conn:
            rows = await conn.fetch("SELECT * FROM students")
    """

    def __init__(self, config: PoolConfig):
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_closed = False

    async def initialize(self) -> None:
        """Initialize the connection pool."""
        if self._pool is not None and not self._is_closed:
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.dsn,
                min_size=self.config.min_size,
                max_size=self.config.max_size,
                max_inactive_connection_lifetime=self.config.max_inactive_connection_lifetime,
                command_timeout=self.config.command_timeout,
            )
            self._is_closed = False
            logger.info(f"Database pool initialized with {self.config.min_size}-{self.config.max_size} connections")
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

    async def close(self) -> None:
        """Close the connection pool and cleanup resources."""
        if self._pool and not self._is_closed:
            await self._pool.close()
            self._is_closed = True
            logger.info("Database pool closed")

    @asynccontextmanager
    async def acquire_connection(self):
        """Acquire a database connection from the pool."""
        if self._pool is None:
            raise DatabaseConnectionError("Database pool not initialized")

        if self._is_closed:
            raise DatabaseConnectionError("Database pool is closed")

        async with self._pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self):
        """Acquire a connection and run the block inside a transaction."""
        async with self.acquire_connection() as conn:
            async with conn.transaction():
                yield conn

    async def _run(self, method: str, sql: str, *args):
        async with self.acquire_connection() as conn:
            try:
                return await getattr(conn, method)(sql, *args)
            except asyncpg.PostgresError as e:
                logger.error(f"{method} failed: {e}", extra={"sql": sql})
                raise

    async def execute_query(self, query: str, *args) -> List[asyncpg.Record]:
        """Return every row of a query."""
        return await self._run("fetch", query, *args)

    async def execute_query_one(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Return the first row of a query, or None."""
        return await self._run("fetchrow", query, *args)

    async def execute_command(self, command: str, *args) -> str:
        """Run an INSERT, UPDATE or DELETE and return its status tag, e.g. "DELETE 1"."""
        return await self._run("execute", command, *args)

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None and not self._is_closed

    async def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            result = await self.execute_query_one("SELECT 1 as health_check")
            return result is not None and result["health_check"] == 1
        except (DatabaseConnectionError, OSError, asyncpg.PostgresError) as e:
            logger.error(f"Health check failed: {e}")
            return False


def create_pool_config_from_settings() -> PoolConfig:
    """Build the pool configuration from DATABASE_URL and the pool size settings."""
    db = settings.database
    if not db.url:
        raise DatabaseConnectionError("DATABASE_URL is not configured")
    return PoolConfig(dsn=db.url, min_size=db.pool_min_size, max_size=db.pool_max_size)


# Global pool instance - initialized once per application
_global_pool: Optional[DatabasePool] = None


async def get_database_pool() -> DatabasePool:
    """Get the global database pool instance, initializing it if needed."""
    global _global_pool

    if _global_pool is None:
        _global_pool = DatabasePool(create_pool_config_from_settings())
    if not _global_pool.is_initialized:
        await _global_pool.initialize()

    return _global_pool


async def close_database_pool() -> None:
    """Close the global database pool. Call during application shutdown."""
    global _global_pool

    if _global_pool:
        await _global_pool.close()
        _global_pool = None
