"""
Tests for the asyncpg connection pool wrapper.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from learning_profiles.database import connection
from learning_profiles.database.connection import DatabaseConnectionError, DatabasePool, PoolConfig


def fake_asyncpg_pool(conn):
    pool = MagicMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.close = AsyncMock()
    return pool


@pytest.fixture
def conn():
    conn = MagicMock()
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value={"health_check": 1})
    conn.execute = AsyncMock(return_value="DELETE 1")
    return conn


class TestDatabasePool:

    @pytest.mark.asyncio
    async def test_acquire_before_initialize(self):
        pool = DatabasePool(PoolConfig(dsn="postgresql://localhost/test"))

        with pytest.raises(DatabaseConnectionError, match="not initialized"):
            await pool.execute_query("SELECT 1")

    @pytest.mark.asyncio
    async def test_initialize_failure(self):
        pool = DatabasePool(PoolConfig(dsn="postgresql://localhost/test"))

        with patch.object(connection.asyncpg, "create_pool", AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(DatabaseConnectionError, match="refused"):
                await pool.initialize()
        assert pool.is_initialized is False

    @pytest.mark.asyncio
    async def test_queries_and_close(self, conn):
        pool = DatabasePool(PoolConfig(dsn="postgresql://localhost/test", max_size=4))
        inner = fake_asyncpg_pool(conn)

        with patch.object(connection.asyncpg, "create_pool", AsyncMock(return_value=inner)) as create:
            await pool.initialize()
            await pool.initialize()

        create.assert_awaited_once()
        assert create.call_args.kwargs["max_size"] == 4
        assert await pool.health_check() is True
        assert await pool.execute_command("DELETE FROM students WHERE id = $1", "s1") == "DELETE 1"
        conn.execute.assert_awaited_with("DELETE FROM students WHERE id = $1", "s1")

        await pool.close()
        inner.close.assert_awaited_once()
        assert pool.is_initialized is False
        with pytest.raises(DatabaseConnectionError):
            await pool.execute_query("SELECT 1")

    @pytest.mark.asyncio
    async def test_health_check_reports_query_errors(self, conn):
        conn.fetchrow = AsyncMock(side_effect=asyncpg.PostgresError("boom"))
        pool = DatabasePool(PoolConfig(dsn="postgresql://localhost/test"))

        with patch.object(connection.asyncpg, "create_pool", AsyncMock(return_value=fake_asyncpg_pool(conn))):
            await pool.initialize()

        assert await pool.health_check() is False


class TestPoolConfigFromSettings:

    def test_requires_database_url(self):
        with patch.object(connection.settings.database, "url", None):
            with pytest.raises(DatabaseConnectionError, match="DATABASE_URL"):
                connection.create_pool_config_from_settings()

    def test_uses_pool_sizes(self):
        with patch.object(connection.settings.database, "url", "postgresql://localhost/test"):
            config = connection.create_pool_config_from_settings()

        assert config.dsn == "postgresql://localhost/test"
        assert config.min_size == connection.settings.database.pool_min_size
