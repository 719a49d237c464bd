"""
Storage layer for learning profiles.

Provides the repository interface, an in-memory implementation, and a
PostgreSQL implementation over an async connection pool.
"""

from .connection import (
    DatabaseConnectionError,
    DatabasePool,
    PoolConfig,
    close_database_pool,
    create_pool_config_from_settings,
    get_database_pool,
)
from .postgres import PostgresRepository
from .repositories import AssessmentRepository, InMemoryRepository

__all__ = [
    # Connection
    'DatabaseConnectionError',
    'DatabasePool',
    'PoolConfig',
    'close_database_pool',
    'create_pool_config_from_settings',
    'get_database_pool',

    # Repositories
    'AssessmentRepository',
    'InMemoryRepository',
    'PostgresRepository',
]
