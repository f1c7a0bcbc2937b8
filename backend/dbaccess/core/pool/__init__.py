"""
Connection pool for the backing database.

psycopg and pymysql are installed via pip; PoolConfig (product_type,
connection_string, ...) is enough to open connections.
"""

from .connect import connect, cursor_to_dicts, execute, rowcount
from .health import health_check
from .manager import (
    PoolManager,
    PoolState,
    PoolStats,
    get_pool_manager,
    reset_pool_manager,
)

__all__ = [
    "connect",
    "execute",
    "cursor_to_dicts",
    "rowcount",
    "health_check",
    "PoolManager",
    "PoolState",
    "PoolStats",
    "get_pool_manager",
    "reset_pool_manager",
]
