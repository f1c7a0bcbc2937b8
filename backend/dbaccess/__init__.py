"""
dbaccess: pooled relational-database access for test automation.

    from dbaccess import DatabaseHelper, PoolManager

    pool = PoolManager(config)
    db = DatabaseHelper(pool)
    rows = db.query("SELECT * FROM orders WHERE id = %s", [42])
    pool.shutdown()
"""

from dbaccess.core.errors import (
    BindTypeError,
    DatabaseAccessError,
    DbError,
    ExecutionError,
    PoolAcquireError,
    PoolError,
    PoolInitError,
    TransactionError,
)
from dbaccess.core.pool import (
    PoolManager,
    PoolState,
    PoolStats,
    get_pool_manager,
    reset_pool_manager,
)
from dbaccess.engines.sql import DatabaseHelper, get_database_helper
from dbaccess.models import (
    NullBind,
    NumberBind,
    OutBind,
    OutTypeEnum,
    PoolConfig,
    ProcedureResult,
    ProductTypeEnum,
    Statement,
    TextBind,
    TimestampBind,
)

__all__ = [
    "BindTypeError",
    "DatabaseAccessError",
    "DatabaseHelper",
    "DbError",
    "ExecutionError",
    "NullBind",
    "NumberBind",
    "OutBind",
    "OutTypeEnum",
    "PoolAcquireError",
    "PoolConfig",
    "PoolError",
    "PoolInitError",
    "PoolManager",
    "PoolState",
    "PoolStats",
    "ProcedureResult",
    "ProductTypeEnum",
    "Statement",
    "TextBind",
    "TimestampBind",
    "TransactionError",
    "get_database_helper",
    "get_pool_manager",
    "reset_pool_manager",
]
