"""
DB connection helpers for the pool.

Uses psycopg (PostgreSQL) or pymysql (MySQL) based on PoolConfig.product_type.
Connections are opened with autocommit off; callers commit explicitly.
"""

import logging
from typing import Any

import psycopg
import pymysql

from dbaccess.models import PoolConfig, ProductTypeEnum

_log = logging.getLogger(__name__)


def connect(config: PoolConfig) -> Any:
    """
    Open one raw connection described by *config*.

    This is the pool's connection factory; execution code never calls it
    directly and borrows from PoolManager instead.
    """
    target = config.parse_target()
    timeout = config.connect_timeout_seconds

    if config.product_type == ProductTypeEnum.POSTGRES:
        return psycopg.connect(
            host=target.host,
            port=target.port,
            dbname=target.database,
            user=target.user,
            password=target.password,
            connect_timeout=timeout,
            autocommit=False,
        )
    if config.product_type == ProductTypeEnum.MYSQL:
        return pymysql.connect(
            host=target.host,
            port=target.port,
            database=target.database,
            user=target.user,
            password=target.password,
            connect_timeout=timeout,
            autocommit=False,
        )
    raise ValueError(f"Unsupported product_type: {config.product_type}")


def _set_statement_timeout(
    conn: Any, product_type: ProductTypeEnum, timeout_sec: float | None
) -> None:
    # None resets to the server default (0 = no limit)
    timeout_ms = int(timeout_sec * 1000) if timeout_sec else 0
    cur = conn.cursor()
    try:
        if product_type == ProductTypeEnum.POSTGRES:
            # SET takes no bind parameters; set_config is the parameterisable form
            cur.execute("SELECT set_config('statement_timeout', %s, false)", (str(timeout_ms),))
        elif product_type == ProductTypeEnum.MYSQL:
            cur.execute("SET SESSION max_execution_time = %s", (timeout_ms,))
    finally:
        cur.close()


def execute(
    conn: Any,
    sql: str,
    params: dict | list | tuple | None = None,
    *,
    product_type: ProductTypeEnum | None = None,
    statement_timeout: float | None = None,
) -> Any:
    """
    Execute SQL and return the cursor. Caller uses cursor_to_dicts(cursor) or rowcount(cursor).

    - statement_timeout (seconds): when set together with product_type, applies
      statement_timeout (Postgres) or max_execution_time (MySQL) before the
      statement and resets it after.
    """
    use_timeout = bool(statement_timeout) and product_type is not None

    if use_timeout:
        _set_statement_timeout(conn, product_type, statement_timeout)

    cur = conn.cursor()
    try:
        if params is not None:
            cur.execute(sql, params)
        else:
            cur.execute(sql)
    except Exception:
        cur.close()
        raise
    finally:
        if use_timeout:
            try:
                _set_statement_timeout(conn, product_type, None)
            except Exception as e:
                # Fails inside an aborted transaction; the rollback that follows resets it
                _log.debug("statement timeout reset failed: %s", e)

    return cur


def cursor_to_dicts(
    cursor: Any, max_rows: int | None = None, fetch_size: int | None = None
) -> list[dict[str, Any]]:
    """
    Convert cursor result to list of dicts. Works for both psycopg and pymysql.

    max_rows caps the rows fetched. fetch_size sets cursor.arraysize and reads
    the result in batches of that size.
    """
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    if max_rows:
        rows = cursor.fetchmany(max_rows)
    elif fetch_size:
        cursor.arraysize = fetch_size
        rows = []
        while True:
            batch = cursor.fetchmany(fetch_size)
            if not batch:
                break
            rows.extend(batch)
    else:
        rows = cursor.fetchall()
    return [dict(zip(names, row, strict=True)) for row in rows]


def rowcount(cursor: Any) -> int:
    """Rows affected by the last statement; drivers report -1/None when unknown."""
    rc = cursor.rowcount
    return rc if rc is not None and rc >= 0 else 0
