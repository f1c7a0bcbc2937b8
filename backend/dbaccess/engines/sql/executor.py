"""
DatabaseHelper: statement execution on top of PoolManager.

Supports:
- query / get_one: rows as list[dict] (column order as returned)
- execute: rowcount for INSERT/UPDATE/DELETE, auto-commit by default
- transaction: several statements on one connection, one commit, rollback on failure
- procedure: stored routine call with OUT binds
- exists / insert / update / delete / truncate / row_count: generated SQL

Every call borrows exactly one connection and gives it back before returning,
including on error. Table, column and where-clause text is trusted as-is; only
bind values are parameterised.
"""

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, NamedTuple

from dbaccess.core.errors import (
    BindTypeError,
    DbError,
    ExecutionError,
    PoolError,
    TransactionError,
)
from dbaccess.core.pool import (
    PoolManager,
    cursor_to_dicts,
    execute as pool_execute,
    get_pool_manager,
    rowcount,
)
from dbaccess.models import BindsArg, ProcedureResult, ProductTypeEnum, Statement

from . import builder
from .binds import (
    NormalizedBinds,
    driver_params,
    driver_value,
    normalize_binds,
    out_keys,
    positional_binds,
)

_log = logging.getLogger(__name__)


class _Prepared(NamedTuple):
    sql: str
    binds: NormalizedBinds
    params: list[Any] | dict[str, Any] | None
    options: Mapping[str, Any]


def _prepare(sql: str, binds: BindsArg = None, options: Mapping[str, Any] | None = None) -> _Prepared:
    """Validate binds and resolve :N markers before a connection is borrowed."""
    if not sql or not sql.strip():
        raise ValueError("sql is required")
    normalized = normalize_binds(binds)
    text, order = builder.rewrite_numeric_placeholders(sql)
    if order is not None:
        if isinstance(normalized, dict):
            raise BindTypeError(":N markers need positional binds, got a mapping")
        try:
            normalized = [normalized[i] for i in order]
        except IndexError:
            raise BindTypeError(
                f"Statement references :{max(order) + 1} but only {len(normalized)} bind(s) given"
            ) from None
    return _Prepared(text, normalized, driver_params(normalized), options or {})


def _as_statement(item: Any) -> Statement:
    """Accept Statement, (sql, binds) tuples, or {"sql"|"query": ..., "binds": ...} dicts."""
    if isinstance(item, Statement):
        return item
    if isinstance(item, Mapping):
        sql = item.get("sql", item.get("query"))
        return Statement(sql=sql, binds=item.get("binds"), options=item.get("options") or {})
    if isinstance(item, tuple) and 1 <= len(item) <= 2:
        return Statement(sql=item[0], binds=item[1] if len(item) == 2 else None)
    if isinstance(item, str):
        return Statement(sql=item)
    raise TypeError(f"Cannot build a transaction statement from {type(item).__name__}")


def _first_value(row: dict[str, Any] | None) -> Any:
    if not row:
        return None
    return next(iter(row.values()))


@contextmanager
def _statement_errors(sql: str, binds: Any, what: str = "Statement") -> Iterator[None]:
    """Turn driver failures into ExecutionError; pool and own errors pass through."""
    try:
        yield
    except (PoolError, DbError):
        raise
    except Exception as e:
        _log.error("%s execution failed: %s\n  sql: %s\n  binds: %r", what, e, sql, binds)
        raise ExecutionError(sql, binds, e) from e


class DatabaseHelper:
    """Query and DML helpers that borrow one pooled connection per call."""

    def __init__(self, pool: PoolManager) -> None:
        self._pool = pool

    @property
    def pool(self) -> PoolManager:
        return self._pool

    @property
    def _product_type(self) -> ProductTypeEnum:
        return self._pool.config.product_type

    def _run(self, conn: Any, p: _Prepared) -> Any:
        timeout = p.options.get("statement_timeout", self._pool.config.statement_timeout_seconds)
        _log.debug("Executing SQL (%d bind(s)): %s", len(p.binds), p.sql)
        return pool_execute(
            conn,
            p.sql,
            p.params,
            product_type=self._product_type,
            statement_timeout=timeout,
        )

    # ------------------------------------------------------------------
    # One-shot statements
    # ------------------------------------------------------------------

    def query(
        self,
        sql: str,
        binds: BindsArg = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Run a SELECT and return all rows. An empty result is ``[]``.

        options: ``max_rows`` caps the rows fetched; ``fetch_size`` sets the
        cursor arraysize used to read the result in batches; ``statement_timeout``
        (seconds) overrides the pool default for this statement.
        """
        p = _prepare(sql, binds, options)
        with _statement_errors(sql, binds, "Query"):
            with self._pool.connection() as conn:
                cur = self._run(conn, p)
                try:
                    rows = cursor_to_dicts(
                        cur,
                        max_rows=p.options.get("max_rows"),
                        fetch_size=p.options.get("fetch_size"),
                    )
                finally:
                    cur.close()
        _log.debug("Query executed successfully. Rows returned: %d", len(rows))
        return rows

    def get_one(self, sql: str, binds: BindsArg = None) -> dict[str, Any] | None:
        """First row of the result, or None when there are no rows."""
        rows = self.query(sql, binds, {"max_rows": 1})
        return rows[0] if rows else None

    def execute(self, sql: str, binds: BindsArg = None, auto_commit: bool = True) -> int:
        """
        Run INSERT/UPDATE/DELETE and return rows affected.

        With ``auto_commit=False`` the change is rolled back when the connection
        goes back to the pool; use transaction() to group uncommitted work.
        """
        p = _prepare(sql, binds)
        with _statement_errors(sql, binds, "Non-query"):
            with self._pool.connection() as conn:
                cur = self._run(conn, p)
                try:
                    affected = rowcount(cur)
                finally:
                    cur.close()
                if auto_commit:
                    conn.commit()
        _log.debug("Non-query executed successfully. Rows affected: %d", affected)
        return affected

    # ------------------------------------------------------------------
    # Transaction
    # ------------------------------------------------------------------

    def transaction(self, statements: Sequence[Any]) -> None:
        """
        Run *statements* in order on one connection and commit once.

        If statement k fails, everything is rolled back and TransactionError
        (failed_index=k) is raised. A rollback failure is logged and attached
        as ``rollback_error``; it never replaces the original cause.
        """
        units = [_as_statement(s) for s in statements]
        prepared = [_prepare(u.sql, u.binds, u.options) for u in units]
        if not prepared:
            _log.debug("Empty transaction, nothing to do")
            return

        with self._pool.connection() as conn:
            index = 0
            try:
                for index, p in enumerate(prepared):
                    self._run(conn, p).close()
                index = len(prepared)
                conn.commit()
            except Exception as e:
                rollback_error: Exception | None = None
                try:
                    conn.rollback()
                    _log.warning("Transaction rolled back due to error")
                except Exception as rb:
                    rollback_error = rb
                    _log.error("Error during rollback: %s", rb)
                failed = units[index] if index < len(units) else None
                _log.error("Transaction failed at statement %d: %s", index, e)
                raise TransactionError(
                    index,
                    e,
                    sql=failed.sql if failed else None,
                    binds=failed.binds if failed else None,
                    rollback_error=rollback_error,
                ) from e

        _log.info("Transaction completed successfully. %d statements executed.", len(prepared))

    # ------------------------------------------------------------------
    # Stored procedures
    # ------------------------------------------------------------------

    def procedure(
        self,
        name: str,
        binds: BindsArg = None,
        options: Mapping[str, Any] | None = None,
    ) -> ProcedureResult:
        """
        Call stored procedure *name*. OutBind entries come back in
        ``result.out_binds`` keyed by name or position.

        options: ``auto_commit`` (default True).
        """
        opts = options or {}
        normalized = normalize_binds(binds)
        if self._product_type == ProductTypeEnum.MYSQL and isinstance(normalized, dict):
            raise BindTypeError("MySQL procedures take positional binds only")
        args = list(normalized) if isinstance(normalized, dict) else len(normalized)
        sql = builder.call_sql(name, args)

        with _statement_errors(sql, binds, f"Procedure {name}"):
            with self._pool.connection() as conn:
                if self._product_type == ProductTypeEnum.MYSQL:
                    result = self._call_mysql(conn, name, normalized)
                else:
                    result = self._call_postgres(conn, sql, normalized, opts)
                if opts.get("auto_commit", True):
                    conn.commit()
        _log.info("Procedure %s executed successfully", name)
        return result

    def _call_postgres(
        self, conn: Any, sql: str, binds: NormalizedBinds, opts: Mapping[str, Any]
    ) -> ProcedureResult:
        if isinstance(binds, dict):
            # named notation is still positional on the wire: name => %s
            params = [driver_value(b) for b in binds.values()] or None
        else:
            params = driver_params(binds)
        p = _Prepared(sql, binds, params, opts)
        cur = self._run(conn, p)
        try:
            rows = cursor_to_dicts(cur)
        finally:
            cur.close()

        keys = out_keys(binds)
        if not keys:
            return ProcedureResult(out_binds={}, rows=rows)
        # CALL returns one row holding the OUT/INOUT values
        row = rows[0] if rows else {}
        if isinstance(binds, dict):
            out = {k: row.get(k) for k in keys}
        else:
            values = list(row.values())
            out = {k: (values[i] if i < len(values) else None) for i, k in enumerate(keys)}
        return ProcedureResult(out_binds=out, rows=[])

    def _call_mysql(self, conn: Any, name: str, binds: NormalizedBinds) -> ProcedureResult:
        args = [driver_value(b) for b in binds]
        cur = conn.cursor()
        try:
            cur.callproc(name, args)
            rows = cursor_to_dicts(cur)
            while cur.nextset():
                rows.extend(cursor_to_dicts(cur))
            out: dict[str | int, Any] = {}
            keys = out_keys(binds)
            if keys:
                # pymysql stores callproc args in server variables @_<name>_<i>
                cur.execute("SELECT " + ", ".join(f"@_{name}_{i}" for i in keys))
                values = cur.fetchone() or ()
                out = {k: (values[n] if n < len(values) else None) for n, k in enumerate(keys)}
        finally:
            cur.close()
        return ProcedureResult(out_binds=out, rows=rows)

    # ------------------------------------------------------------------
    # Table helpers
    # ------------------------------------------------------------------

    def exists(self, table: str, where_clause: str, binds: BindsArg = None) -> bool:
        """True when at least one row of *table* matches *where_clause*."""
        row = self.get_one(builder.count_sql(table, where_clause), binds)
        return int(_first_value(row) or 0) > 0

    def insert(
        self,
        table: str,
        data: Mapping[str, Any],
        returning_column: str | None = None,
    ) -> Any:
        """
        Insert one row; column order follows *data*.

        Returns the generated value of *returning_column* when given (None if
        the database produced none), else the number of rows inserted.
        """
        if not data:
            raise ValueError("insert requires at least one column value")
        columns = list(data)
        pt = self._product_type
        sql = builder.insert_sql(table, columns, returning_column, pt)
        values = [data[c] for c in columns]
        p = _prepare(sql, values)

        with _statement_errors(sql, values, f"Insert into {table}"):
            with self._pool.connection() as conn:
                cur = self._run(conn, p)
                try:
                    if returning_column:
                        result = self._generated_value(cur, pt)
                    else:
                        result = rowcount(cur)
                finally:
                    cur.close()
                conn.commit()
        _log.debug("Record inserted into %s", table)
        return result

    @staticmethod
    def _generated_value(cur: Any, product_type: ProductTypeEnum) -> Any:
        if product_type == ProductTypeEnum.MYSQL:
            # lastrowid is 0 when no AUTO_INCREMENT value was generated
            return cur.lastrowid or None
        row = cur.fetchone()
        return row[0] if row else None

    def update(
        self,
        table: str,
        data: Mapping[str, Any],
        where_clause: str,
        where_binds: BindsArg = None,
    ) -> int:
        """
        UPDATE *table*; binds are the SET values followed by *where_binds*.

        A where clause written with :N markers numbers its binds after the SET
        values: ``update("t", {"a": 1}, "id = :2", [7])``.
        """
        if not data:
            raise ValueError("update requires at least one column value")
        numbered = builder.has_numeric_markers(where_clause or "")
        sql = builder.update_sql(table, list(data), where_clause, numbered)
        values = [*data.values(), *positional_binds(where_binds)]
        return self.execute(sql, values)

    def delete(self, table: str, where_clause: str, binds: BindsArg = None) -> int:
        return self.execute(builder.delete_sql(table, where_clause), binds)

    def truncate(self, table: str) -> None:
        self.execute(builder.truncate_sql(table))
        _log.info("Table %s truncated", table)

    def row_count(self, table: str) -> int:
        row = self.get_one(builder.count_sql(table))
        return int(_first_value(row) or 0)


def get_database_helper() -> DatabaseHelper:
    """DatabaseHelper bound to the process-wide PoolManager."""
    return DatabaseHelper(get_pool_manager())
