"""
SQL text for the table-oriented helpers (exists, insert, update, delete, truncate,
row count, procedure call).

Table, column and where-clause text is caller-trusted and interpolated as-is;
only bind values are parameterised. Placeholders use the driver style ``%s``
shared by psycopg and pymysql.
"""

import re
from collections.abc import Sequence

from dbaccess.core.errors import BindTypeError
from dbaccess.models import ProductTypeEnum

PLACEHOLDER = "%s"

_NUMERIC_MARKER_RE = re.compile(r":(\d+)")


def _require(name: str, what: str) -> str:
    s = (name or "").strip()
    if not s:
        raise ValueError(f"{what} is required")
    return s


def placeholders(count: int) -> str:
    return ", ".join([PLACEHOLDER] * count)


def count_sql(table: str, where_clause: str | None = None) -> str:
    sql = f"SELECT COUNT(*) AS count FROM {_require(table, 'table')}"
    if where_clause is not None:
        sql += f" WHERE {_require(where_clause, 'where_clause')}"
    return sql


def insert_sql(
    table: str,
    columns: Sequence[str],
    returning_column: str | None = None,
    product_type: ProductTypeEnum = ProductTypeEnum.POSTGRES,
) -> str:
    """
    INSERT with one placeholder per column, in the given order.

    Postgres appends ``RETURNING <col>``; MySQL reads the generated key from
    cursor.lastrowid instead, so nothing is appended.
    """
    if not columns:
        raise ValueError("insert requires at least one column")
    cols = ", ".join(_require(c, "column") for c in columns)
    sql = f"INSERT INTO {_require(table, 'table')} ({cols}) VALUES ({placeholders(len(columns))})"
    if returning_column and product_type == ProductTypeEnum.POSTGRES:
        sql += f" RETURNING {_require(returning_column, 'returning_column')}"
    return sql


def update_sql(
    table: str, columns: Sequence[str], where_clause: str, numbered: bool = False
) -> str:
    """
    UPDATE ... SET a = %s, b = %s WHERE ...; set binds come before where binds.

    With *numbered* the SET clause uses :1..:n so a where clause written with
    :N markers continues the numbering from :n+1.
    """
    if not columns:
        raise ValueError("update requires at least one column")
    marks = [f":{i}" if numbered else PLACEHOLDER for i in range(1, len(columns) + 1)]
    sets = ", ".join(f"{_require(c, 'column')} = {m}" for c, m in zip(columns, marks))
    return (
        f"UPDATE {_require(table, 'table')} SET {sets} "
        f"WHERE {_require(where_clause, 'where_clause')}"
    )


def delete_sql(table: str, where_clause: str) -> str:
    return f"DELETE FROM {_require(table, 'table')} WHERE {_require(where_clause, 'where_clause')}"


def truncate_sql(table: str) -> str:
    return f"TRUNCATE TABLE {_require(table, 'table')}"


def call_sql(name: str, arg_names: Sequence[str] | int) -> str:
    """
    Postgres CALL statement. *arg_names* is the bind count for positional
    binds or the parameter names for named binds (``name => %s``).
    """
    proc = _require(name, "procedure name")
    if isinstance(arg_names, int):
        args = placeholders(arg_names)
    else:
        args = ", ".join(f"{_require(n, 'parameter name')} => {PLACEHOLDER}" for n in arg_names)
    return f"CALL {proc}({args})"


def rewrite_numeric_placeholders(sql: str) -> tuple[str, list[int] | None]:
    """
    Rewrite ``:1``-style markers outside quotes and comments into ``%s``.

    Returns (sql, order) where order lists the 0-based bind index for each
    ``%s`` in the new text, so ``:2 ... :1`` and repeated markers work. Returns
    (sql, None) unchanged when the statement has no numeric markers. Literal
    ``%`` is doubled in rewritten text. Mixing ``:N`` with ``%s`` is rejected.
    """
    out: list[str] = []
    order: list[int] = []
    saw_format = False
    i = 0
    length = len(sql)

    while i < length:
        ch = sql[i]

        if ch in ("'", '"'):
            end = i + 1
            while end < length:
                if sql[end] == ch:
                    if end + 1 < length and sql[end + 1] == ch:
                        end += 2
                        continue
                    break
                end += 1
            out.append(sql[i : end + 1].replace("%", "%%"))
            i = end + 1
            continue

        if ch == "-" and sql.startswith("--", i):
            end = sql.find("\n", i)
            end = length if end == -1 else end
            out.append(sql[i:end].replace("%", "%%"))
            i = end
            continue

        if ch == "/" and sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = length if end == -1 else end + 2
            out.append(sql[i:end].replace("%", "%%"))
            i = end
            continue

        if ch == ":":
            prev = sql[i - 1] if i > 0 else ""
            m = _NUMERIC_MARKER_RE.match(sql, i)
            # skip ::casts and slices such as arr[1:2]
            if m and prev != ":" and not prev.isalnum() and not sql.startswith("::", i):
                index = int(m.group(1))
                if index < 1:
                    raise BindTypeError(f"Bind marker :{index} is invalid; markers start at :1")
                order.append(index - 1)
                out.append(PLACEHOLDER)
                i = m.end()
                continue

        if ch == "%":
            saw_format = saw_format or sql.startswith("%s", i)
            out.append("%%")
            i += 1
            continue

        out.append(ch)
        i += 1

    if not order:
        return sql, None
    if saw_format:
        raise BindTypeError("Mixed bind styles: use either %s or :N markers, not both")
    return "".join(out), order


def has_numeric_markers(sql: str) -> bool:
    return rewrite_numeric_placeholders(sql)[1] is not None
