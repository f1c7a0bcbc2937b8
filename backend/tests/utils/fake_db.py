"""
In-memory stand-in for a DB-API database, used as PoolManager(connect_fn=...).

FakeDatabase records every statement, keeps per-connection pending work, and
moves it to ``committed`` on commit, so tests can check what became durable.
Failures are injected by substring: ``db.fail_on["order_items"] = Exception(...)``.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass
class FakeResult:
    columns: list[str] = field(default_factory=list)
    rows: list[tuple] = field(default_factory=list)
    rowcount: int = -1
    lastrowid: int | None = None


Responder = Callable[[str, Any], "FakeResult | None"]


class FakeDatabase:
    def __init__(self, responder: Responder | None = None, delay: float = 0.0) -> None:
        self.responder = responder
        self.delay = delay
        self.fail_on: dict[str, Exception] = {}
        self.connect_error: Exception | None = None
        self.connect_errors_after: int | None = None
        self.rollback_error: Exception | None = None
        self.close_error: Exception | None = None
        self.executed: list[tuple[str, Any]] = []
        self.committed: list[tuple[str, Any]] = []
        self.connections: list["FakeConnection"] = []
        self.open_count = 0
        self.max_open_seen = 0
        self._lock = threading.Lock()

    def connect(self, config: Any) -> "FakeConnection":
        with self._lock:
            if self.connect_error is not None:
                raise self.connect_error
            if (
                self.connect_errors_after is not None
                and len(self.connections) >= self.connect_errors_after
            ):
                raise ConnectionError("connection refused")
            conn = FakeConnection(self)
            self.connections.append(conn)
            self.open_count += 1
            self.max_open_seen = max(self.max_open_seen, self.open_count)
            return conn

    def committed_sql(self) -> list[str]:
        return [sql for sql, _ in self.committed]

    def _on_close(self) -> None:
        with self._lock:
            self.open_count -= 1

    def _run(self, sql: str, params: Any) -> FakeResult:
        with self._lock:
            self.executed.append((sql, params))
        if self.delay:
            time.sleep(self.delay)
        for needle, error in self.fail_on.items():
            if needle in sql:
                raise error
        result = self.responder(sql, params) if self.responder else None
        if result is None:
            is_select = sql.lstrip().upper().startswith("SELECT")
            result = FakeResult(rowcount=0 if is_select else 1)
        return result

    def _commit(self, pending: list[tuple[str, Any]]) -> None:
        with self._lock:
            self.committed.extend(pending)


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self._conn = conn
        self.description: list[tuple] | None = None
        self.rowcount = -1
        self.arraysize = 1
        self.lastrowid: int | None = None
        self.closed = False
        self.callproc_calls: list[tuple[str, list[Any]]] = []
        self._rows: list[tuple] = []

    def execute(self, sql: str, params: Any = None) -> None:
        self._conn._check_open()
        result = self._conn.db._run(sql, params)
        if not sql.lstrip().upper().startswith(("SELECT", "SET")):
            self._conn.pending.append((sql, params))
        self._load(result)

    def callproc(self, name: str, args: list[Any]) -> list[Any]:
        self._conn._check_open()
        self.callproc_calls.append((name, list(args)))
        result = self._conn.db._run(f"CALL {name}", args)
        self._load(result)
        return args

    def nextset(self) -> bool | None:
        return None

    def _load(self, result: FakeResult) -> None:
        self.description = [(c,) for c in result.columns] if result.columns else None
        self._rows = list(result.rows)
        self.rowcount = result.rowcount if result.rowcount >= 0 else len(result.rows)
        self.lastrowid = result.lastrowid

    def fetchall(self) -> list[tuple]:
        rows, self._rows = self._rows, []
        return rows

    def fetchmany(self, size: int = 1) -> list[tuple]:
        rows, self._rows = self._rows[:size], self._rows[size:]
        return rows

    def fetchone(self) -> tuple | None:
        return self._rows.pop(0) if self._rows else None

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.closed = False
        self.pending: list[tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0
        self.cursors: list[FakeCursor] = []

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("connection is closed")

    def cursor(self) -> FakeCursor:
        self._check_open()
        cur = FakeCursor(self)
        self.cursors.append(cur)
        return cur

    def commit(self) -> None:
        self._check_open()
        self.db._commit(self.pending)
        self.pending = []
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1
        if self.db.rollback_error is not None:
            raise self.db.rollback_error
        self.pending = []

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.pending = []
        self.db._on_close()
        if self.db.close_error is not None:
            raise self.db.close_error


def rows_result(columns: list[str], rows: list[tuple]) -> FakeResult:
    return FakeResult(columns=columns, rows=rows)
