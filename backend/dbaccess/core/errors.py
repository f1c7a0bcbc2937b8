"""
Error taxonomy for the database access layer.

PoolError (PoolInitError, PoolAcquireError) covers the connection pool;
DbError (ExecutionError, TransactionError, BindTypeError) covers statements.
"""

from typing import Any


class DatabaseAccessError(Exception):
    """Base class for every error raised by dbaccess."""

    pass


class PoolError(DatabaseAccessError):
    pass


class PoolInitError(PoolError):
    """Pool creation failed (database unreachable or credentials rejected)."""

    pass


class PoolAcquireError(PoolError):
    """No connection became available within the acquire timeout."""

    pass


class DbError(DatabaseAccessError):
    pass


class BindTypeError(DbError, ValueError):
    """Raised when a bind value or bind container has an unsupported shape."""

    pass


class ExecutionError(DbError):
    """A single statement failed. Carries the statement text and binds."""

    def __init__(self, sql: str, binds: Any, cause: BaseException) -> None:
        self.sql = sql
        self.binds = binds
        self.cause = cause
        super().__init__(
            f"Statement execution failed: {cause}\n  sql: {sql}\n  binds: {binds!r}"
        )


class TransactionError(DbError):
    """
    One statement of a transaction failed and the transaction was rolled back.

    failed_index is the position of the failing statement; it equals the number
    of statements when the final commit failed. rollback_error is set when the
    rollback itself failed too; cause stays the original failure.
    """

    def __init__(
        self,
        failed_index: int,
        cause: BaseException,
        *,
        sql: str | None = None,
        binds: Any = None,
        rollback_error: BaseException | None = None,
    ) -> None:
        self.failed_index = failed_index
        self.cause = cause
        self.sql = sql
        self.binds = binds
        self.rollback_error = rollback_error
        msg = f"Transaction failed at statement {failed_index}: {cause}"
        if sql is not None:
            msg += f"\n  sql: {sql}\n  binds: {binds!r}"
        if rollback_error is not None:
            msg += f"\n  rollback also failed: {rollback_error}"
        super().__init__(msg)
