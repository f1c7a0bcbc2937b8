"""
Bounded connection pool for one backing database.

Lazily initialised on first acquire, grows by ``increment`` up to ``max_size``,
blocks acquirers for at most ``acquire_timeout_seconds``, reclaims idle
connections above ``min_size``, and drains borrowed connections on shutdown.
Includes health-check on checkout, max-age eviction, and a thread-safe
process-wide default instance.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, NamedTuple

from pydantic import ValidationError

from dbaccess.core.config import settings
from dbaccess.core.errors import PoolAcquireError, PoolInitError
from dbaccess.models import PoolConfig

from .connect import connect
from .health import health_check

_log = logging.getLogger(__name__)

_PING_IDLE_THRESHOLD = 30.0  # only ping connections idle longer than this (seconds)


class PoolState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"


class _PoolEntry(NamedTuple):
    conn: Any
    created_at: float  # time.monotonic() when the connection was opened
    last_used: float   # time.monotonic() when last returned to pool


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time pool counters."""

    state: PoolState
    min_size: int
    max_size: int
    open_connections: int
    idle_connections: int
    active_connections: int
    peak_open_connections: int
    requests_waiting: int
    total_acquired: int
    total_released: int
    total_created: int
    total_closed: int
    total_timeouts: int
    total_errors: int
    created_at: datetime | None

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["state"] = self.state.value
        return d


class PoolManager:
    """Bounded pool of connections to the database described by a PoolConfig."""

    def __init__(
        self,
        config: PoolConfig | None = None,
        *,
        connect_fn: Callable[[PoolConfig], Any] | None = None,
    ) -> None:
        self._config = config
        self._connect_fn = connect_fn or connect
        self._cond = threading.Condition()
        self._state = PoolState.UNINITIALIZED
        self._initializing = False
        self._idle: list[_PoolEntry] = []
        self._borrowed: dict[int, _PoolEntry] = {}
        self._opening = 0
        self._waiting = 0
        self._created_at: datetime | None = None
        self._reset_counters()

    @property
    def config(self) -> PoolConfig:
        """The active PoolConfig (from settings when none was given)."""
        if self._config is None:
            self._config = settings.pool_config
        return self._config

    @property
    def state(self) -> PoolState:
        return self._state

    def is_initialized(self) -> bool:
        return self._state is PoolState.READY

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, config: PoolConfig | None = None) -> None:
        """
        Create the pool and open ``min_size`` connections.

        No-op when the pool is already ready. Raises PoolInitError if the
        database cannot be reached; nothing is retried.
        """
        with self._cond:
            while self._initializing:
                self._cond.wait()
            if self._state is PoolState.READY:
                _log.debug("Database pool already initialized")
                return
            if self._state is PoolState.CLOSING:
                raise PoolInitError("Database pool is shutting down")
            if config is not None:
                self._config = config
            try:
                cfg = self.config
            except ValidationError as e:
                raise PoolInitError(f"Invalid pool configuration: {e}") from e
            self._initializing = True

        opened: list[Any] = []
        try:
            for _ in range(cfg.min_size):
                opened.append(self._connect_fn(cfg))
        except Exception as e:
            for conn in opened:
                self._close_quiet(conn)
            with self._cond:
                self._initializing = False
                self._cond.notify_all()
            _log.error(
                "Failed to initialize database pool for %s: %s", cfg.display_target, e
            )
            raise PoolInitError(
                f"Failed to initialize database pool for {cfg.display_target}: {e}"
            ) from e

        now = time.monotonic()
        with self._cond:
            self._reset_counters()
            self._idle = [_PoolEntry(conn=c, created_at=now, last_used=now) for c in opened]
            self._borrowed = {}
            self._total_created = len(opened)
            self._peak_open = len(opened)
            self._created_at = datetime.now(timezone.utc)
            self._state = PoolState.READY
            self._initializing = False
            self._cond.notify_all()

        _log.info(
            "Database connection pool initialized: size %d-%d (+%d), target %s",
            cfg.min_size,
            cfg.max_size,
            cfg.increment,
            cfg.display_target,
        )

    def shutdown(self, drain_seconds: float | None = None) -> None:
        """
        Close the pool. Waits up to *drain_seconds* for borrowed connections to
        come back, then force-closes the rest. No-op if not ready.
        """
        if drain_seconds is None:
            drain_seconds = settings.DB_POOL_DRAIN_SECONDS

        with self._cond:
            if self._state is not PoolState.READY:
                _log.debug("shutdown: pool is %s, nothing to do", self._state.value)
                return
            self._state = PoolState.CLOSING
            idle = self._idle
            self._idle = []
            self._total_closed += len(idle)
            self._cond.notify_all()

        for entry in idle:
            self._close_quiet(entry.conn)

        deadline = time.monotonic() + max(drain_seconds, 0)
        with self._cond:
            while self._borrowed or self._opening:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._cond.wait(remaining)
            leftovers = list(self._borrowed.values())
            self._borrowed = {}
            self._total_closed += len(leftovers)
            self._state = PoolState.CLOSED
            self._cond.notify_all()

        if leftovers:
            _log.warning(
                "Force-closing %d connection(s) still in use after %.1fs drain",
                len(leftovers),
                drain_seconds,
            )
        for entry in leftovers:
            self._close_quiet(entry.conn)
        _log.info("Database pool closed")

    # ------------------------------------------------------------------
    # Borrow / return
    # ------------------------------------------------------------------

    def acquire(self) -> Any:
        """
        Borrow a connection, initialising the pool first if needed.

        Raises PoolAcquireError when none is free within acquire_timeout_seconds.
        """
        if self._state is PoolState.CLOSING:
            raise PoolAcquireError("Database pool is shutting down")
        if self._state is not PoolState.READY:
            self.initialize()

        cfg = self.config
        deadline = time.monotonic() + cfg.acquire_timeout_seconds
        while True:
            entry, grow = self._reserve(cfg, deadline)
            if entry is None:
                return self._grow(cfg, grow)
            if self._usable(entry, cfg):
                with self._cond:
                    self._total_acquired += 1
                _log.debug("Acquired pooled connection")
                return entry.conn
            self._discard(entry)

    def release(self, conn: Any, *, discard: bool = False) -> None:
        """
        Return a borrowed connection. It is rolled back first; a connection that
        cannot be rolled back, or is released with ``discard=True``, is closed.
        Never raises.
        """
        key = id(conn)
        with self._cond:
            entry = self._borrowed.get(key)
        if entry is None or entry.conn is not conn:
            _log.warning("Releasing a connection this pool does not own; closing it")
            self._close_quiet(conn)
            return

        if not discard:
            try:
                conn.rollback()
            except Exception as e:
                _log.warning("Rollback on release failed, discarding connection: %s", e)
                discard = True

        stale: list[_PoolEntry] = []
        with self._cond:
            self._borrowed.pop(key, None)
            self._total_released += 1
            keep = not discard and self._state is PoolState.READY
            if keep:
                now = time.monotonic()
                self._idle.append(entry._replace(last_used=now))
                stale = self._reap_idle(self.config, now)
            else:
                self._total_closed += 1
            self._cond.notify_all()

        if not keep:
            self._close_quiet(conn)
        for e in stale:
            self._close_quiet(e.conn)
        _log.debug("Released connection (closed=%s)", not keep)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """
        Borrow a connection for the duration of a ``with`` block. A connection
        whose block raised is closed instead of going back to the idle list.
        """
        conn = self.acquire()
        try:
            yield conn
        except BaseException:
            self.release(conn, discard=True)
            raise
        self.release(conn)

    def statistics(self) -> PoolStats | None:
        """Return pool counters, or None when no pool is live."""
        with self._cond:
            if self._state in (PoolState.UNINITIALIZED, PoolState.CLOSED):
                return None
            cfg = self.config
            return PoolStats(
                state=self._state,
                min_size=cfg.min_size,
                max_size=cfg.max_size,
                open_connections=self._open_count(),
                idle_connections=len(self._idle),
                active_connections=len(self._borrowed),
                peak_open_connections=self._peak_open,
                requests_waiting=self._waiting,
                total_acquired=self._total_acquired,
                total_released=self._total_released,
                total_created=self._total_created,
                total_closed=self._total_closed,
                total_timeouts=self._total_timeouts,
                total_errors=self._total_errors,
                created_at=self._created_at,
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset_counters(self) -> None:
        self._total_acquired = 0
        self._total_released = 0
        self._total_created = 0
        self._total_closed = 0
        self._total_timeouts = 0
        self._total_errors = 0
        self._peak_open = 0

    def _open_count(self) -> int:
        return len(self._idle) + len(self._borrowed) + self._opening

    def _reserve(self, cfg: PoolConfig, deadline: float) -> tuple[_PoolEntry | None, int]:
        """
        Under the lock: take an idle entry (moved to borrowed) or reserve slots
        to grow by. Waits for a release when the pool is at max_size.
        """
        stale: list[_PoolEntry] = []
        try:
            with self._cond:
                while True:
                    if self._state is not PoolState.READY:
                        raise PoolAcquireError("Database pool was shut down")
                    stale.extend(self._reap_idle(cfg, time.monotonic()))
                    if self._idle:
                        entry = self._idle.pop()
                        self._borrowed[id(entry.conn)] = entry
                        return entry, 0
                    grow = min(cfg.increment, cfg.max_size - self._open_count())
                    if grow > 0:
                        self._opening += grow
                        self._peak_open = max(self._peak_open, self._open_count())
                        return None, grow
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        self._total_timeouts += 1
                        raise PoolAcquireError(
                            f"Timed out after {cfg.acquire_timeout_seconds}s waiting for a "
                            f"connection (pool max {cfg.max_size} in use)"
                        )
                    self._waiting += 1
                    try:
                        self._cond.wait(remaining)
                    finally:
                        self._waiting -= 1
        finally:
            for e in stale:
                self._close_quiet(e.conn)

    def _grow(self, cfg: PoolConfig, count: int) -> Any:
        """Open *count* reserved connections outside the lock; hand out the first."""
        opened: list[Any] = []
        error: Exception | None = None
        for _ in range(count):
            try:
                opened.append(self._connect_fn(cfg))
            except Exception as e:
                error = e
                break

        now = time.monotonic()
        orphans: list[Any] = []
        with self._cond:
            self._opening -= count
            self._total_created += len(opened)
            if error is not None:
                self._total_errors += 1
            if opened and self._state is not PoolState.READY:
                orphans = opened
                opened = []
                self._total_closed += len(orphans)
            for conn in opened[1:]:
                self._idle.append(_PoolEntry(conn=conn, created_at=now, last_used=now))
            if opened:
                first = opened[0]
                self._borrowed[id(first)] = _PoolEntry(conn=first, created_at=now, last_used=now)
                self._total_acquired += 1
            self._cond.notify_all()

        for conn in orphans:
            self._close_quiet(conn)
        if orphans:
            raise PoolAcquireError("Database pool was shut down while opening a connection")
        if not opened:
            _log.error("Failed to open database connection: %s", error)
            raise PoolAcquireError(f"Failed to open database connection: {error}") from error
        if error is not None:
            _log.warning("Opened %d of %d connection(s): %s", len(opened), count, error)
        _log.debug("Pool grew by %d connection(s)", len(opened))
        return opened[0]

    def _reap_idle(self, cfg: PoolConfig, now: float) -> list[_PoolEntry]:
        """Under the lock: drop idle entries past idle timeout while above min_size."""
        if cfg.idle_timeout_seconds <= 0:
            return []
        reaped: list[_PoolEntry] = []
        # Oldest returns sit at the front of the idle list
        while self._idle and self._open_count() > cfg.min_size:
            if now - self._idle[0].last_used <= cfg.idle_timeout_seconds:
                break
            reaped.append(self._idle.pop(0))
        self._total_closed += len(reaped)
        return reaped

    def _usable(self, entry: _PoolEntry, cfg: PoolConfig) -> bool:
        now = time.monotonic()
        if now - entry.created_at > cfg.max_age_seconds:
            return False
        if now - entry.last_used > _PING_IDLE_THRESHOLD:
            return self._is_alive(entry.conn, cfg)
        return True

    def _discard(self, entry: _PoolEntry) -> None:
        with self._cond:
            self._borrowed.pop(id(entry.conn), None)
            self._total_closed += 1
            self._cond.notify_all()
        self._close_quiet(entry.conn)

    @staticmethod
    def _is_alive(conn: Any, cfg: PoolConfig) -> bool:
        """Lightweight ping: a no-op query, then end the transaction it opened."""
        if not health_check(conn, cfg.product_type):
            return False
        try:
            conn.rollback()
            return True
        except Exception:
            return False

    @staticmethod
    def _close_quiet(conn: Any) -> None:
        try:
            conn.close()
        except Exception as e:
            _log.warning("Error closing connection: %s", e)


_pool_manager: PoolManager | None = None
_pool_lock = threading.Lock()


def get_pool_manager() -> PoolManager:
    """Return the process-wide PoolManager (thread-safe double-checked locking)."""
    global _pool_manager
    if _pool_manager is None:
        with _pool_lock:
            if _pool_manager is None:
                _pool_manager = PoolManager()
    return _pool_manager


def reset_pool_manager(drain_seconds: float | None = None) -> None:
    """Shut down and forget the process-wide PoolManager."""
    global _pool_manager
    with _pool_lock:
        pm = _pool_manager
        _pool_manager = None
    if pm is not None:
        pm.shutdown(drain_seconds)
