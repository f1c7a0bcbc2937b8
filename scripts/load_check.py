#!/usr/bin/env python3
"""
Check pool behaviour under load: run N queries in parallel through one pool.

Expected: every query succeeds, peak open connections never exceed DB_POOL_MAX,
and active connections are 0 once all workers are done.

Usage:
  python scripts/load_check.py [--sql SQL] [--concurrent N]
  Reads DB_* settings from the environment / .env (see .env.example).
"""

import argparse
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed

from dbaccess import DatabaseAccessError, DatabaseHelper, PoolManager
from dbaccess.core.config import settings
from dbaccess.core.log import configure_logging


def do_query(db: DatabaseHelper, sql: str, index: int) -> tuple[int, int]:
    """Run one query; return (index, row count) or (index, -1) on error."""
    try:
        return (index, len(db.query(sql)))
    except DatabaseAccessError as e:
        print(f"  [{index}] {e}", file=sys.stderr)
        return (index, -1)  # -1 = error


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run N concurrent queries through one pool and print pool statistics."
    )
    parser.add_argument(
        "--sql",
        default=os.environ.get("LOAD_CHECK_SQL", "SELECT 1 AS n"),
        help="Query each worker runs (default: SELECT 1 AS n)",
    )
    parser.add_argument(
        "--concurrent",
        type=int,
        default=int(os.environ.get("CONCURRENT", "10")),
        help="Number of concurrent queries (default 10)",
    )
    args = parser.parse_args()

    configure_logging()
    if settings.warn_missing():
        sys.exit(1)

    pool = PoolManager(settings.pool_config)
    db = DatabaseHelper(pool)
    print(f"Running {args.concurrent} concurrent queries against {pool.config.display_target}")
    print("---")

    results: list[tuple[int, int]] = []
    try:
        with ThreadPoolExecutor(max_workers=args.concurrent) as executor:
            futures = {
                executor.submit(do_query, db, args.sql, i): i
                for i in range(args.concurrent)
            }
            for future in as_completed(futures):
                results.append(future.result())

        results.sort(key=lambda x: x[0])
        failed = [i for i, n in results if n < 0]
        stats = pool.statistics()
        print(f"ok={len(results) - len(failed)} failed={len(failed)}")
        if stats is not None:
            for key, value in stats.as_dict().items():
                print(f"  {key}: {value}")
    finally:
        pool.shutdown()

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
