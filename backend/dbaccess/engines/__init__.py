"""
Engines: SQL statement execution over the connection pool.
"""

from dbaccess.engines.sql import DatabaseHelper, get_database_helper

__all__ = [
    "DatabaseHelper",
    "get_database_helper",
]
