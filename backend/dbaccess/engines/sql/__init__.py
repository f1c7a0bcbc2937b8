"""
Statement execution layer.

Exports: DatabaseHelper, get_database_helper, to_bind.
"""

from dbaccess.engines.sql.binds import to_bind
from dbaccess.engines.sql.executor import DatabaseHelper, get_database_helper

__all__ = [
    "DatabaseHelper",
    "get_database_helper",
    "to_bind",
]
