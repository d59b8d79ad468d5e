"""Database adapters package.

Provides the ``DatabaseClient`` / ``TransactionClient`` Protocols and the
concrete ``AsyncSQLAdapter`` (PostgreSQL via asyncpg, SQLite via aiosqlite).

Usage:
    from clinic_backup.adapters import DatabaseClient, AsyncSQLAdapter
"""

from clinic_backup.adapters.base import DatabaseClient, TransactionClient
from clinic_backup.adapters.sql import AsyncSQLAdapter

__all__ = [
    "DatabaseClient",
    "TransactionClient",
    "AsyncSQLAdapter",
]
