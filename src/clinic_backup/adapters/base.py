"""Database client protocol definitions.

Defines the ``DatabaseClient`` Protocol that the backup engine talks to,
plus the ``TransactionClient`` handed out by ``DatabaseClient.transaction()``.
All methods are ``async def`` -- the library is async-first.

Usage:
    from clinic_backup.adapters.base import DatabaseClient

    async def do_work(client: DatabaseClient) -> None:
        rows = await client.select("patients")
        async with client.transaction() as tx:
            await tx.delete_all("payments")
            await tx.insert_many("patients", rows)
        await client.close()
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol


class TransactionClient(Protocol):
    """Table operations bound to one open transaction.

    Every call made through a ``TransactionClient`` commits or rolls back
    together with the enclosing ``DatabaseClient.transaction()`` block.
    """

    async def delete_all(self, table: str) -> int:
        """Delete every row from ``table`` and return the number removed."""
        ...

    async def insert_many(self, table: str, rows: list[dict]) -> int:
        """Bulk insert ``rows`` into ``table`` and return the number inserted.

        Field-level validation is left to the database: a row that violates
        the table schema raises and aborts the whole transaction.
        """
        ...


class DatabaseClient(Protocol):
    """Database client interface that all adapters must implement.

    Covers the per-table "read all", "bulk insert" and "delete all"
    operations the backup engine needs, plus transactional grouping
    of several such calls into one all-or-nothing unit.

    All methods are async -- callers must ``await`` every operation.
    """

    async def select(
        self,
        table: str,
        columns: str | list[str] = "*",
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        """Select rows from table.

        Args:
            table: Table name.
            columns: ``"*"`` or a list of column names to project.
            filters: Optional dict of field=value filters (all must match via AND).
            order_by: Optional column name to sort by.
            descending: Sort ``order_by`` descending instead of ascending.
            limit: Optional maximum number of rows.

        Returns:
            List of dicts, one per row.  Empty list if no matches.

        Example:
            rows = await client.select(
                "audit_logs",
                ["createdAt"],
                filters={"action": "BACKUP"},
                order_by="createdAt",
                descending=True,
                limit=1,
            )
        """
        ...

    async def insert(self, table: str, data: dict) -> dict:
        """Insert a single row and return the created row.

        Raises:
            Exception: If duplicate key or constraint violation.
        """
        ...

    async def count(self, table: str) -> int:
        """Return the number of rows in ``table``."""
        ...

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or other non-query operations).

        Raises:
            NotImplementedError: If the adapter does not support raw SQL.
        """
        ...

    def transaction(self) -> AbstractAsyncContextManager[TransactionClient]:
        """Open one atomic transaction.

        Commits when the ``async with`` block exits cleanly and rolls back
        when it raises, leaving every table exactly as it was before.

        Example:
            async with client.transaction() as tx:
                await tx.delete_all("invoice_items")
                await tx.insert_many("invoice_items", rows)
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
