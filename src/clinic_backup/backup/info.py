"""System information: record counts and the last backup time."""

import logging

from clinic_backup.adapters.base import DatabaseClient
from clinic_backup.backup.audit import utc_now_iso
from clinic_backup.backup.errors import StorageError
from clinic_backup.backup.models import BackupSchema, SystemInfo
from clinic_backup.backup.schema import CLINIC_SCHEMA

logger = logging.getLogger(__name__)


async def get_system_info(
    adapter: DatabaseClient,
    schema: BackupSchema = CLINIC_SCHEMA,
) -> SystemInfo:
    """Count the summary entities and find the most recent backup.

    ``last_backup`` is the ``createdAt`` of the newest ``BACKUP`` audit
    record, or ``None`` when no backup was ever taken.

    Raises:
        StorageError: If a count or the audit lookup fails.
    """
    counts: dict[str, int] = {}
    try:
        for entity in schema.entities:
            if entity.summary:
                counts[entity.name] = await adapter.count(entity.table)

        rows = await adapter.select(
            schema.audit_table,
            columns=["createdAt"],
            filters={"action": "BACKUP"},
            order_by="createdAt",
            descending=True,
            limit=1,
        )
    except Exception as e:
        raise StorageError(f"Failed to read system info: {e}") from e

    last_backup = str(rows[0]["createdAt"]) if rows else None
    logger.debug("System info: %s, last backup %s", counts, last_backup)
    return SystemInfo(database=counts, last_backup=last_backup, server_time=utc_now_iso())
