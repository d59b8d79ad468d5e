"""Audit records for backup and restore events."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from clinic_backup.adapters.base import DatabaseClient
from clinic_backup.backup.models import BackupSchema

logger = logging.getLogger(__name__)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and ``Z``."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


async def record_audit_event(
    adapter: DatabaseClient,
    schema: BackupSchema,
    action: str,
    new_values: dict[str, Any],
) -> dict:
    """Append one system-level audit record.

    Args:
        adapter: Database adapter.
        schema: Backup schema naming the audit table.
        action: ``"BACKUP"`` or ``"RESTORE"``.
        new_values: Event details stored in the ``newValues`` JSON column.

    Returns:
        The inserted audit row.
    """
    record = {
        "id": str(uuid.uuid4()),
        "userId": None,
        "action": action,
        "entityType": "system",
        "newValues": new_values,
        "createdAt": utc_now_iso(),
    }
    row = await adapter.insert(schema.audit_table, record)
    logger.debug("Audit %s recorded in %s", action, schema.audit_table)
    return row
