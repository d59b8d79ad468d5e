"""Restore engine: rebuild the database and asset files from a backup.

The database part runs as one transaction: every restorable table is
emptied children-first, then repopulated parents-first from the manifest.
Any failure rolls the whole transaction back and the database is left
exactly as it was.

Archive assets are extracted into a staging directory before the
transaction starts, and only moved into the uploads directory after it
commits.  The file step is not part of the transaction: if it fails, a
``PartialRestoreError`` reports that the database was restored but the
files were not.  The ``RESTORE`` audit record is written last, once the
files are in place; a failed audit insert never discards restored files.

Usage:
    from clinic_backup.backup.restore import restore_backup

    result = await restore_backup(adapter, "backups/clinic.zip", paths=config.paths)
    print(result.message)
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from clinic_backup.adapters.base import DatabaseClient
from clinic_backup.backup.archive import atomic_write_bytes, open_archive
from clinic_backup.backup.audit import record_audit_event, utc_now_iso
from clinic_backup.backup.errors import PartialRestoreError, StorageError
from clinic_backup.backup.models import BackupSchema, Manifest, RestoreResult
from clinic_backup.backup.schema import CLINIC_SCHEMA
from clinic_backup.backup.validator import (
    BackupKind,
    check_backup_path,
    read_raw_manifest,
    validate_manifest,
)
from clinic_backup.config.models import DataPaths

logger = logging.getLogger(__name__)

BASE_MESSAGE = "Backup restored successfully"


def compose_message(kind: BackupKind, assets_restored: int, settings_restored: bool) -> str:
    """Build the restore result message.

    Archives append an image-count clause (only when files were restored)
    and a settings clause (only when settings were restored), in that
    order.  Bare manifests are marked as database-only.
    """
    if kind == "manifest":
        return f"{BASE_MESSAGE} (database only)"

    clauses: list[str] = []
    if assets_restored > 0:
        clauses.append(f"{assets_restored} image files restored")
    if settings_restored:
        clauses.append("clinic settings restored")
    if not clauses:
        return BASE_MESSAGE
    return f"{BASE_MESSAGE} ({', '.join(clauses)})"


async def restore_records(
    adapter: DatabaseClient,
    manifest: Manifest,
    schema: BackupSchema = CLINIC_SCHEMA,
) -> dict[str, int]:
    """Replace the database contents with the manifest's records.

    Runs in one transaction.  Collections with no records, and collections
    the manifest's format version does not declare, are not inserted and
    do not appear in the returned counts.

    Args:
        adapter: Database adapter implementing ``DatabaseClient`` Protocol.
        manifest: A manifest that passed ``validate_manifest``.
        schema: Declarative backup schema.

    Returns:
        Inserted record count per collection name.

    Raises:
        StorageError: If any delete or insert fails; nothing is applied.
    """
    fmt = schema.version(manifest.format_version)
    if fmt is None:
        raise ValueError(f"Manifest version {manifest.format_version} is not in the schema")
    declared = set(fmt.known)

    ignored = [name for name in manifest.data if name not in declared]
    if ignored:
        logger.warning(
            "Ignoring collections not declared by format %s: %s",
            manifest.format_version,
            ", ".join(ignored),
        )

    counts: dict[str, int] = {}
    try:
        async with adapter.transaction() as tx:
            for entity in schema.delete_order:
                await tx.delete_all(entity.table)

            for entity in schema.insert_order:
                if entity.name not in declared:
                    continue
                records = manifest.collection(entity.name)
                if not records:
                    continue
                counts[entity.name] = await tx.insert_many(entity.table, records)
    except Exception as e:
        raise StorageError(f"Restore failed, database left unchanged: {e}") from e

    logger.info("Database restored: %s", counts or "no records")
    return counts


async def _record_restore(
    adapter: DatabaseClient,
    schema: BackupSchema,
    manifest: Manifest,
    counts: dict[str, int],
) -> None:
    await record_audit_event(
        adapter,
        schema,
        "RESTORE",
        {
            "backupDate": manifest.exported_at,
            "restoredAt": utc_now_iso(),
            "counts": counts,
        },
    )


async def _finish_restore(
    adapter: DatabaseClient,
    schema: BackupSchema,
    manifest: Manifest,
    result: RestoreResult,
    kind: BackupKind,
    file_error: OSError | None = None,
) -> RestoreResult:
    """Write the RESTORE audit record and settle the result message.

    Runs after the database has committed and the file step has finished,
    so the result always reflects the files actually in place.
    """
    result.message = compose_message(kind, result.assets_restored, result.settings_restored)

    problems: list[str] = []
    cause: Exception | None = file_error
    if file_error is not None:
        problems.append(f"files were not fully restored: {file_error}")
    try:
        await _record_restore(adapter, schema, manifest, result.restored_counts)
    except Exception as e:
        problems.append(f"the audit record could not be written: {e}")
        cause = cause or e

    if problems:
        raise PartialRestoreError(
            "Database restored but " + "; ".join(problems), result
        ) from cause
    return result


async def restore_backup(
    adapter: DatabaseClient,
    backup_path: Any,
    schema: BackupSchema = CLINIC_SCHEMA,
    paths: DataPaths | None = None,
) -> RestoreResult:
    """Restore the database, asset files and clinic settings from a backup.

    Accepts a ``.zip`` archive or a bare ``.json`` manifest.  Bare
    manifests restore database records only.

    Args:
        adapter: Database adapter implementing ``DatabaseClient`` Protocol.
        backup_path: Path of the backup file.
        schema: Declarative backup schema.
        paths: Where the uploads directory and settings file live.

    Returns:
        ``RestoreResult`` with message, per-collection counts, the backup's
        original export time, and the file-side outcome.

    Raises:
        InputError: Bad path or extension.
        FormatError: Unreadable or invalid backup (database untouched).
        StorageError: Database failure (database untouched).
        PartialRestoreError: Database restored, but assets, settings or
            the audit record were not.

    Example:
        result = await restore_backup(adapter, "backups/clinic.zip", paths=paths)
        print(result.message)
    """
    source, kind = check_backup_path(backup_path)
    paths = paths or DataPaths()

    if kind == "manifest":
        manifest = validate_manifest(read_raw_manifest(source, kind), schema)
        counts = await restore_records(adapter, manifest, schema)
        result = RestoreResult(
            message=BASE_MESSAGE,
            restored_counts=counts,
            backup_date=manifest.exported_at,
        )
        return await _finish_restore(adapter, schema, manifest, result, kind)

    uploads_dir = paths.uploads_path
    with open_archive(source) as archive:
        manifest = validate_manifest(archive.read_manifest(), schema)

        staging_parent = uploads_dir.parent
        staging_parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix=".restore-", dir=staging_parent) as staging:
            try:
                staged = archive.extract_assets(staging)
                settings = archive.read_settings()
            except OSError as e:
                raise StorageError(
                    f"Restore aborted before any database change, could not stage files: {e}"
                ) from e

            counts = await restore_records(adapter, manifest, schema)

            result = RestoreResult(
                message=BASE_MESSAGE,
                restored_counts=counts,
                backup_date=manifest.exported_at,
            )
            file_error: OSError | None = None
            try:
                uploads_dir.mkdir(parents=True, exist_ok=True)
                for name in staged:
                    os.replace(Path(staging) / name, uploads_dir / name)
                    result.assets_restored += 1
                if settings is not None:
                    atomic_write_bytes(paths.settings_path, settings)
                    result.settings_restored = True
            except OSError as e:
                file_error = e

    await _finish_restore(adapter, schema, manifest, result, kind, file_error)
    logger.info(
        "Restore complete from %s: %d asset files, settings %s",
        source,
        result.assets_restored,
        "restored" if result.settings_restored else "absent",
    )
    return result
