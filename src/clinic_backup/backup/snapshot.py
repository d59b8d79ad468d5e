"""Snapshot builder: read the database into a manifest and write a backup.

Usage:
    from clinic_backup.backup.snapshot import create_backup

    result = await create_backup(adapter, "backups/clinic.zip", paths=config.paths)
    print(result.path, result.counts)
"""

import logging
from datetime import date
from pathlib import Path

from clinic_backup.adapters.base import DatabaseClient
from clinic_backup.backup.archive import MANIFEST_SUFFIX, write_archive, write_manifest_file
from clinic_backup.backup.audit import record_audit_event, utc_now_iso
from clinic_backup.backup.errors import StorageError
from clinic_backup.backup.models import BackupResult, BackupSchema, Manifest
from clinic_backup.backup.schema import CLINIC_SCHEMA
from clinic_backup.config.models import DataPaths

logger = logging.getLogger(__name__)

ARCHIVE_NOTE = "Full backup including database records, patient images, and clinic settings."
MANIFEST_NOTE = "Database records only; patient images and clinic settings are not included."


def default_backup_path(output_dir: str | Path = "backups") -> Path:
    """Dated archive path under ``output_dir``."""
    return Path(output_dir) / f"dental-clinic-backup-{date.today().isoformat()}.zip"


async def build_manifest(
    adapter: DatabaseClient,
    schema: BackupSchema = CLINIC_SCHEMA,
    exported_by: str = "local",
    note: str = ARCHIVE_NOTE,
) -> Manifest:
    """Read every entity collection and assemble a manifest.

    Each collection is read in full (export-only projections and limits
    from the schema apply), in schema order.  The manifest is stamped with
    the latest format version and the current time, and one ``BACKUP``
    audit record is appended.

    Args:
        adapter: Database adapter implementing ``DatabaseClient`` Protocol.
        schema: Declarative backup schema.
        exported_by: Actor identifier stored in the manifest.
        note: Free-text note stored in the manifest metadata.

    Returns:
        The new ``Manifest``.

    Raises:
        StorageError: If any collection cannot be read.
    """
    data: dict[str, list] = {}
    for entity in schema.entities:
        try:
            rows = await adapter.select(
                entity.table,
                columns=entity.columns or "*",
                order_by=entity.order_by,
                descending=entity.descending,
                limit=entity.limit,
            )
        except Exception as e:
            raise StorageError(f"Backup failed reading {entity.table}: {e}") from e
        data[entity.name] = rows

    counts = {name: len(rows) for name, rows in data.items()}
    exported_at = utc_now_iso()

    manifest = Manifest(
        format_version=schema.latest_version.version,
        exported_at=exported_at,
        exported_by=exported_by,
        data=data,
        metadata={"counts": counts, "note": note},
    )

    try:
        await record_audit_event(
            adapter, schema, "BACKUP", {"timestamp": exported_at, "counts": counts}
        )
    except Exception as e:
        raise StorageError(f"Backup failed writing audit record: {e}") from e

    logger.info("Snapshot built: %d collections, %d records", len(counts), sum(counts.values()))
    return manifest


async def create_backup(
    adapter: DatabaseClient,
    output_path: str | Path | None = None,
    schema: BackupSchema = CLINIC_SCHEMA,
    paths: DataPaths | None = None,
    exported_by: str = "local",
) -> BackupResult:
    """Snapshot the database and write it to a backup file.

    A ``.zip`` destination gets a full archive with the uploads directory
    and clinic settings from ``paths``; a ``.json`` destination gets a
    bare manifest with database records only.

    Args:
        adapter: Database adapter implementing ``DatabaseClient`` Protocol.
        output_path: Destination file.  When ``None``, a dated ``.zip``
            path under ``./backups/`` is used.
        schema: Declarative backup schema.
        paths: Data paths holding the uploads directory and settings file.
        exported_by: Actor identifier stored in the manifest.

    Returns:
        ``BackupResult`` with the written path, export time and counts.

    Example:
        result = await create_backup(adapter, paths=DataPaths(data_dir=Path("~/.clinic")))
    """
    destination = Path(output_path) if output_path is not None else default_backup_path()
    bare = destination.suffix.lower() == MANIFEST_SUFFIX

    manifest = await build_manifest(
        adapter,
        schema,
        exported_by=exported_by,
        note=MANIFEST_NOTE if bare else ARCHIVE_NOTE,
    )
    payload = manifest.to_payload()

    if bare:
        written = write_manifest_file(payload, destination)
    else:
        paths = paths or DataPaths()
        written = write_archive(
            payload,
            destination,
            uploads_dir=paths.uploads_path,
            settings_path=paths.settings_path,
        )

    return BackupResult(
        path=str(written),
        exported_at=manifest.exported_at,
        counts=manifest.metadata["counts"],
    )
