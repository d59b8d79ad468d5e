"""Read-only preview of a backup file.

Runs the same validation gate restore uses, so a backup that previews
cleanly is one restore will accept.  Nothing on disk or in the database is
touched.
"""

from typing import Any

from clinic_backup.backup.archive import open_archive
from clinic_backup.backup.models import BackupPreview, BackupSchema
from clinic_backup.backup.schema import CLINIC_SCHEMA
from clinic_backup.backup.validator import (
    check_backup_path,
    read_raw_manifest,
    validate_manifest,
)


def preview_backup(backup_path: Any, schema: BackupSchema = CLINIC_SCHEMA) -> BackupPreview:
    """Summarize a backup without restoring it.

    ``image_count`` counts every non-directory ``uploads/`` entry in the
    archive, before the filename filter restore applies; a bare manifest
    reports no images and no settings.

    Raises:
        InputError: Bad path or extension.
        FormatError: Unreadable or invalid backup.

    Example:
        preview = preview_backup("backups/dental-clinic-backup-2024-01-01.zip")
        print(preview.version, preview.image_count)
    """
    source, kind = check_backup_path(backup_path)

    if kind == "manifest":
        manifest = validate_manifest(read_raw_manifest(source, kind), schema)
        return BackupPreview(
            version=manifest.format_version,
            exported_at=manifest.exported_at,
            metadata=manifest.metadata,
        )

    with open_archive(source) as archive:
        manifest = validate_manifest(archive.read_manifest(), schema)
        image_count = len(archive.asset_entries())
        has_settings = archive.has_settings

    return BackupPreview(
        version=manifest.format_version,
        exported_at=manifest.exported_at,
        metadata=manifest.metadata,
        has_images=image_count > 0,
        image_count=image_count,
        has_clinic_settings=has_settings,
    )
