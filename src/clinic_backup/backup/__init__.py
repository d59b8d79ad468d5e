"""Backup, preview and restore for the dental clinic database.

Everything is driven by a declarative ``BackupSchema``: the entity
collections, their foreign-key dependencies and the supported format
versions.  ``CLINIC_SCHEMA`` is the schema of the clinic application.

Usage:
    from clinic_backup.backup import create_backup, preview_backup, restore_backup
    from clinic_backup.backup import CLINIC_SCHEMA, validate_backup
"""

from clinic_backup.backup.errors import (
    BackupError,
    FormatError,
    InputError,
    MissingEntityError,
    PartialRestoreError,
    StorageError,
    UnsupportedVersionError,
)
from clinic_backup.backup.info import get_system_info
from clinic_backup.backup.models import (
    BackupPreview,
    BackupResult,
    BackupSchema,
    EntityDef,
    FormatVersion,
    Manifest,
    RestoreResult,
    SystemInfo,
)
from clinic_backup.backup.preview import preview_backup
from clinic_backup.backup.restore import restore_backup
from clinic_backup.backup.schema import CLINIC_SCHEMA
from clinic_backup.backup.snapshot import build_manifest, create_backup
from clinic_backup.backup.validator import load_manifest, validate_backup, validate_manifest

__all__ = [
    # Schema and models
    "CLINIC_SCHEMA",
    "BackupSchema",
    "EntityDef",
    "FormatVersion",
    "Manifest",
    "BackupResult",
    "BackupPreview",
    "RestoreResult",
    "SystemInfo",
    # Operations
    "build_manifest",
    "create_backup",
    "preview_backup",
    "restore_backup",
    "get_system_info",
    "load_manifest",
    "validate_manifest",
    "validate_backup",
    # Errors
    "BackupError",
    "InputError",
    "FormatError",
    "UnsupportedVersionError",
    "MissingEntityError",
    "StorageError",
    "PartialRestoreError",
]
