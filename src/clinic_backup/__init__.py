"""clinic-backup: Backup and restore engine for the dental clinic database.

Snapshots every clinic table into a versioned JSON manifest, packs it with
uploaded patient images and clinic settings into a zip archive, and
restores such archives transactionally.

Usage:
    from clinic_backup import get_adapter, create_backup, restore_backup
    from clinic_backup import load_backup_config, DataPaths
    from clinic_backup import CLINIC_SCHEMA, BackupSchema
"""

__version__ = "0.1.0"

# Adapters
from clinic_backup.adapters.base import DatabaseClient, TransactionClient
from clinic_backup.adapters.sql import AsyncSQLAdapter

# Config
from clinic_backup.config.loader import load_backup_config
from clinic_backup.config.models import BackupConfig, DataPaths, DatabaseProfile

# Factory
from clinic_backup.factory import ProfileNotFoundError, get_adapter, resolve_url

# Backup
from clinic_backup.backup import (
    CLINIC_SCHEMA,
    BackupError,
    BackupSchema,
    create_backup,
    get_system_info,
    preview_backup,
    restore_backup,
    validate_backup,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "TransactionClient",
    "AsyncSQLAdapter",
    # Config
    "load_backup_config",
    "BackupConfig",
    "DataPaths",
    "DatabaseProfile",
    # Factory
    "get_adapter",
    "ProfileNotFoundError",
    "resolve_url",
    # Backup
    "CLINIC_SCHEMA",
    "BackupSchema",
    "BackupError",
    "create_backup",
    "preview_backup",
    "restore_backup",
    "get_system_info",
    "validate_backup",
]
