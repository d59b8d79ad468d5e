"""Configuration management: profiles, data paths, and TOML loading.

Usage:
    >>> from clinic_backup.config import load_backup_config, BackupConfig, DataPaths
"""

from clinic_backup.config.loader import load_backup_config
from clinic_backup.config.models import BackupConfig, DataPaths, DatabaseProfile

__all__ = ["load_backup_config", "BackupConfig", "DataPaths", "DatabaseProfile"]
