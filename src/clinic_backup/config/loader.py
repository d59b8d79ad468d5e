"""TOML configuration loader for clinic-backup.

Reads database profiles, data paths and backup defaults from a TOML file
into ``BackupConfig``.

Usage:
    from clinic_backup.config.loader import load_backup_config

    config = load_backup_config()  # reads ./clinic-backup.toml
    config = load_backup_config(Path("/etc/clinic/clinic-backup.toml"))
"""

import tomllib
from pathlib import Path

from clinic_backup.config.models import BackupConfig, DataPaths, DatabaseProfile

DEFAULT_CONFIG_NAME = "clinic-backup.toml"


def load_backup_config(config_path: Path | None = None) -> BackupConfig:
    """Load backup configuration from TOML file.

    Expected layout::

        default_profile = "local"

        [profiles.local]
        url = "sqlite:///~/.dental-clinic/dental-clinic.db"

        [paths]
        data_dir = "~/.dental-clinic"

        [backup]
        exported_by = "local"
        output_dir = "backups"

    Args:
        config_path: Path to the TOML file (default: ``./clinic-backup.toml``).

    Returns:
        BackupConfig with all profiles, paths and backup defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config format is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if not config_path.exists():
        raise FileNotFoundError(
            f"Backup config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_NAME} with at least one [profiles.<name>] table."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        if not isinstance(profile_data, dict) or "url" not in profile_data:
            raise ValueError(f"Profile '{name}' must define a url")
        profiles[name] = DatabaseProfile(**profile_data)

    default_profile = data.get("default_profile")
    if default_profile is not None and default_profile not in profiles:
        raise ValueError(
            f"default_profile '{default_profile}' is not a configured profile"
        )

    backup_settings = data.get("backup", {})
    config_kwargs = {}
    if "exported_by" in backup_settings:
        config_kwargs["exported_by"] = backup_settings["exported_by"]
    if "output_dir" in backup_settings:
        config_kwargs["output_dir"] = Path(backup_settings["output_dir"]).expanduser()

    return BackupConfig(
        profiles=profiles,
        default_profile=default_profile,
        paths=DataPaths(**data.get("paths", {})),
        **config_kwargs,
    )
