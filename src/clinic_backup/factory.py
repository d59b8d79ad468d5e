"""Database client factory.

Resolves which database the backup engine talks to:

1. Profile mode (clinic-backup.toml): named profiles, selected by the
   ``{prefix}DB_PROFILE`` env var or the file's ``default_profile``.
2. URL mode: a bare ``{prefix}DATABASE_URL`` env var when no profile is
   configured.

Usage:
    from clinic_backup.factory import get_adapter

    adapter = get_adapter()
    adapter = get_adapter(profile_name="local", env_prefix="CLINIC_")
"""

import os
from pathlib import Path
from urllib.parse import quote

from clinic_backup.adapters.sql import AsyncSQLAdapter
from clinic_backup.backup.schema import CLINIC_SCHEMA
from clinic_backup.config.loader import load_backup_config
from clinic_backup.config.models import BackupConfig, DatabaseProfile


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(
    env_prefix: str = "",
    config: BackupConfig | None = None,
) -> str:
    """Get active profile name from env var or config default.

    Priority:
    1. ``{env_prefix}DB_PROFILE`` env var
    2. ``default_profile`` from the loaded config
    3. Raise ProfileNotFoundError

    Args:
        env_prefix: Prefix for the environment variable lookup
            (e.g. ``"CLINIC_"`` reads ``CLINIC_DB_PROFILE``).
        config: Loaded configuration, if any.

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    env_profile = os.environ.get(f"{env_prefix}DB_PROFILE")
    if env_profile:
        return env_profile

    if config is not None and config.default_profile:
        return config.default_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {env_prefix}DB_PROFILE=<name> or default_profile in clinic-backup.toml"
    )


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    ``[YOUR-PASSWORD]`` is replaced with the URL-encoded ``db_password``,
    and a ``~`` in a SQLite file path is expanded.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL ready for ``AsyncSQLAdapter``
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    for scheme in ("sqlite:///", "sqlite+aiosqlite:///"):
        if url.startswith(scheme + "~"):
            url = scheme + str(Path(url[len(scheme):]).expanduser())
    return url


def get_adapter(
    profile_name: str | None = None,
    env_prefix: str = "",
    config: BackupConfig | None = None,
    config_path: Path | None = None,
) -> AsyncSQLAdapter:
    """Create a database adapter for the active profile.

    Args:
        profile_name: Explicit profile name.  When ``None`` the active
            profile is resolved with ``get_active_profile_name``.
        env_prefix: Prefix for environment variable lookups.
        config: Already-loaded configuration.  Loaded from
            ``config_path`` (or ``./clinic-backup.toml``) when ``None``.
        config_path: Path to the TOML configuration file.

    Returns:
        ``AsyncSQLAdapter`` with the clinic's JSON and timestamp columns
        configured.

    Raises:
        ProfileNotFoundError: If no profile or database URL is configured.
        KeyError: If the named profile is not in the config file.
    """
    if config is None:
        try:
            config = load_backup_config(config_path)
        except FileNotFoundError:
            config = None

    json_columns = list(CLINIC_SCHEMA.json_columns)
    timestamp_columns = list(CLINIC_SCHEMA.timestamp_columns)

    if config is not None and config.profiles:
        try:
            name = profile_name or get_active_profile_name(env_prefix, config)
        except ProfileNotFoundError:
            name = None
        if name is not None:
            if name not in config.profiles:
                raise KeyError(
                    f"Profile '{name}' not found in clinic-backup.toml.\n"
                    f"Available profiles: {', '.join(config.profiles.keys())}"
                )
            return AsyncSQLAdapter(
                resolve_url(config.profiles[name]),
                json_columns=json_columns,
                timestamp_columns=timestamp_columns,
            )

    database_url = os.environ.get(f"{env_prefix}DATABASE_URL")
    if database_url:
        return AsyncSQLAdapter(
            database_url, json_columns=json_columns, timestamp_columns=timestamp_columns
        )

    raise ProfileNotFoundError(
        "No database configuration found.\n"
        "Either:\n"
        f"  1. Create clinic-backup.toml and set {env_prefix}DB_PROFILE=<name>\n"
        f"  2. Set {env_prefix}DATABASE_URL"
    )
