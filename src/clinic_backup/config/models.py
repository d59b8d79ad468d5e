"""Pydantic models for backup configuration."""

from pathlib import Path

from pydantic import BaseModel, Field


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from clinic-backup.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    provider: str = "sqlite"  # Desktop deployments run on SQLite


class DataPaths(BaseModel):
    """Where the application keeps files that live outside the database.

    ``uploads_dir`` and ``settings_file`` are resolved relative to
    ``data_dir`` unless given as absolute paths.
    """

    data_dir: Path = Path(".")
    uploads_dir: Path = Path("uploads")
    settings_file: Path = Path("clinic-settings.json")

    @property
    def uploads_path(self) -> Path:
        """Absolute-or-relative path of the asset directory."""
        return self.data_dir.expanduser() / self.uploads_dir

    @property
    def settings_path(self) -> Path:
        """Path of the clinic settings payload."""
        return self.data_dir.expanduser() / self.settings_file


class BackupConfig(BaseModel):
    """Complete configuration from clinic-backup.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    default_profile: str | None = None
    paths: DataPaths = Field(default_factory=DataPaths)
    exported_by: str = "local"
    output_dir: Path = Path("backups")
