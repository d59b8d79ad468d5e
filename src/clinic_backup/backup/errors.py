"""Exceptions raised by the backup, preview and restore operations."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clinic_backup.backup.models import RestoreResult


class BackupError(Exception):
    """Base class for every backup/restore failure."""


class InputError(BackupError):
    """Bad caller input: missing path or unsupported file extension."""


class FormatError(BackupError):
    """The backup file is not a usable backup."""


class UnsupportedVersionError(FormatError):
    """The manifest's format version is not one this release reads."""

    def __init__(self, version: object) -> None:
        super().__init__(f"Unsupported backup version: {version}")
        self.version = version


class MissingEntityError(FormatError):
    """A required entity collection is absent or not a list."""

    def __init__(self, entity: str) -> None:
        super().__init__(f"Missing or invalid data for: {entity}")
        self.entity = entity


class StorageError(BackupError):
    """The database failed to read, write or commit.

    Raised from a restore, the database is left as it was before.
    """


class PartialRestoreError(BackupError):
    """A file or audit step failed after the database committed.

    ``result`` describes the database restore, which did succeed.
    """

    def __init__(self, message: str, result: "RestoreResult") -> None:
        super().__init__(message)
        self.result = result
