"""Backup file loading and format validation.

``validate_manifest`` is the single gate both preview and restore pass a
decoded manifest through, so the two never disagree on what counts as a
usable backup.  ``validate_backup`` wraps it in the report format used by
the CLI's ``validate`` command.

Usage:
    from clinic_backup.backup.validator import load_manifest, validate_backup

    manifest, kind = load_manifest("backups/dental-clinic-backup.zip")
    report = validate_backup("backups/dental-clinic-backup.zip")
"""

import os
from pathlib import Path
from typing import Any, Literal

from clinic_backup.backup.archive import (
    ARCHIVE_SUFFIX,
    MANIFEST_SUFFIX,
    decode_manifest_payload,
    open_archive,
)
from clinic_backup.backup.errors import (
    BackupError,
    FormatError,
    InputError,
    MissingEntityError,
    UnsupportedVersionError,
)
from clinic_backup.backup.models import BackupSchema, Manifest
from clinic_backup.backup.schema import CLINIC_SCHEMA

BackupKind = Literal["archive", "manifest"]


def check_backup_path(path: Any) -> tuple[Path, BackupKind]:
    """Check a caller-supplied backup path and classify it by extension.

    Raises:
        InputError: If the path is empty or not a string/path, has an
            unsupported extension, or does not exist.
    """
    if not isinstance(path, (str, os.PathLike)) or not str(path).strip():
        raise InputError("Invalid file path")

    backup_path = Path(path)
    suffix = backup_path.suffix.lower()
    if suffix == ARCHIVE_SUFFIX:
        kind: BackupKind = "archive"
    elif suffix == MANIFEST_SUFFIX:
        kind = "manifest"
    else:
        raise InputError(f"Unsupported backup file format: {suffix or backup_path.name}")

    if not backup_path.is_file():
        raise InputError(f"Backup file not found: {backup_path}")
    return backup_path, kind


def validate_manifest(raw: Any, schema: BackupSchema = CLINIC_SCHEMA) -> Manifest:
    """Check a decoded manifest and return it as a ``Manifest``.

    Checks, in order: the version and data fields exist, the version is
    supported, and every collection the version requires is a list.
    Optional collections may be absent but must be lists when present.
    The legacy ``version`` key is read when ``formatVersion`` is absent.

    Raises:
        FormatError: If the version or data field is missing.
        UnsupportedVersionError: If the version is not supported.
        MissingEntityError: If a required collection is absent or not a list.
    """
    if not isinstance(raw, dict):
        raise FormatError("Invalid backup file format")

    version = raw.get("formatVersion", raw.get("version"))
    data = raw.get("data")
    if not version or not isinstance(data, dict):
        raise FormatError("Invalid backup file format")

    fmt = schema.version(version) if isinstance(version, str) else None
    if fmt is None:
        raise UnsupportedVersionError(version)

    for name in fmt.required:
        if not isinstance(data.get(name), list):
            raise MissingEntityError(name)
    for name in fmt.optional:
        if name in data and not isinstance(data[name], list):
            raise MissingEntityError(name)

    metadata = raw.get("metadata")
    exported_at = raw.get("exportedAt")
    return Manifest(
        format_version=version,
        exported_at=str(exported_at) if exported_at is not None else None,
        exported_by=str(raw.get("exportedBy") or "local"),
        data=data,
        metadata=metadata if isinstance(metadata, dict) else {},
    )


def read_raw_manifest(path: Path, kind: BackupKind) -> Any:
    """Decode the manifest JSON of an archive or bare manifest file."""
    if kind == "archive":
        with open_archive(path) as archive:
            return archive.read_manifest()
    return decode_manifest_payload(path.read_bytes(), path.name)


def load_manifest(
    path: Any,
    schema: BackupSchema = CLINIC_SCHEMA,
) -> tuple[Manifest, BackupKind]:
    """Read and validate the manifest of a backup file.

    Returns:
        The validated manifest and whether it came from an archive.
    """
    backup_path, kind = check_backup_path(path)
    return validate_manifest(read_raw_manifest(backup_path, kind), schema), kind


def validate_backup(backup_path: Any, schema: BackupSchema = CLINIC_SCHEMA) -> dict:
    """Validate a backup file and report problems without raising.

    Errors are the failures ``load_manifest`` would raise.  Warnings flag
    things a restore tolerates: collections the format version does not
    know (ignored on restore), metadata counts that disagree with the data,
    and a missing export timestamp.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        ``warnings`` (list[str]) and ``version`` (str | None).

    Example:
        report = validate_backup("backups/backup.zip")
        if report["errors"]:
            raise ValueError("Backup is invalid")
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        manifest, kind = load_manifest(backup_path, schema)
    except BackupError as e:
        errors.append(str(e))
        return {"valid": False, "errors": errors, "warnings": warnings, "version": None}

    fmt = schema.version(manifest.format_version)
    known = set(fmt.known)
    for name in manifest.data:
        if name not in known:
            warnings.append(f"Unknown collection ignored on restore: {name}")

    counts = manifest.metadata.get("counts")
    if isinstance(counts, dict):
        for name, expected in counts.items():
            if name in manifest.data and len(manifest.collection(name)) != expected:
                warnings.append(
                    f"Metadata count for {name} is {expected} "
                    f"but the backup holds {len(manifest.collection(name))}"
                )

    if not manifest.exported_at:
        warnings.append("Missing field: exportedAt")

    if kind == "archive" and not fmt.archive:
        warnings.append(
            f"Format {fmt.version} predates archives; packaged files are restored as-is"
        )

    return {
        "valid": True,
        "errors": errors,
        "warnings": warnings,
        "version": manifest.format_version,
    }
