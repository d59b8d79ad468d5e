"""Backup archive codec.

A backup archive is a zip file holding:

- ``backup.json``: the manifest, UTF-8 JSON (mandatory)
- ``uploads/<filename>``: uploaded asset files (zero or more)
- ``clinic-settings.json``: the clinic settings payload (optional)

Archives are written to a temporary sibling and renamed into place, so a
failed write never leaves a half-written archive at the destination.
Reading goes through ``BackupArchive``; asset extraction applies
``safe_asset_name`` to every entry.

Usage:
    from clinic_backup.backup.archive import open_archive, write_archive

    write_archive(manifest.to_payload(), "backup.zip", uploads_dir, settings_path)

    with open_archive("backup.zip") as archive:
        raw = archive.read_manifest()
        names = archive.extract_assets(staging_dir)
"""

import json
import logging
import os
import shutil
import tempfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Any
from zipfile import ZIP_DEFLATED, BadZipFile, ZipFile, ZipInfo

from clinic_backup.backup.errors import FormatError

logger = logging.getLogger(__name__)

MANIFEST_ENTRY = "backup.json"
SETTINGS_ENTRY = "clinic-settings.json"
UPLOADS_PREFIX = "uploads/"

# What zipfile raises for corrupt, truncated, encrypted or unsupported members
_MEMBER_READ_ERRORS = (BadZipFile, zlib.error, EOFError, NotImplementedError, RuntimeError)

ARCHIVE_SUFFIX = ".zip"
MANIFEST_SUFFIX = ".json"


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def safe_asset_name(entry_name: str) -> str | None:
    """Derive the on-disk filename for an ``uploads/`` entry.

    Only the final path component is kept, whatever directories (including
    ``..``) the stored name contains.  Directory entries, entries without a
    leaf name and hidden files yield ``None``.

    Example:
        safe_asset_name("uploads/../../evil.bin")  # "evil.bin"
        safe_asset_name("uploads/.htaccess")       # None
        safe_asset_name("uploads/nested/")         # None
    """
    if entry_name.endswith("/"):
        return None
    leaf = PurePosixPath(entry_name.replace("\\", "/")).name
    if not leaf or leaf in (".", ".."):
        return None
    if leaf.startswith("."):
        return None
    return leaf


def decode_manifest_payload(raw: bytes, source: str) -> Any:
    """Decode manifest bytes into plain JSON data.

    Raises:
        FormatError: If the bytes are not UTF-8 JSON.
    """
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FormatError(f"Invalid backup file: {source} is not valid JSON ({e})") from e


def atomic_write_bytes(destination: str | Path, data: bytes) -> Path:
    """Write ``data`` to a temporary sibling, then rename it over ``destination``."""
    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return dest


# ------------------------------------------------------------------
# Write path
# ------------------------------------------------------------------


def write_archive(
    manifest_payload: str,
    destination: str | Path,
    uploads_dir: str | Path | None = None,
    settings_path: str | Path | None = None,
) -> Path:
    """Pack a manifest, asset files and settings into one zip archive.

    Every regular file below ``uploads_dir`` (recursively) is stored as
    ``uploads/<filename>``; subdirectory structure is not kept, and when two
    files share a name the first one found wins.

    Args:
        manifest_payload: Serialized manifest JSON.
        destination: Archive path to create (overwritten if present).
        uploads_dir: Asset directory; skipped when missing.
        settings_path: Settings payload file; skipped when missing.

    Returns:
        Path of the written archive.
    """
    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    os.close(fd)

    try:
        with ZipFile(tmp_name, "w", compression=ZIP_DEFLATED) as zf:
            zf.writestr(MANIFEST_ENTRY, manifest_payload.encode("utf-8"))

            asset_count = 0
            if uploads_dir is not None and Path(uploads_dir).is_dir():
                seen: set[str] = set()
                for file in sorted(Path(uploads_dir).rglob("*")):
                    if not file.is_file():
                        continue
                    if file.name in seen:
                        logger.warning("Skipping duplicate asset name: %s", file)
                        continue
                    seen.add(file.name)
                    zf.write(file, f"{UPLOADS_PREFIX}{file.name}")
                    asset_count += 1

            has_settings = settings_path is not None and Path(settings_path).is_file()
            if has_settings:
                zf.write(settings_path, SETTINGS_ENTRY)

        os.replace(tmp_name, dest)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(
        "Archive written to %s (%d asset files, settings %s)",
        dest,
        asset_count,
        "included" if has_settings else "absent",
    )
    return dest


def write_manifest_file(manifest_payload: str, destination: str | Path) -> Path:
    """Write a bare manifest (no assets, no settings) as a .json file."""
    dest = atomic_write_bytes(destination, manifest_payload.encode("utf-8"))
    logger.info("Manifest written to %s", dest)
    return dest


# ------------------------------------------------------------------
# Read path
# ------------------------------------------------------------------


class BackupArchive:
    """Read access to a backup archive.

    Use as a context manager; the underlying zip handle is released on
    every exit path.  A truncated or corrupt file is reported as a
    ``FormatError`` like any other unreadable archive.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._zip: ZipFile | None = None

    def __enter__(self) -> "BackupArchive":
        try:
            self._zip = ZipFile(self.path, "r")
        except BadZipFile as e:
            raise FormatError(f"Invalid backup file: not a zip archive ({e})") from e
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    @property
    def zip(self) -> ZipFile:
        if self._zip is None:
            raise RuntimeError("BackupArchive must be used inside a with block")
        return self._zip

    def _read(self, info: ZipInfo | str) -> bytes:
        zf = self.zip
        try:
            return zf.read(info)
        except _MEMBER_READ_ERRORS as e:
            name = info if isinstance(info, str) else info.filename
            raise FormatError(f"Invalid backup file: cannot read {name} ({e})") from e

    def read_manifest(self) -> Any:
        """Decode the manifest entry into plain JSON data.

        Raises:
            FormatError: If the entry is missing or not valid JSON.
        """
        try:
            info = self.zip.getinfo(MANIFEST_ENTRY)
        except KeyError:
            raise FormatError(f"Invalid backup file: missing {MANIFEST_ENTRY}") from None
        return decode_manifest_payload(self._read(info), MANIFEST_ENTRY)

    def asset_entries(self) -> list[ZipInfo]:
        """Raw non-directory entries under ``uploads/``, unfiltered."""
        return [
            info
            for info in self.zip.infolist()
            if info.filename.startswith(UPLOADS_PREFIX) and not info.is_dir()
        ]

    @property
    def has_settings(self) -> bool:
        return SETTINGS_ENTRY in self.zip.namelist()

    def read_settings(self) -> bytes | None:
        """Settings payload bytes, or ``None`` when the archive has none."""
        if not self.has_settings:
            return None
        return self._read(SETTINGS_ENTRY)

    def extract_assets(self, dest_dir: str | Path) -> list[str]:
        """Write every safe ``uploads/`` entry into ``dest_dir``.

        Each entry's filename comes from ``safe_asset_name``; skipped entries
        are never written.  Existing files with the same name are overwritten.

        Returns:
            Distinct filenames written, in archive order.  This is not the
            number of write operations: entries such as ``uploads/a/x.png``
            and ``uploads/b/x.png`` flatten to the same ``x.png``, the later
            one overwrites the earlier, and the name is listed once.

        Raises:
            FormatError: If an entry is corrupt, truncated, encrypted or
                uses an unsupported compression method.
        """
        dest = Path(dest_dir)
        dest.mkdir(parents=True, exist_ok=True)
        zf = self.zip

        written: dict[str, None] = {}
        for info in self.asset_entries():
            name = safe_asset_name(info.filename)
            if name is None:
                logger.debug("Skipping archive entry %s", info.filename)
                continue
            try:
                with zf.open(info) as src, open(dest / name, "wb") as dst:
                    shutil.copyfileobj(src, dst)
            except _MEMBER_READ_ERRORS as e:
                raise FormatError(
                    f"Invalid backup file: cannot read {info.filename} ({e})"
                ) from e
            written[name] = None
        return list(written)


def open_archive(path: str | Path) -> BackupArchive:
    """Open a backup archive for reading (use with ``with``)."""
    return BackupArchive(path)
