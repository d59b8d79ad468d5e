"""Tests for the backup archive codec: entry filtering, writing and reading."""

import json
import zipfile

import pytest

from clinic_backup.backup.archive import (
    MANIFEST_ENTRY,
    SETTINGS_ENTRY,
    atomic_write_bytes,
    open_archive,
    safe_asset_name,
    write_archive,
    write_manifest_file,
)
from clinic_backup.backup.errors import FormatError


# ------------------------------------------------------------------
# Entry name filter
# ------------------------------------------------------------------


class TestSafeAssetName:
    """Every uploads/ entry passes through one filename filter."""

    def test_plain_file(self):
        assert safe_asset_name("uploads/xray-001.png") == "xray-001.png"

    def test_traversal_reduced_to_basename(self):
        assert safe_asset_name("uploads/../../etc/passwd") == "passwd"
        assert safe_asset_name("uploads/../../evil.bin") == "evil.bin"

    def test_nested_path_flattened(self):
        assert safe_asset_name("uploads/2024/06/scan.jpg") == "scan.jpg"

    def test_backslashes_treated_as_separators(self):
        assert safe_asset_name("uploads\\..\\evil.bin") == "evil.bin"

    @pytest.mark.parametrize(
        "name",
        ["uploads/", "uploads/nested/", "uploads/.htaccess", "uploads/..", "uploads/."],
    )
    def test_skipped(self, name):
        assert safe_asset_name(name) is None


# ------------------------------------------------------------------
# Write path
# ------------------------------------------------------------------


class TestWriteArchive:
    """Archive layout produced by ``write_archive``."""

    def test_manifest_only(self, tmp_path):
        dest = write_archive('{"formatVersion": "3.0.0"}', tmp_path / "out.zip")
        with zipfile.ZipFile(dest) as zf:
            assert zf.namelist() == [MANIFEST_ENTRY]
            assert json.loads(zf.read(MANIFEST_ENTRY)) == {"formatVersion": "3.0.0"}

    def test_assets_and_settings(self, tmp_path):
        uploads = tmp_path / "uploads"
        (uploads / "2024").mkdir(parents=True)
        (uploads / "a.png").write_bytes(b"A")
        (uploads / "2024" / "b.png").write_bytes(b"B")
        settings = tmp_path / "clinic-settings.json"
        settings.write_text('{"clinicName": "Smile"}')

        dest = write_archive("{}", tmp_path / "out.zip", uploads, settings)

        with zipfile.ZipFile(dest) as zf:
            names = set(zf.namelist())
            assert names == {MANIFEST_ENTRY, "uploads/a.png", "uploads/b.png", SETTINGS_ENTRY}
            assert zf.read("uploads/b.png") == b"B"
            assert zf.read(SETTINGS_ENTRY) == b'{"clinicName": "Smile"}'

    def test_missing_sources_skipped(self, tmp_path):
        dest = write_archive(
            "{}",
            tmp_path / "out.zip",
            tmp_path / "no-uploads",
            tmp_path / "no-settings.json",
        )
        with zipfile.ZipFile(dest) as zf:
            assert zf.namelist() == [MANIFEST_ENTRY]

    def test_duplicate_basenames_keep_first(self, tmp_path):
        uploads = tmp_path / "uploads"
        (uploads / "x").mkdir(parents=True)
        (uploads / "x" / "scan.png").write_bytes(b"second")
        (uploads / "scan.png").write_bytes(b"first")

        dest = write_archive("{}", tmp_path / "out.zip", uploads)

        with zipfile.ZipFile(dest) as zf:
            assert zf.namelist().count("uploads/scan.png") == 1

    def test_creates_parent_directory(self, tmp_path):
        dest = write_archive("{}", tmp_path / "nested" / "dir" / "out.zip")
        assert dest.is_file()

    def test_no_temp_files_left(self, tmp_path):
        write_archive("{}", tmp_path / "out.zip")
        assert [p.name for p in tmp_path.iterdir()] == ["out.zip"]

    def test_write_manifest_file(self, tmp_path):
        dest = write_manifest_file('{"formatVersion": "3.0.0"}', tmp_path / "backup.json")
        assert json.loads(dest.read_text()) == {"formatVersion": "3.0.0"}


class TestAtomicWrite:
    """Whole-file replacement through a temporary sibling."""

    def test_overwrites_existing(self, tmp_path):
        target = tmp_path / "settings.json"
        target.write_bytes(b"old")
        atomic_write_bytes(target, b"new")
        assert target.read_bytes() == b"new"
        assert [p.name for p in tmp_path.iterdir()] == ["settings.json"]


# ------------------------------------------------------------------
# Read path
# ------------------------------------------------------------------


class TestBackupArchive:
    """Reading manifests, settings and assets back out of an archive."""

    def test_not_a_zip(self, tmp_path):
        path = tmp_path / "backup.zip"
        path.write_bytes(b"this is not a zip file")
        with pytest.raises(FormatError, match="not a zip archive"):
            with open_archive(path):
                pass

    def test_missing_manifest(self, tmp_path, zip_factory):
        path = zip_factory(tmp_path / "backup.zip", {"uploads/a.png": b"A"})
        with open_archive(path) as archive:
            with pytest.raises(FormatError, match="missing backup.json"):
                archive.read_manifest()

    def test_manifest_not_json(self, tmp_path, zip_factory):
        path = zip_factory(tmp_path / "backup.zip", {MANIFEST_ENTRY: "{{{"})
        with open_archive(path) as archive:
            with pytest.raises(FormatError, match="not valid JSON"):
                archive.read_manifest()

    def test_settings(self, tmp_path, zip_factory):
        path = zip_factory(
            tmp_path / "backup.zip",
            {MANIFEST_ENTRY: "{}", SETTINGS_ENTRY: b'{"a": 1}'},
        )
        with open_archive(path) as archive:
            assert archive.has_settings is True
            assert archive.read_settings() == b'{"a": 1}'

    def test_no_settings(self, tmp_path, zip_factory):
        path = zip_factory(tmp_path / "backup.zip", {MANIFEST_ENTRY: "{}"})
        with open_archive(path) as archive:
            assert archive.has_settings is False
            assert archive.read_settings() is None

    def test_asset_entries_exclude_directories(self, tmp_path, zip_factory):
        path = zip_factory(
            tmp_path / "backup.zip",
            {
                MANIFEST_ENTRY: "{}",
                "uploads/": b"",
                "uploads/a.png": b"A",
                "uploads/.hidden": b"H",
                "other/b.png": b"B",
            },
        )
        with open_archive(path) as archive:
            names = [info.filename for info in archive.asset_entries()]
        assert names == ["uploads/a.png", "uploads/.hidden"]

    def test_extract_assets_filters_entries(self, tmp_path, zip_factory):
        path = zip_factory(
            tmp_path / "backup.zip",
            {
                MANIFEST_ENTRY: "{}",
                "uploads/a.png": b"A",
                "uploads/../../evil.bin": b"EVIL",
                "uploads/.htaccess": b"deny",
                "uploads/nested/": b"",
            },
        )
        dest = tmp_path / "staging"
        with open_archive(path) as archive:
            written = archive.extract_assets(dest)

        assert written == ["a.png", "evil.bin"]
        assert sorted(p.name for p in dest.iterdir()) == ["a.png", "evil.bin"]
        assert (dest / "evil.bin").read_bytes() == b"EVIL"
        assert not (tmp_path / "evil.bin").exists()

    def test_extract_duplicate_names_counted_once(self, tmp_path, zip_factory):
        path = zip_factory(
            tmp_path / "backup.zip",
            {MANIFEST_ENTRY: "{}", "uploads/a/x.png": b"1", "uploads/b/x.png": b"2"},
        )
        dest = tmp_path / "staging"
        with open_archive(path) as archive:
            assert archive.extract_assets(dest) == ["x.png"]
        assert (dest / "x.png").read_bytes() == b"2"

    def test_zip_outside_context_raises(self, tmp_path, zip_factory):
        path = zip_factory(tmp_path / "backup.zip", {MANIFEST_ENTRY: "{}"})
        archive = open_archive(path)
        with pytest.raises(RuntimeError):
            archive.read_manifest()

    @pytest.mark.parametrize("damage", ["encrypted", "compression"])
    def test_unreadable_manifest_is_format_error(self, tmp_path, damaged_zip_factory, damage):
        path = damaged_zip_factory(tmp_path / "backup.zip", MANIFEST_ENTRY, damage)
        with open_archive(path) as archive:
            with pytest.raises(FormatError, match="cannot read backup.json"):
                archive.read_manifest()

    @pytest.mark.parametrize("damage", ["encrypted", "compression"])
    def test_unreadable_asset_is_format_error(self, tmp_path, damaged_zip_factory, damage):
        path = damaged_zip_factory(
            tmp_path / "backup.zip", "uploads/a.png", damage, {MANIFEST_ENTRY: "{}"}
        )
        with open_archive(path) as archive:
            with pytest.raises(FormatError, match="cannot read uploads/a.png"):
                archive.extract_assets(tmp_path / "staging")

    def test_unreadable_settings_is_format_error(self, tmp_path, damaged_zip_factory):
        path = damaged_zip_factory(
            tmp_path / "backup.zip", SETTINGS_ENTRY, "encrypted", {MANIFEST_ENTRY: "{}"}
        )
        with open_archive(path) as archive:
            with pytest.raises(FormatError, match="cannot read clinic-settings.json"):
                archive.read_settings()
