"""Shared fixtures: an in-memory adapter, manifest builders and archive builders."""

import copy
import zipfile
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from clinic_backup.backup.schema import CLINIC_SCHEMA, REQUIRED_ENTITIES
from clinic_backup.config.models import DataPaths


class InMemoryAdapter:
    """``DatabaseClient`` double holding tables as lists of dicts.

    Transactions snapshot every table on entry and put the snapshot back
    when the block raises.  ``fail_on_insert`` makes ``insert_many`` raise
    for one table; ``calls`` records the transaction operations in order.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = copy.deepcopy(tables or {})
        self.fail_on_insert: str | None = None
        self.fail_audit = False
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def select(self, table, columns="*", filters=None, order_by=None,
                     descending=False, limit=None):
        rows = [dict(r) for r in self.tables.get(table, [])]
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            rows = [{c: r.get(c) for c in columns} for r in rows]
        return rows

    async def insert(self, table, data):
        if self.fail_audit and table == CLINIC_SCHEMA.audit_table:
            raise RuntimeError("audit table is read-only")
        self.tables.setdefault(table, []).append(dict(data))
        return dict(data)

    async def count(self, table):
        return len(self.tables.get(table, []))

    async def execute(self, sql, params=None):
        return None

    @asynccontextmanager
    async def transaction(self):
        snapshot = copy.deepcopy(self.tables)
        try:
            yield _MemoryTransaction(self)
        except BaseException:
            self.tables = snapshot
            raise

    async def close(self):
        self.closed = True


class _MemoryTransaction:
    def __init__(self, adapter: InMemoryAdapter) -> None:
        self._adapter = adapter

    async def delete_all(self, table):
        self._adapter.calls.append(("delete", table))
        removed = len(self._adapter.tables.get(table, []))
        self._adapter.tables[table] = []
        return removed

    async def insert_many(self, table, rows):
        self._adapter.calls.append(("insert", table))
        if self._adapter.fail_on_insert == table:
            raise RuntimeError(f"constraint violation on {table}")
        self._adapter.tables.setdefault(table, []).extend(dict(r) for r in rows)
        return len(rows)


def make_manifest(version: str = "3.0.0", **collections) -> dict:
    """Raw manifest dict with every required collection (empty by default)."""
    data = {name: [] for name in REQUIRED_ENTITIES}
    data.update(collections)
    return {
        "formatVersion": version,
        "exportedAt": "2024-06-01T10:00:00.000Z",
        "exportedBy": "local",
        "data": data,
        "metadata": {
            "counts": {k: len(v) if isinstance(v, list) else 0 for k, v in data.items()},
            "note": "test",
        },
    }


def write_zip(path: Path, entries: dict[str, bytes | str]) -> Path:
    """Write a zip archive; names ending in ``/`` become directory entries."""
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in entries.items():
            if name.endswith("/"):
                zf.writestr(zipfile.ZipInfo(name), b"")
            else:
                zf.writestr(name, content)
    return path


def write_damaged_zip(path: Path, name: str, damage: str, extra: dict | None = None) -> Path:
    """Write a zip whose central directory marks ``name`` as unreadable.

    ``damage`` is ``"encrypted"`` (encryption flag bit set) or
    ``"compression"`` (unknown compression method).
    """
    with zipfile.ZipFile(path, "w") as zf:
        for entry, content in (extra or {}).items():
            zf.writestr(entry, content)
        zf.writestr(name, b"{}")
        info = zf.getinfo(name)
        if damage == "encrypted":
            info.flag_bits |= 0x1
        else:
            info.compress_type = 99
    return path


@pytest.fixture
def memory_adapter():
    """Empty in-memory adapter."""
    return InMemoryAdapter()


@pytest.fixture
def adapter_factory():
    """Build an in-memory adapter pre-filled with tables."""
    return InMemoryAdapter


@pytest.fixture
def manifest_factory():
    """Build a raw manifest dict (see ``make_manifest``)."""
    return make_manifest


@pytest.fixture
def zip_factory():
    """Write a zip archive from a name -> content mapping."""
    return write_zip


@pytest.fixture
def damaged_zip_factory():
    """Write a zip with one unreadable entry (see ``write_damaged_zip``)."""
    return write_damaged_zip


@pytest.fixture
def sample_records():
    """A small, referentially consistent clinic dataset keyed by collection."""
    return {
        "patients": [
            {"id": "p1", "firstName": "Ana", "lastName": "Silva"},
            {"id": "p2", "firstName": "Ben", "lastName": "Okafor"},
        ],
        "medicalHistories": [{"id": "m1", "patientId": "p1", "allergies": "latex"}],
        "teeth": [{"id": "t1", "patientId": "p1", "toothNumber": 11}],
        "appointments": [{"id": "a1", "patientId": "p1", "dentistId": "u1"}],
        "treatments": [{"id": "tr1", "patientId": "p1", "appointmentId": "a1"}],
        "invoices": [{"id": "i1", "patientId": "p1", "total": 120.0}],
        "invoiceItems": [{"id": "ii1", "invoiceId": "i1", "treatmentId": "tr1"}],
        "payments": [{"id": "pay1", "invoiceId": "i1", "amount": 120.0}],
    }


@pytest.fixture
def data_paths(tmp_path):
    """DataPaths rooted in a temporary data directory."""
    return DataPaths(data_dir=tmp_path / "data")

