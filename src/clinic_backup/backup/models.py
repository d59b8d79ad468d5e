"""Backup schema and manifest models.

The entity graph, its foreign-key dependencies and the supported format
versions are declared once in a ``BackupSchema``; the backup, preview and
restore operations derive everything else (export list, required
collections, delete and insert order) from it.

Usage:
    from clinic_backup.backup.models import BackupSchema, EntityDef, FormatVersion

    schema = BackupSchema(
        entities=[
            EntityDef(name="owners", table="owners"),
            EntityDef(name="pets", table="pets", depends_on=["owners"]),
        ],
        versions=[
            FormatVersion(version="1.0.0", required=["owners"], optional=["pets"]),
        ],
    )
    schema.insert_order  # owners, pets
    schema.delete_order  # pets, owners
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EntityDef(BaseModel):
    """One entity collection and the table that stores it."""

    name: str                                       # manifest collection key
    table: str                                      # SQL table name
    depends_on: list[str] = Field(default_factory=list)  # collections this one references
    columns: list[str] | None = None                # export projection (None = all)
    order_by: str | None = None                     # export ordering column
    descending: bool = False
    limit: int | None = None                        # export row cap
    restore: bool = True                            # False = exported but never restored
    summary: bool = False                           # listed in system info


class FormatVersion(BaseModel):
    """Entity collections a manifest of one format version carries."""

    version: str
    required: list[str]
    optional: list[str] = Field(default_factory=list)
    archive: bool = True                            # False = bare manifests only

    @property
    def known(self) -> list[str]:
        """Required then optional collection names."""
        return [*self.required, *self.optional]


def _topological_sort(dependencies: dict[str, list[str]], names: list[str]) -> list[str]:
    """Order ``names`` so every entity follows the entities it references.

    Declaration order breaks ties, so an already-ordered declaration comes
    back unchanged.

    Raises:
        ValueError: If the dependencies contain a cycle.
    """
    sorted_names: list[str] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    def visit(name: str, path: list[str]) -> None:
        if name in visited:
            return
        if name in visiting:
            cycle = " -> ".join([*path[path.index(name):], name])
            raise ValueError(f"Dependency cycle between entities: {cycle}")
        visiting.add(name)
        for dep in dependencies.get(name, []):
            visit(dep, [*path, name])
        visiting.discard(name)
        visited.add(name)
        sorted_names.append(name)

    for name in names:
        visit(name, [])

    return sorted_names


class BackupSchema(BaseModel):
    """Declarative backup schema: entities, dependencies and format versions.

    ``versions`` is ordered oldest to newest; the last entry is the version
    new backups are written in.
    """

    entities: list[EntityDef]
    versions: list[FormatVersion]
    audit_table: str = "audit_logs"
    json_columns: list[str] = Field(default_factory=list)
    timestamp_columns: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_consistency(self) -> "BackupSchema":
        names = [e.name for e in self.entities]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate entity names: {', '.join(duplicates)}")

        known = set(names)
        for entity in self.entities:
            unknown = [d for d in entity.depends_on if d not in known]
            if unknown:
                raise ValueError(
                    f"Entity '{entity.name}' depends on undeclared: {', '.join(unknown)}"
                )

        if not self.versions:
            raise ValueError("At least one format version is required")
        for fmt in self.versions:
            if not fmt.required:
                raise ValueError(f"Version {fmt.version} has no required entities")
            unknown = [n for n in fmt.known if n not in known]
            if unknown:
                raise ValueError(
                    f"Version {fmt.version} names undeclared entities: {', '.join(unknown)}"
                )

        # Raises on cycles
        self._ordered_names()
        return self

    def _ordered_names(self) -> list[str]:
        dependencies = {e.name: e.depends_on for e in self.entities}
        return _topological_sort(dependencies, [e.name for e in self.entities])

    def entity(self, name: str) -> EntityDef | None:
        """Find an EntityDef by collection name."""
        for e in self.entities:
            if e.name == name:
                return e
        return None

    def version(self, version: str) -> FormatVersion | None:
        """Find a FormatVersion by version string."""
        for fmt in self.versions:
            if fmt.version == version:
                return fmt
        return None

    @property
    def supported_versions(self) -> list[str]:
        return [fmt.version for fmt in self.versions]

    @property
    def latest_version(self) -> FormatVersion:
        return self.versions[-1]

    @property
    def insert_order(self) -> list[EntityDef]:
        """Restorable entities, parents before children."""
        by_name = {e.name: e for e in self.entities}
        return [by_name[n] for n in self._ordered_names() if by_name[n].restore]

    @property
    def delete_order(self) -> list[EntityDef]:
        """Restorable entities, children before parents."""
        return list(reversed(self.insert_order))


class Manifest(BaseModel):
    """Structured snapshot of all entity data plus version and metadata.

    Records inside ``data`` are opaque: only the collections themselves are
    checked (by ``validate_manifest``), field-level checks are left to the
    database at insert time.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    format_version: str = Field(alias="formatVersion")
    exported_at: str | None = Field(default=None, alias="exportedAt")
    exported_by: str = Field(default="local", alias="exportedBy")
    data: dict[str, Any]
    metadata: dict[str, Any] = Field(default_factory=dict)

    def collection(self, name: str) -> list:
        """Records of one collection; empty when the collection is absent."""
        records = self.data.get(name)
        return records if isinstance(records, list) else []

    def to_payload(self) -> str:
        """Serialize to the JSON text stored in archives and .json files."""
        return json.dumps(self.model_dump(by_alias=True), indent=2, default=str)


# ------------------------------------------------------------------
# Operation results
# ------------------------------------------------------------------


class BackupResult(BaseModel):
    """Outcome of ``create_backup``."""

    path: str
    exported_at: str
    counts: dict[str, int]


class BackupPreview(BaseModel):
    """Read-only summary of a backup file."""

    version: str
    exported_at: str | None
    metadata: dict[str, Any]
    has_images: bool = False
    image_count: int = 0
    has_clinic_settings: bool = False


class RestoreResult(BaseModel):
    """Outcome of ``restore_backup``.

    ``restored_counts`` only lists collections that had records.
    """

    message: str
    restored_counts: dict[str, int]
    backup_date: str | None
    assets_restored: int = 0
    settings_restored: bool = False


class SystemInfo(BaseModel):
    """Row counts of the summary entities and the most recent backup time."""

    database: dict[str, int]
    last_backup: str | None
    server_time: str
