"""Component-level comparison of two solution snapshots.

A *snapshot* is either an unpacked solution folder or a packed solution
``.zip``.  Each snapshot is reduced to a :class:`ComponentInventory`:

* **files** -- every file keyed by its lower-case POSIX relative path with a
  SHA-256 content hash.  Solution manifest files are excluded because they
  carry the version, which changes on every export.
* **root components** -- ``(type, schemaName|id)`` pairs declared in the
  solution manifest.
* **attributes** -- ``(entity, attribute) -> type`` for every entity
  attribute declared in ``Entity.xml`` / ``customizations.xml``.

The new snapshot is a *compatible superset* of the old one when nothing in the
old inventory is missing from the new one and no attribute changed its type.
Edited file content and newly added components are compatible.
"""

from __future__ import annotations

import hashlib
import logging
import xml.etree.ElementTree as ET
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field

from alm_engine.versioning.solution_xml import (
    SolutionManifestError,
    find_manifest,
    parse_manifest_xml,
)

logger = logging.getLogger(__name__)

_MANIFEST_FILES = frozenset({"other/solution.xml", "solution.xml", "[content_types].xml"})
_ENTITY_DEFINITION_FILES = frozenset({"entity.xml", "customizations.xml"})


class SnapshotError(Exception):
    """Raised when a snapshot cannot be read or parsed."""


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComponentInventory:
    """Everything in a snapshot that downstream consumers can depend on."""

    files: dict[str, str] = field(default_factory=dict)
    root_components: frozenset[tuple[str, str]] = frozenset()
    attributes: dict[tuple[str, str], str] = field(default_factory=dict)


class ComponentComparison(BaseModel):
    """Result of comparing an old snapshot against a new one."""

    removed_components: list[str] = Field(default_factory=list)
    altered_components: list[str] = Field(default_factory=list)

    @property
    def is_additive(self) -> bool:
        return not self.removed_components and not self.altered_components

    @property
    def findings(self) -> list[str]:
        return [f"removed {c}" for c in self.removed_components] + [
            f"altered {c}" for c in self.altered_components
        ]


def _iter_snapshot_files(snapshot: Path) -> Iterator[tuple[str, bytes]]:
    """Yield ``(relative_posix_path, content)`` for every file in *snapshot*."""
    if snapshot.is_dir():
        for path in sorted(snapshot.rglob("*")):
            if path.is_file():
                yield path.relative_to(snapshot).as_posix(), path.read_bytes()
        return

    try:
        with zipfile.ZipFile(snapshot) as zf:
            for info in sorted(zf.infolist(), key=lambda i: i.filename):
                if not info.is_dir():
                    yield info.filename, zf.read(info)
    except (zipfile.BadZipFile, OSError) as exc:
        raise SnapshotError(f"Cannot read solution archive {snapshot}: {exc}") from exc


def _root_components(snapshot: Path, files: dict[str, bytes]) -> frozenset[tuple[str, str]]:
    if snapshot.is_dir():
        try:
            manifest_path = find_manifest(snapshot)
        except SolutionManifestError as exc:
            raise SnapshotError(str(exc)) from exc
        raw = manifest_path.read_bytes()
        source = str(manifest_path)
    else:
        raw = files.get("solution.xml", b"")
        if not raw:
            raise SnapshotError(f"Solution archive {snapshot} has no solution.xml")
        source = f"{snapshot}!solution.xml"

    try:
        manifest = parse_manifest_xml(raw, source)
    except SolutionManifestError as exc:
        raise SnapshotError(str(exc)) from exc

    components: set[tuple[str, str]] = set()
    for element in manifest.iterfind("RootComponents/RootComponent"):
        key = element.get("schemaName") or element.get("id") or ""
        components.add((element.get("type", ""), key.lower()))
    return frozenset(components)


def _entity_attributes(path: str, content: bytes) -> dict[tuple[str, str], str]:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise SnapshotError(f"Malformed entity definition {path}: {exc}") from exc

    attributes: dict[tuple[str, str], str] = {}
    for entity in root.iter("entity"):
        entity_name = (entity.get("Name") or "").lower()
        if not entity_name:
            continue
        for attribute in entity.iterfind("attributes/attribute"):
            physical_name = (attribute.get("PhysicalName") or "").lower()
            if physical_name:
                attr_type = (attribute.findtext("Type") or "").strip().lower()
                attributes[(entity_name, physical_name)] = attr_type
    return attributes


def load_inventory(snapshot: Path) -> ComponentInventory:
    """Build the component inventory of an unpacked folder or a ``.zip``.

    Raises
    ------
    SnapshotError
        If the snapshot does not exist, cannot be read, or contains
        malformed XML.
    """
    if not snapshot.exists():
        raise SnapshotError(f"Snapshot does not exist: {snapshot}")

    raw_files: dict[str, bytes] = {}
    for rel_path, content in _iter_snapshot_files(snapshot):
        raw_files[rel_path.lower()] = content

    hashes = {
        rel_path: hashlib.sha256(content).hexdigest()
        for rel_path, content in raw_files.items()
        if rel_path not in _MANIFEST_FILES
    }

    attributes: dict[tuple[str, str], str] = {}
    for rel_path in sorted(raw_files):
        if PurePosixPath(rel_path).name in _ENTITY_DEFINITION_FILES:
            attributes.update(_entity_attributes(rel_path, raw_files[rel_path]))

    return ComponentInventory(
        files=hashes,
        root_components=_root_components(snapshot, raw_files),
        attributes=attributes,
    )


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def compare_inventories(old: ComponentInventory, new: ComponentInventory) -> ComponentComparison:
    """Apply the compatible-superset rules to two inventories."""
    removed: list[str] = []
    altered: list[str] = []

    for rel_path in sorted(set(old.files) - set(new.files)):
        removed.append(f"file {rel_path}")

    for comp_type, key in sorted(old.root_components - new.root_components):
        removed.append(f"root component {comp_type}:{key}")

    for entity, attribute in sorted(old.attributes):
        if (entity, attribute) not in new.attributes:
            removed.append(f"attribute {entity}.{attribute}")
            continue
        old_type = old.attributes[(entity, attribute)]
        new_type = new.attributes[(entity, attribute)]
        if old_type != new_type:
            altered.append(f"attribute {entity}.{attribute} ({old_type} -> {new_type})")

    return ComponentComparison(removed_components=removed, altered_components=altered)


def has_changes(old: ComponentInventory, new: ComponentInventory) -> bool:
    """True when component content differs, ignoring version-only edits."""
    return old.files != new.files or old.root_components != new.root_components


class SnapshotComparer:
    """Default :class:`~alm_engine.platform.base.ComponentComparer`."""

    def compare(self, old_snapshot: Path, new_snapshot: Path) -> ComponentComparison:
        comparison = compare_inventories(load_inventory(old_snapshot), load_inventory(new_snapshot))
        if not comparison.is_additive:
            logger.info(
                "Breaking change between %s and %s: %s",
                old_snapshot,
                new_snapshot,
                "; ".join(comparison.findings),
            )
        return comparison

    def has_changes(self, old_snapshot: Path, new_snapshot: Path) -> bool:
        return has_changes(load_inventory(old_snapshot), load_inventory(new_snapshot))
