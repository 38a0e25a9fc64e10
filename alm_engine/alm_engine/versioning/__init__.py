"""Solution change classification and version bumping."""

from __future__ import annotations

from alm_engine.versioning.bumper import VersionBump, VersionBumper, classify_change, next_version
from alm_engine.versioning.component_diff import (
    ComponentComparison,
    ComponentInventory,
    SnapshotComparer,
    SnapshotError,
    compare_inventories,
    has_changes,
    load_inventory,
)
from alm_engine.versioning.solution_xml import (
    SolutionManifestError,
    read_archive_version,
    read_required_solutions,
    read_unique_name,
    read_version,
    write_version,
)

__all__ = [
    "ComponentComparison",
    "ComponentInventory",
    "SnapshotComparer",
    "SnapshotError",
    "SolutionManifestError",
    "VersionBump",
    "VersionBumper",
    "classify_change",
    "compare_inventories",
    "has_changes",
    "load_inventory",
    "next_version",
    "read_archive_version",
    "read_required_solutions",
    "read_unique_name",
    "read_version",
    "write_version",
]
