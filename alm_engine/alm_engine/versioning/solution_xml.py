"""Read and update the solution manifest (``Solution.xml``).

An unpacked solution keeps its manifest at ``Other/Solution.xml``; a packed
solution archive keeps it at ``solution.xml`` in the archive root.  Both share
the same ``ImportExportXml/SolutionManifest`` structure.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
import zipfile
from pathlib import Path

from alm_engine.models.version import SolutionVersion

UNPACKED_MANIFEST_PATH = ("Other", "Solution.xml")
ARCHIVE_MANIFEST_NAME = "solution.xml"

# The version element is rewritten textually so the rest of the file keeps
# its exact formatting and stays diff-friendly in source control.
_MANIFEST_VERSION_RE = re.compile(
    r"(<SolutionManifest\b.*?<Version>)([^<]*)(</Version>)",
    re.DOTALL,
)

# MissingDependency/Required@solution looks like "BaseSolution (1.0.0.0)".
_REQUIRED_SOLUTION_RE = re.compile(r"^\s*([^\s(]+)")


class SolutionManifestError(Exception):
    """Raised when a solution manifest is missing or malformed."""


def find_manifest(folder: Path) -> Path:
    """Locate ``Other/Solution.xml`` under *folder*, ignoring case.

    Raises
    ------
    SolutionManifestError
        If the folder has no solution manifest.
    """
    current = folder
    for part in UNPACKED_MANIFEST_PATH:
        match = _child_ignoring_case(current, part)
        if match is None:
            raise SolutionManifestError(f"No solution manifest (Other/Solution.xml) under {folder}")
        current = match
    return current


def _child_ignoring_case(parent: Path, name: str) -> Path | None:
    exact = parent / name
    if exact.exists():
        return exact
    if not parent.is_dir():
        return None
    for child in parent.iterdir():
        if child.name.lower() == name.lower():
            return child
    return None


def parse_manifest_xml(text: str | bytes, source: str) -> ET.Element:
    """Parse manifest XML and return the ``SolutionManifest`` element."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise SolutionManifestError(f"Malformed solution manifest {source}: {exc}") from exc
    manifest = root if root.tag == "SolutionManifest" else root.find("SolutionManifest")
    if manifest is None:
        raise SolutionManifestError(f"{source} has no SolutionManifest element")
    return manifest


def _load_folder_manifest(folder: Path) -> ET.Element:
    path = find_manifest(folder)
    return parse_manifest_xml(path.read_bytes(), str(path))


def _version_from_manifest(manifest: ET.Element, source: str) -> SolutionVersion:
    text = manifest.findtext("Version")
    if text is None:
        raise SolutionManifestError(f"{source} has no Version element")
    return SolutionVersion.parse(text)


def read_version(folder: Path) -> SolutionVersion:
    """Return the version recorded in an unpacked solution folder.

    Raises
    ------
    VersionParseError
        If the recorded version is not a valid four-part version.
    """
    return _version_from_manifest(_load_folder_manifest(folder), str(folder))


def read_unique_name(folder: Path) -> str:
    manifest = _load_folder_manifest(folder)
    name = (manifest.findtext("UniqueName") or "").strip()
    if not name:
        raise SolutionManifestError(f"Solution manifest under {folder} has no UniqueName")
    return name


def read_required_solutions(folder: Path) -> list[str]:
    """Unique names of other solutions this solution depends on, sorted."""
    manifest = _load_folder_manifest(folder)
    required: set[str] = set()
    for element in manifest.iterfind("MissingDependencies/MissingDependency/Required"):
        match = _REQUIRED_SOLUTION_RE.match(element.get("solution", ""))
        if match:
            required.add(match.group(1))
    return sorted(required)


def write_version(folder: Path, version: SolutionVersion) -> None:
    """Rewrite the ``SolutionManifest/Version`` element in place."""
    path = find_manifest(folder)
    text = path.read_text(encoding="utf-8-sig")
    updated, count = _MANIFEST_VERSION_RE.subn(lambda m: f"{m.group(1)}{version}{m.group(3)}", text, count=1)
    if count == 0:
        raise SolutionManifestError(f"{path} has no SolutionManifest Version element to update")
    path.write_text(updated, encoding="utf-8")


def read_archive_version(archive: Path) -> SolutionVersion:
    """Return the version recorded inside a packed solution ``.zip``."""
    manifest = parse_manifest_xml(_read_archive_manifest(archive), str(archive))
    return _version_from_manifest(manifest, str(archive))


def _read_archive_manifest(archive: Path) -> bytes:
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                if info.filename.lower() == ARCHIVE_MANIFEST_NAME:
                    return zf.read(info)
    except (zipfile.BadZipFile, OSError) as exc:
        raise SolutionManifestError(f"Cannot read solution archive {archive}: {exc}") from exc
    raise SolutionManifestError(f"Solution archive {archive} has no {ARCHIVE_MANIFEST_NAME}")
