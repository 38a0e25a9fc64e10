"""Shared fixtures for alm_engine tests.

Provides an in-memory :class:`FakePlatform` that records every call, and
factories that write unpacked solution folders and packed archives with a
realistic ``Solution.xml``.
"""

from __future__ import annotations

import zipfile
from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from alm_engine.models.manifest import AlmManifest
from alm_engine.models.solution import DeployedSolutionState, ImportMode
from alm_engine.models.version import SolutionVersion
from alm_engine.platform.base import PlatformError, ProcessRecord, ProcessState, SystemUser

# ---------------------------------------------------------------------------
# Solution files
# ---------------------------------------------------------------------------


def solution_xml(
    name: str,
    version: str,
    *,
    required: Iterable[str] = (),
    root_components: Iterable[tuple[str, str]] = (),
) -> str:
    components = "".join(
        f'<RootComponent type="{comp_type}" schemaName="{schema}" behavior="0" />'
        for comp_type, schema in root_components
    )
    dependencies = "".join(
        f'<MissingDependency><Required type="7" solution="{req} (1.0.0.0)" />'
        f'<Dependent type="1" schemaName="{name.lower()}_thing" /></MissingDependency>'
        for req in required
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<ImportExportXml version="9.2.24011.187" SolutionPackageVersion="9.2" languagecode="1033">\n'
        "  <SolutionManifest>\n"
        f"    <UniqueName>{name}</UniqueName>\n"
        f"    <Version>{version}</Version>\n"
        "    <Managed>0</Managed>\n"
        f"    <RootComponents>{components}</RootComponents>\n"
        f"    <MissingDependencies>{dependencies}</MissingDependencies>\n"
        "  </SolutionManifest>\n"
        "</ImportExportXml>\n"
    )

SolutionWriter = Callable[..., Path]


@pytest.fixture()
def write_solution() -> SolutionWriter:
    """Factory writing an unpacked solution folder."""

    def _write(
        folder: Path,
        name: str = "Core",
        version: str = "1.0.0.0",
        *,
        required: Iterable[str] = (),
        root_components: Iterable[tuple[str, str]] = (("1", "account"),),
        files: dict[str, str] | None = None,
    ) -> Path:
        other = folder / "Other"
        other.mkdir(parents=True, exist_ok=True)
        (other / "Solution.xml").write_text(
            solution_xml(name, version, required=required, root_components=root_components),
            encoding="utf-8",
        )
        for rel_path, content in (files or {}).items():
            target = folder / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        return folder

    return _write


@pytest.fixture()
def write_archive() -> Callable[..., Path]:
    """Factory writing a packed solution ``.zip``."""

    def _write(path: Path, name: str = "Core", version: str = "1.0.0.0", files: dict[str, str] | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("solution.xml", solution_xml(name, version, root_components=[("1", "account")]))
            zf.writestr("customizations.xml", "<ImportExportXml />")
            for rel_path, content in (files or {}).items():
                zf.writestr(rel_path, content)
        return path

    return _write


# ---------------------------------------------------------------------------
# Platform double
# ---------------------------------------------------------------------------


class FakePlatform:
    """In-memory :class:`~alm_engine.platform.base.SolutionPlatform`."""

    def __init__(self, environment_name: str = "TEST") -> None:
        self._environment_name = environment_name
        self.installed: dict[str, DeployedSolutionState] = {}
        self.users: dict[str, list[SystemUser]] = {}
        self.processes: dict[str, list[ProcessRecord]] = {}
        self.exports: dict[str, Callable[[Path], None]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[object, ...]] = []

    @property
    def environment_name(self) -> str:
        return self._environment_name

    def fail(self, operation: str, name: str, message: str = "boom") -> None:
        self.failures[(operation, name)] = PlatformError(message)

    def _record(self, operation: str, name: str, *extra: object) -> None:
        self.calls.append((operation, name, *extra))
        failure = self.failures.get((operation, name))
        if failure is not None:
            raise failure

    def ops(self, *operations: str) -> list[tuple[object, ...]]:
        """Recorded calls, optionally filtered by operation name."""
        return [c for c in self.calls if not operations or c[0] in operations]

    def export_solution(self, name: str, folder: Path) -> Path:
        self._record("export", name)
        self.exports[name](folder)
        return folder

    def stage(self, artifact: Path, mode: ImportMode) -> None:
        self._record("stage", artifact.stem.removesuffix("_managed"), mode)

    def upgrade(self, name: str) -> None:
        self._record("upgrade", name)

    def publish(self) -> None:
        self._record("publish", "*")

    def get_installed_solution(self, name: str) -> DeployedSolutionState | None:
        self._record("get_installed", name)
        return self.installed.get(name)

    def set_version(self, name: str, version: SolutionVersion) -> None:
        self._record("set_version", name, str(version))

    def list_processes(self, name: str) -> list[ProcessRecord]:
        self._record("list_processes", name)
        return list(self.processes.get(name, []))

    def find_users(self, domain_name: str) -> list[SystemUser]:
        return list(self.users.get(domain_name, []))

    def assign_process_owner(self, process_id: str, user_id: str) -> None:
        self._record("assign_owner", process_id, user_id)

    def set_process_state(self, process_id: str, state: ProcessState) -> None:
        self._record("set_state", process_id, state)


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def manifest() -> AlmManifest:
    """Three solutions in dependency order with a TEST environment."""
    return AlmManifest.model_validate(
        {
            "solutions": ["Core", "Sales", {"name": "Portal", "deployUnmanaged": False}],
            "environments": {
                "TEST": {
                    "url": "https://test.crm.dynamics.com/",
                    "variables": {"ServiceAccountUpn": "svc@contoso.com"},
                },
                "DEV": {
                    "url": "https://dev.crm.dynamics.com",
                    "variables": {"ServiceAccountUpn": "svc@contoso.com"},
                },
            },
        }
    )
