"""Build pipeline: pack committed solution sources into deployable artifacts.

No environment is involved.  Each solution yields ``<Name>_managed.zip`` and
``<Name>.zip`` (unmanaged) in the artifacts directory, plus a
``build-manifest.json`` describing what was built.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alm_engine.graph.dependency_order import validate_solution_order
from alm_engine.hooks.context import BuildHookContext
from alm_engine.hooks.registry import HookRegistry
from alm_engine.models.manifest import AlmManifest, HookPhase
from alm_engine.models.pipeline import BuildResult, BuiltArtifact
from alm_engine.platform.base import PackageType, PlatformError, SolutionPacker
from alm_engine.versioning.solution_xml import SolutionManifestError, read_unique_name, read_version

logger = logging.getLogger(__name__)

BUILD_MANIFEST_NAME = "build-manifest.json"


class BuildError(Exception):
    """Raised when a solution cannot be packed."""

    def __init__(self, message: str, *, solution: str | None = None) -> None:
        self.solution = solution
        super().__init__(message)


def managed_artifact_name(solution: str) -> str:
    return f"{solution}_managed.zip"


def unmanaged_artifact_name(solution: str) -> str:
    return f"{solution}.zip"


def run_build(
    manifest: AlmManifest,
    packer: SolutionPacker,
    repo_root: Path,
    *,
    solutions_dir: Path,
    artifacts_dir: Path,
    hooks: HookRegistry | None = None,
) -> BuildResult:
    """Pack every manifest solution, in manifest order.

    Raises
    ------
    ManifestError
        If the manifest order contradicts the solutions' declared dependencies.
    BuildError
        If a solution has no readable sources or packing fails.
    HookError
        If a build hook fails.
    """
    if not solutions_dir.is_absolute():
        solutions_dir = repo_root / solutions_dir
    if not artifacts_dir.is_absolute():
        artifacts_dir = repo_root / artifacts_dir

    context = BuildHookContext(
        repo_root=str(repo_root),
        solutions_dir=str(solutions_dir),
        artifacts_dir=str(artifacts_dir),
        solutions=manifest.solution_names(),
    )
    if hooks is not None:
        hooks.run(HookPhase.PRE_BUILD, context)

    try:
        validate_solution_order(manifest, solutions_dir)
    except SolutionManifestError as exc:
        raise BuildError(str(exc)) from exc

    artifacts_dir.mkdir(parents=True, exist_ok=True)
    result = BuildResult(artifacts_dir=str(artifacts_dir))

    for name in manifest.solution_names():
        folder = solutions_dir / name
        managed = artifacts_dir / managed_artifact_name(name)
        unmanaged = artifacts_dir / unmanaged_artifact_name(name)
        try:
            unique_name = read_unique_name(folder)
            if unique_name.lower() != name.lower():
                raise BuildError(
                    f"Sources in {folder} belong to solution '{unique_name}', not '{name}'", solution=name
                )
            version = read_version(folder)
            packer.pack(folder, managed, PackageType.MANAGED)
            packer.pack(folder, unmanaged, PackageType.UNMANAGED)
        except (SolutionManifestError, PlatformError) as exc:
            raise BuildError(f"Build of '{name}' failed: {exc}", solution=name) from exc

        logger.info("Built %s %s", name, version)
        result.artifacts.append(
            BuiltArtifact(name=name, version=version, managed_path=str(managed), unmanaged_path=str(unmanaged))
        )

    (artifacts_dir / BUILD_MANIFEST_NAME).write_text(result.model_dump_json(indent=2), encoding="utf-8")

    if hooks is not None:
        hooks.run(HookPhase.POST_BUILD, context)
    return result
