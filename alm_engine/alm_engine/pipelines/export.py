"""Export pipeline: pull solutions from the source environment into git.

For every manifest solution, in order:

1. export managed and unmanaged packages and unpack them to a scratch folder,
2. compare the fresh snapshot with the committed sources,
3. when it changed, classify the change and bump the version,
4. replace the committed sources and record the new version both in the
   source manifest and on the live solution.

Successfully exported solutions are committed even when another solution
failed its comparison; the run still reports the failure.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from alm_engine.git import git_client
from alm_engine.hooks.context import ExportHookContext
from alm_engine.hooks.registry import HookRegistry
from alm_engine.models.manifest import AlmManifest, HookPhase
from alm_engine.models.pipeline import ExportedSolution, ExportResult, ExportStatus
from alm_engine.platform.base import ComponentComparer, PlatformError, SolutionPlatform
from alm_engine.versioning.bumper import VersionBumper
from alm_engine.versioning.component_diff import SnapshotComparer, SnapshotError
from alm_engine.versioning.solution_xml import (
    SolutionManifestError,
    find_manifest,
    read_version,
    write_version,
)

logger = logging.getLogger(__name__)


class ExportError(Exception):
    """Raised when an export run stops or finishes with failed solutions."""

    def __init__(self, message: str, *, solution: str | None = None, result: ExportResult | None = None) -> None:
        self.solution = solution
        self.result = result
        super().__init__(message)


def _has_sources(folder: Path) -> bool:
    try:
        find_manifest(folder)
    except SolutionManifestError:
        return False
    return True


def _replace_sources(snapshot: Path, target: Path) -> None:
    if target.exists():
        shutil.rmtree(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(snapshot, target)


class ExportPipeline:
    """Exports every manifest solution from one environment."""

    def __init__(
        self,
        manifest: AlmManifest,
        platform: SolutionPlatform,
        repo_root: Path,
        *,
        solutions_dir: Path,
        hooks: HookRegistry | None = None,
        comparer: ComponentComparer | None = None,
    ) -> None:
        self._manifest = manifest
        self._platform = platform
        self._repo_root = repo_root
        self._solutions_dir = solutions_dir if solutions_dir.is_absolute() else repo_root / solutions_dir
        self._hooks = hooks
        self._comparer = comparer or SnapshotComparer()
        self._bumper = VersionBumper(self._comparer)

    def run(
        self,
        commit_message: str,
        *,
        branch: str | None = None,
        push: bool = False,
        remote: str = "origin",
    ) -> ExportResult:
        """Export, version and commit.

        Raises
        ------
        GitClientError
            If the repository is invalid or a git command fails.
        ExportError
            If exporting a solution fails (the run stops), or when any
            solution could not be compared (after committing the rest).
        HookError
            If an export hook fails.
        """
        git_client.validate_repo(self._repo_root)
        context = ExportHookContext(
            repo_root=str(self._repo_root),
            environment=self._platform.environment_name,
            solutions_dir=str(self._solutions_dir),
            solutions=self._manifest.solution_names(),
            commit_message=commit_message,
        )
        if self._hooks is not None:
            self._hooks.run(HookPhase.PRE_EXPORT, context)

        if branch:
            git_client.checkout_branch(self._repo_root, branch, create=True)

        result = ExportResult(environment=self._platform.environment_name)
        for name in self._manifest.solution_names():
            result.solutions.append(self._export_one(name, result))

        if self._hooks is not None:
            self._hooks.run(
                HookPhase.POST_EXPORT,
                context.model_copy(update={"updated_solutions": [s.name for s in result.updated]}),
            )

        result.commit_sha = self._commit(commit_message)
        if push and result.commit_sha is not None:
            git_client.push(self._repo_root, remote, branch or git_client.get_current_branch(self._repo_root))

        if result.failed:
            names = ", ".join(s.name for s in result.failed)
            raise ExportError(f"Export finished with failed solutions: {names}", result=result)
        return result

    def _export_one(self, name: str, result: ExportResult) -> ExportedSolution:
        source = self._solutions_dir / name
        with tempfile.TemporaryDirectory(prefix=f"alm-{name}-") as tmp:
            snapshot = Path(tmp) / name
            try:
                self._platform.export_solution(name, snapshot)
                current = read_version(snapshot)
            except (PlatformError, SolutionManifestError) as exc:
                raise ExportError(f"Export of '{name}' failed: {exc}", solution=name, result=result) from exc

            baseline = source if _has_sources(source) else None
            try:
                if baseline is not None and not self._comparer.has_changes(baseline, snapshot):
                    logger.info("%s unchanged at %s", name, current)
                    return ExportedSolution(name=name, status=ExportStatus.UNCHANGED, previous_version=current)
                bump = self._bumper.bump(current, baseline, snapshot)
            except SnapshotError as exc:
                logger.error("Cannot compare %s: %s", name, exc)
                return ExportedSolution(name=name, status=ExportStatus.FAILED, error_message=str(exc))

            _replace_sources(snapshot, source)

        write_version(source, bump.next_version)
        try:
            self._platform.set_version(name, bump.next_version)
        except PlatformError as exc:
            raise ExportError(f"Setting version of '{name}' failed: {exc}", solution=name, result=result) from exc

        return ExportedSolution(
            name=name,
            status=ExportStatus.UPDATED,
            classification=bump.classification,
            previous_version=bump.previous_version,
            new_version=bump.next_version,
            findings=bump.findings,
        )

    def _commit(self, message: str) -> str | None:
        relative = os.path.relpath(self._solutions_dir, self._repo_root)
        git_client.add_paths(self._repo_root, [relative])
        if not git_client.has_changes(self._repo_root, [relative]):
            logger.info("No source changes to commit")
            return None
        return git_client.commit(self._repo_root, message)
