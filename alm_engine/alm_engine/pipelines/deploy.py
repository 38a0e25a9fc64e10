"""Deploy pipeline: plan against the target environment and run the saga."""

from __future__ import annotations

import logging
from pathlib import Path

from alm_engine.deploy.orchestrator import DeployError, DeployOrchestrator, SolutionArtifact, plan_deployment
from alm_engine.hooks.context import DeployHookContext
from alm_engine.hooks.registry import HookRegistry
from alm_engine.models.deployment import DeploymentPlan, DeployResult
from alm_engine.models.manifest import AlmManifest, EnvironmentConfig
from alm_engine.models.solution import DeployedSolutionState
from alm_engine.pipelines.build import managed_artifact_name, unmanaged_artifact_name
from alm_engine.platform.base import PlatformError, SolutionPlatform
from alm_engine.versioning.solution_xml import SolutionManifestError, read_archive_version

logger = logging.getLogger(__name__)


def collect_artifacts(manifest: AlmManifest, artifacts_dir: Path, *, unmanaged: bool = False) -> list[SolutionArtifact]:
    """Locate each solution's artifact and read its version, in manifest order.

    The unmanaged package is picked when the run is unmanaged or the solution
    is configured to deploy unmanaged.

    Raises
    ------
    DeployError
        If an artifact is missing or unreadable.
    """
    artifacts: list[SolutionArtifact] = []
    for config in manifest.solutions:
        use_unmanaged = unmanaged or config.deploy_unmanaged
        file_name = unmanaged_artifact_name(config.name) if use_unmanaged else managed_artifact_name(config.name)
        path = artifacts_dir / file_name
        if not path.is_file():
            raise DeployError(f"Artifact not found: {path}", step="plan", solution=config.name)
        try:
            version = read_archive_version(path)
        except SolutionManifestError as exc:
            raise DeployError(str(exc), step="plan", solution=config.name) from exc
        artifacts.append(SolutionArtifact(config=config, path=path, version=version))
    return artifacts


def build_deployment_plan(
    manifest: AlmManifest,
    platform: SolutionPlatform,
    artifacts_dir: Path,
    *,
    unmanaged: bool = False,
) -> DeploymentPlan:
    """Compute the import decision for every solution without side effects."""
    artifacts = collect_artifacts(manifest, artifacts_dir, unmanaged=unmanaged)
    installed: dict[str, DeployedSolutionState | None] = {}
    for artifact in artifacts:
        name = artifact.config.name
        try:
            installed[name] = platform.get_installed_solution(name)
        except PlatformError as exc:
            raise DeployError(
                f"Cannot read installed state of '{name}': {exc}", step="plan", solution=name
            ) from exc
    return plan_deployment(platform.environment_name, artifacts, installed, unmanaged=unmanaged)


def run_deploy(
    manifest: AlmManifest,
    platform: SolutionPlatform,
    environment: EnvironmentConfig,
    repo_root: Path,
    *,
    artifacts_dir: Path,
    unmanaged: bool = False,
    hooks: HookRegistry | None = None,
) -> DeployResult:
    """Deploy every built artifact to *environment*.

    Raises
    ------
    IdentityResolutionError
        Before any side effect, if a service identity cannot be resolved.
    DeployError
        If planning or any saga step fails.
    """
    if not artifacts_dir.is_absolute():
        artifacts_dir = repo_root / artifacts_dir
    plan = build_deployment_plan(manifest, platform, artifacts_dir, unmanaged=unmanaged)
    context = DeployHookContext(
        repo_root=str(repo_root),
        environment=environment.name,
        environment_url=environment.url,
        artifacts_dir=str(artifacts_dir),
        unmanaged=unmanaged,
    )
    result = DeployOrchestrator(platform, environment, hooks).execute(plan, context)
    logger.info("Deployed %d solution(s) to %s", len(result.records), environment.name)
    return result
