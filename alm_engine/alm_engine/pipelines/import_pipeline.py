"""Import pipeline: build from sources, then deploy everything unmanaged.

Used to load committed sources into a development environment.
"""

from __future__ import annotations

from pathlib import Path

from alm_engine.hooks.registry import HookRegistry
from alm_engine.models.deployment import DeployResult
from alm_engine.models.manifest import AlmManifest, EnvironmentConfig
from alm_engine.models.pipeline import BuildResult
from alm_engine.pipelines.build import run_build
from alm_engine.pipelines.deploy import run_deploy
from alm_engine.platform.base import SolutionPacker, SolutionPlatform


def run_import(
    manifest: AlmManifest,
    packer: SolutionPacker,
    platform: SolutionPlatform,
    environment: EnvironmentConfig,
    repo_root: Path,
    *,
    solutions_dir: Path,
    artifacts_dir: Path,
    hooks: HookRegistry | None = None,
) -> tuple[BuildResult, DeployResult]:
    build = run_build(
        manifest,
        packer,
        repo_root,
        solutions_dir=solutions_dir,
        artifacts_dir=artifacts_dir,
        hooks=hooks,
    )
    deploy = run_deploy(
        manifest,
        platform,
        environment,
        repo_root,
        artifacts_dir=Path(build.artifacts_dir),
        unmanaged=True,
        hooks=hooks,
    )
    return build, deploy
