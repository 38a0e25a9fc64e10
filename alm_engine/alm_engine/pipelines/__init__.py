"""Export, build, deploy and import pipelines."""

from __future__ import annotations

from alm_engine.pipelines.build import BUILD_MANIFEST_NAME, BuildError, run_build
from alm_engine.pipelines.deploy import build_deployment_plan, collect_artifacts, run_deploy
from alm_engine.pipelines.export import ExportError, ExportPipeline
from alm_engine.pipelines.import_pipeline import run_import

__all__ = [
    "BUILD_MANIFEST_NAME",
    "BuildError",
    "ExportError",
    "ExportPipeline",
    "build_deployment_plan",
    "collect_artifacts",
    "run_build",
    "run_deploy",
    "run_import",
]
