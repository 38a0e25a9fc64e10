"""Tests for alm_cli/app.py -- the ``alm`` command line.

Commands import engine entry points locally, so mocks target the source
modules (``alm_engine.pipelines.*``, ``alm_engine.platform.connect``) rather
than ``alm_cli.app``.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from alm_cli.app import app
from alm_engine.deploy import DeployError
from alm_engine.models.deployment import (
    DeploymentPlan,
    DeployResult,
    SolutionDeployment,
    SolutionRunRecord,
    SolutionStage,
)
from alm_engine.models.pipeline import BuildResult, BuiltArtifact, ExportedSolution, ExportResult, ExportStatus
from alm_engine.models.solution import ImportAction, ImportDecision, ImportMode, SolutionConfig
from alm_engine.models.version import SolutionVersion
from alm_engine.pipelines import BuildError, ExportError

runner = CliRunner()

_HOLDING = ImportDecision(action=ImportAction.UPGRADE, mode=ImportMode.HOLDING, reason="major.minor changed")


def _json(output: str) -> dict:
    return json.loads(output[output.index("{") : output.rindex("}") + 1])


def _connect_mock() -> MagicMock:
    connect = MagicMock()
    connect.return_value.__enter__.return_value = MagicMock(environment_name="TEST")
    return connect


def _deploy_result(stage: SolutionStage = SolutionStage.PUBLISHED) -> DeployResult:
    return DeployResult(
        environment="TEST",
        records=[SolutionRunRecord(name="Core", decision=_HOLDING, stage=stage)],
    )


def _build_result(repo: Path) -> BuildResult:
    return BuildResult(
        artifacts_dir=str(repo / "out" / "artifacts"),
        artifacts=[
            BuiltArtifact(
                name="Core",
                version=SolutionVersion.parse("1.2.0.0"),
                managed_path="Core_managed.zip",
                unmanaged_path="Core.zip",
            )
        ],
    )


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommand:
    def test_json_output_uses_manifest_keys(self, repo):
        result = runner.invoke(app, ["--json", "config", "--repo", str(repo)])

        assert result.exit_code == 0, result.output
        data = _json(result.output)
        assert [s["name"] for s in data["solutions"]] == ["Core", "Sales"]
        assert data["solutions"][1]["serviceAccountKey"] == "SalesUpn"
        assert data["scriptDependencies"]["Microsoft.PowerApps.CLI.Tool"]["version"] == "1.38.3"

    def test_human_output(self, repo):
        result = runner.invoke(app, ["config", "--repo", str(repo)])
        assert result.exit_code == 0, result.output
        assert "Environments" in result.output
        assert "preDeploy" in result.output

    def test_invalid_manifest(self, repo):
        (repo / "alm-config.yml").write_text("solutions: [Core, core]\n", encoding="utf-8")
        result = runner.invoke(app, ["config", "--repo", str(repo)])
        assert result.exit_code == 3
        assert "Invalid configuration" in result.output

    def test_missing_manifest(self, tmp_path):
        result = runner.invoke(app, ["config", "--repo", str(tmp_path)])
        assert result.exit_code == 3
        assert "not found" in result.output


# ---------------------------------------------------------------------------
# build
# ---------------------------------------------------------------------------


class TestBuildCommand:
    @patch("alm_engine.pipelines.run_build")
    def test_uses_configured_directories(self, mock_build, repo):
        mock_build.return_value = _build_result(repo)

        result = runner.invoke(app, ["build", "--repo", str(repo)])

        assert result.exit_code == 0, result.output
        kwargs = mock_build.call_args.kwargs
        assert kwargs["solutions_dir"] == repo / "solutions"
        assert kwargs["artifacts_dir"] == repo / "out" / "artifacts"
        assert "Built Artifacts" in result.output

    @patch("alm_engine.pipelines.run_build")
    def test_out_option(self, mock_build, repo):
        mock_build.return_value = _build_result(repo)
        result = runner.invoke(app, ["build", "--repo", str(repo), "-o", "dist"])
        assert result.exit_code == 0, result.output
        assert mock_build.call_args.kwargs["artifacts_dir"] == repo / "dist"

    @patch("alm_engine.pipelines.run_build", side_effect=BuildError("Build of 'Core' failed: boom", solution="Core"))
    def test_failure_exits_3(self, mock_build, repo):
        result = runner.invoke(app, ["build", "--repo", str(repo)])
        assert result.exit_code == 3
        assert "Build failed" in result.output

    @patch("alm_engine.pipelines.run_build")
    def test_metrics_file(self, mock_build, repo, tmp_path):
        mock_build.return_value = _build_result(repo)
        metrics = tmp_path / "metrics.jsonl"

        result = runner.invoke(app, ["--metrics-file", str(metrics), "build", "--repo", str(repo)])

        assert result.exit_code == 0, result.output
        event = json.loads(metrics.read_text(encoding="utf-8").splitlines()[0])
        assert event["event"] == "build.completed"
        assert event["data"] == {"artifacts": 1}


# ---------------------------------------------------------------------------
# deploy
# ---------------------------------------------------------------------------


class TestDeployCommand:
    @patch("alm_engine.pipelines.run_deploy")
    def test_success(self, mock_deploy, repo):
        mock_deploy.return_value = _deploy_result()
        connect = _connect_mock()

        with patch("alm_engine.platform.connect", connect):
            result = runner.invoke(app, ["deploy", "test", "--repo", str(repo), "--unmanaged"])

        assert result.exit_code == 0, result.output
        assert connect.call_args.args[0].name == "TEST"
        kwargs = mock_deploy.call_args.kwargs
        assert kwargs["unmanaged"] is True
        assert kwargs["artifacts_dir"] == repo / "out" / "artifacts"
        assert "complete" in result.output

    def test_unknown_environment(self, repo):
        result = runner.invoke(app, ["deploy", "PROD", "--repo", str(repo)])
        assert result.exit_code == 3
        assert "Environment 'PROD' is not declared" in result.output

    def test_missing_token(self, repo):
        result = runner.invoke(app, ["deploy", "TEST", "--repo", str(repo)])
        assert result.exit_code == 3
        assert "ALM_DATAVERSE_TOKEN" in result.output

    @patch("alm_engine.pipelines.run_deploy")
    def test_partial_failure_shows_stages(self, mock_deploy, repo):
        mock_deploy.side_effect = DeployError(
            "upgrade failed for solution 'Core': timeout",
            step="upgrade",
            solution="Core",
            result=_deploy_result(SolutionStage.FAILED),
        )
        with patch("alm_engine.platform.connect", _connect_mock()):
            result = runner.invoke(app, ["deploy", "TEST", "--repo", str(repo)])

        assert result.exit_code == 3
        assert "did not complete" in result.output
        assert "Deploy failed" in result.output

    @patch("alm_engine.pipelines.run_deploy")
    def test_json_output(self, mock_deploy, repo):
        mock_deploy.return_value = _deploy_result()
        with patch("alm_engine.platform.connect", _connect_mock()):
            result = runner.invoke(app, ["--json", "deploy", "TEST", "--repo", str(repo)])

        assert result.exit_code == 0, result.output
        data = _json(result.output)
        assert data["records"][0]["stage"] == "PUBLISHED"


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------


class TestPlanCommand:
    @patch("alm_engine.pipelines.build_deployment_plan")
    def test_json_plan(self, mock_plan, repo):
        mock_plan.return_value = DeploymentPlan(
            environment="TEST",
            entries=[
                SolutionDeployment(
                    config=SolutionConfig(name="Core"),
                    artifact_path="Core_managed.zip",
                    artifact_version=SolutionVersion.parse("1.1.0.0"),
                    decision=_HOLDING,
                )
            ],
        )
        with patch("alm_engine.platform.connect", _connect_mock()):
            result = runner.invoke(app, ["--json", "plan", "TEST", "--repo", str(repo), "--artifacts", "/tmp/a"])

        assert result.exit_code == 0, result.output
        assert mock_plan.call_args.args[2] == Path("/tmp/a")
        data = _json(result.output)
        assert data["entries"][0]["decision"]["mode"] == "HOLDING"

    @patch("alm_engine.pipelines.build_deployment_plan")
    def test_plan_error(self, mock_plan, repo):
        mock_plan.side_effect = DeployError("Artifact not found: Core_managed.zip", step="plan")
        with patch("alm_engine.platform.connect", _connect_mock()):
            result = runner.invoke(app, ["plan", "TEST", "--repo", str(repo)])
        assert result.exit_code == 3
        assert "Error generating plan" in result.output


# ---------------------------------------------------------------------------
# export / import
# ---------------------------------------------------------------------------


def _export_result(commit_sha: str | None = "0123456789abcdef0123") -> ExportResult:
    return ExportResult(
        environment="DEV",
        commit_sha=commit_sha,
        solutions=[
            ExportedSolution(
                name="Core",
                status=ExportStatus.UPDATED,
                previous_version=SolutionVersion.parse("1.0.0.0"),
                new_version=SolutionVersion.parse("1.0.0.1"),
            )
        ],
    )


class TestExportCommand:
    @patch("alm_engine.pipelines.ExportPipeline")
    def test_defaults_to_source_environment(self, mock_pipeline, repo):
        mock_pipeline.return_value.run.return_value = _export_result()
        connect = _connect_mock()

        with patch("alm_engine.platform.connect", connect):
            result = runner.invoke(app, ["export", "Nightly", "--repo", str(repo), "--branch", "exp", "--push"])

        assert result.exit_code == 0, result.output
        assert connect.call_args.args[0].name == "DEV"
        mock_pipeline.return_value.run.assert_called_once_with("Nightly", branch="exp", push=True, remote="origin")
        assert "Committed" in result.output

    @patch("alm_engine.pipelines.ExportPipeline")
    def test_failed_solutions_exit_3(self, mock_pipeline, repo):
        mock_pipeline.return_value.run.side_effect = ExportError(
            "Export finished with failed solutions: Core", result=_export_result(None)
        )
        with patch("alm_engine.platform.connect", _connect_mock()):
            result = runner.invoke(app, ["export", "Nightly", "--repo", str(repo), "-e", "TEST"])

        assert result.exit_code == 3
        assert "Nothing to commit" in result.output
        assert "Export failed" in result.output


class TestImportCommand:
    @patch("alm_engine.pipelines.run_import")
    def test_json_payload(self, mock_import, repo):
        mock_import.return_value = (_build_result(repo), _deploy_result())
        with patch("alm_engine.platform.connect", _connect_mock()):
            result = runner.invoke(app, ["--json", "import", "DEV", "--repo", str(repo)])

        assert result.exit_code == 0, result.output
        data = _json(result.output)
        assert data["build"]["artifacts"][0]["name"] == "Core"
        assert data["deploy"]["environment"] == "TEST"

    @patch("alm_engine.pipelines.run_import", side_effect=BuildError("Build of 'Core' failed: boom"))
    def test_build_failure(self, mock_import, repo):
        with patch("alm_engine.platform.connect", _connect_mock()):
            result = runner.invoke(app, ["import", "DEV", "--repo", str(repo)])
        assert result.exit_code == 3
        assert "Import failed" in result.output


# ---------------------------------------------------------------------------
# prepare-release
# ---------------------------------------------------------------------------


class TestPrepareReleaseCommand:
    def _alm_root(self, tmp_path: Path) -> Path:
        root = tmp_path / "alm"
        root.mkdir()
        (root / "alm-config-defaults.yml").write_text(
            "scriptDependencies:\n  Microsoft.PowerApps.CLI.Tool: '1.38.3'\n", encoding="utf-8"
        )
        (root / "setup.ps1").write_text("__ALM4DATAVERSE_REF__ __DATAVERSE_CLI_VERSION__ __UPSTREAM_REPO__\n")
        return root

    def test_renders_setup_script(self, tmp_path):
        root = self._alm_root(tmp_path)
        out = tmp_path / "release"

        result = runner.invoke(
            app, ["prepare-release", "v1.2.0", str(out), "https://x/alm.git", "--alm-root", str(root)]
        )

        assert result.exit_code == 0, result.output
        assert (out / "setup.ps1").read_text().strip() == "v1.2.0 1.38.3 https://x/alm.git"
        assert "Release preparation complete" in result.output

    def test_missing_template(self, tmp_path):
        root = self._alm_root(tmp_path)
        (root / "setup.ps1").unlink()
        result = runner.invoke(app, ["prepare-release", "v1", str(tmp_path / "out"), "--alm-root", str(root)])
        assert result.exit_code == 3
        assert "Release preparation failed" in result.output
