"""ALM CLI application -- Typer-based pipeline interface.

Provides the export, build, deploy and import pipelines plus the ``plan``,
``config`` and ``prepare-release`` support commands.  Human-readable output
goes to *stderr* via Rich; machine-readable output (``--json``) goes to
*stdout* so that pipelines can compose cleanly.
"""

from __future__ import annotations

import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console

from alm_cli.display import (
    display_build_result,
    display_deploy_result,
    display_deployment_plan,
    display_export_result,
    display_manifest,
)
from alm_cli.logging_setup import configure_logging

if TYPE_CHECKING:
    from alm_engine.config import Settings
    from alm_engine.hooks.registry import HookRegistry
    from alm_engine.models.manifest import AlmManifest

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="alm",
    help="ALM for Dataverse - export, build and deploy Power Platform solutions",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Mutable global options populated by the Typer callback.
_json_output: bool = False
_metrics_file: Path | None = None


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    metrics_file: Path | None = typer.Option(
        None,
        "--metrics-file",
        help="Write metrics events to this file (JSONL).",
        envvar="ALM_METRICS_FILE",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log at DEBUG level.",
    ),
) -> None:
    """Global options applied to every command."""
    from alm_engine.config import load_settings

    global _json_output, _metrics_file  # noqa: PLW0603
    settings = load_settings()
    _json_output = json_mode
    _metrics_file = metrics_file or settings.metrics_file
    configure_logging(verbose=verbose or settings.debug, structured=settings.structured_logging)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_metrics(event: str, data: dict[str, Any]) -> None:
    """Append a timestamped metrics event to the metrics file, if configured.

    Failures never propagate; metrics emission must never break the main
    command execution.
    """
    if _metrics_file is None:
        return
    record = {
        "event": event,
        "timestamp": datetime.now(UTC).isoformat(),
        "data": data,
    }
    try:
        with _metrics_file.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, sort_keys=True, default=str) + "\n")
    except OSError:
        # Read-only filesystem, disk full, permission denied, etc.
        pass


def _error_text(exc: Exception) -> str:
    # KeyError wraps its message in quotes.
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc)


def _fail(label: str, event: str, exc: Exception) -> typer.Exit:
    console.print(f"[red]{label}: {_error_text(exc)}[/red]")
    _emit_metrics(event, {"error": _error_text(exc), "type": type(exc).__name__})
    return typer.Exit(code=3)


def _load(repo: Path) -> tuple[Settings, AlmManifest]:
    from alm_engine.config import load_settings
    from alm_engine.manifest import load_manifest

    settings = load_settings()
    manifest = load_manifest(repo, config_file=settings.config_file, defaults_file=settings.defaults_file)
    return settings, manifest


def _hooks(manifest: AlmManifest, repo: Path, settings: Settings) -> HookRegistry:
    from alm_engine.hooks import HookRegistry

    return HookRegistry.from_manifest(manifest, repo, timeout_seconds=settings.hook_timeout_seconds)


def _resolve(repo: Path, path: Path) -> Path:
    return path if path.is_absolute() else repo / path


_REPO_OPTION_HELP = "Path to the repository containing alm-config.yml."


# ---------------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------------


@app.command()
def export(
    message: str = typer.Argument(..., help="Commit message for the exported sources."),
    repo: Path = typer.Option(Path("."), "--repo", help=_REPO_OPTION_HELP, file_okay=False, resolve_path=True),
    environment: str | None = typer.Option(
        None,
        "--environment",
        "-e",
        help="Source environment (defaults to ALM_SOURCE_ENVIRONMENT or DEV).",
    ),
    branch: str | None = typer.Option(None, "--branch", help="Create and commit to this branch."),
    push: bool = typer.Option(False, "--push/--no-push", help="Push the commit to the configured remote."),
) -> None:
    """Export solutions from the source environment, bump versions and commit."""
    from alm_engine.pipelines import ExportError, ExportPipeline
    from alm_engine.platform import connect

    try:
        settings, manifest = _load(repo)
        env = manifest.environment(environment or settings.source_environment)
        with connect(env, settings) as platform:
            pipeline = ExportPipeline(
                manifest,
                platform,
                repo,
                solutions_dir=_resolve(repo, settings.solutions_dir),
                hooks=_hooks(manifest, repo, settings),
            )
            result = pipeline.run(message, branch=branch, push=push, remote=settings.git_remote)

        _emit_metrics(
            "export.completed",
            {"environment": env.name, "updated": len(result.updated), "commit": result.commit_sha},
        )
        if _json_output:
            sys.stdout.write(result.model_dump_json() + "\n")
        else:
            display_export_result(console, result)
        raise typer.Exit(code=0)

    except typer.Exit:
        raise
    except ExportError as exc:
        if exc.result is not None and not _json_output:
            display_export_result(console, exc.result)
        raise _fail("Export failed", "export.error", exc) from exc
    except Exception as exc:
        raise _fail("Export failed", "export.error", exc) from exc


@app.command()
def build(
    repo: Path = typer.Option(Path("."), "--repo", help=_REPO_OPTION_HELP, file_okay=False, resolve_path=True),
    out: Path | None = typer.Option(
        None,
        "--out",
        "-o",
        help="Artifacts directory (defaults to ALM_ARTIFACTS_DIR).",
    ),
) -> None:
    """Pack managed and unmanaged artifacts from the committed sources."""
    from alm_engine.pipelines import run_build
    from alm_engine.platform import PacCli

    try:
        settings, manifest = _load(repo)
        packer = PacCli(settings.pac_executable, settings.pac_timeout_seconds)
        result = run_build(
            manifest,
            packer,
            repo,
            solutions_dir=_resolve(repo, settings.solutions_dir),
            artifacts_dir=_resolve(repo, out or settings.artifacts_dir),
            hooks=_hooks(manifest, repo, settings),
        )

        _emit_metrics("build.completed", {"artifacts": len(result.artifacts)})
        if _json_output:
            sys.stdout.write(result.model_dump_json() + "\n")
        else:
            display_build_result(console, result)
        raise typer.Exit(code=0)

    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail("Build failed", "build.error", exc) from exc


@app.command()
def deploy(
    environment: str = typer.Argument(..., help="Target environment name from the manifest."),
    repo: Path = typer.Option(Path("."), "--repo", help=_REPO_OPTION_HELP, file_okay=False, resolve_path=True),
    artifacts: Path | None = typer.Option(
        None,
        "--artifacts",
        help="Directory holding the built artifacts (defaults to ALM_ARTIFACTS_DIR).",
    ),
    unmanaged: bool = typer.Option(False, "--unmanaged", help="Deploy every solution unmanaged."),
) -> None:
    """Deploy built artifacts using the holding-solution upgrade sequence."""
    from alm_engine.deploy import DeployError
    from alm_engine.pipelines import run_deploy
    from alm_engine.platform import connect

    try:
        settings, manifest = _load(repo)
        env = manifest.environment(environment)
        with connect(env, settings) as platform:
            result = run_deploy(
                manifest,
                platform,
                env,
                repo,
                artifacts_dir=_resolve(repo, artifacts or settings.artifacts_dir),
                unmanaged=unmanaged,
                hooks=_hooks(manifest, repo, settings),
            )

        _emit_metrics("deploy.completed", {"environment": env.name, "solutions": len(result.records)})
        if _json_output:
            sys.stdout.write(result.model_dump_json() + "\n")
        else:
            display_deploy_result(console, result)
        raise typer.Exit(code=0)

    except typer.Exit:
        raise
    except DeployError as exc:
        if exc.result is not None and not _json_output:
            display_deploy_result(console, exc.result)
        raise _fail("Deploy failed", "deploy.error", exc) from exc
    except Exception as exc:
        raise _fail("Deploy failed", "deploy.error", exc) from exc


@app.command("import")
def import_(
    environment: str = typer.Argument(..., help="Target environment name from the manifest."),
    repo: Path = typer.Option(Path("."), "--repo", help=_REPO_OPTION_HELP, file_okay=False, resolve_path=True),
) -> None:
    """Build from sources and deploy everything unmanaged (development environments)."""
    from alm_engine.deploy import DeployError
    from alm_engine.pipelines import run_import
    from alm_engine.platform import PacCli, connect

    try:
        settings, manifest = _load(repo)
        env = manifest.environment(environment)
        packer = PacCli(settings.pac_executable, settings.pac_timeout_seconds)
        with connect(env, settings) as platform:
            build_result, deploy_result = run_import(
                manifest,
                packer,
                platform,
                env,
                repo,
                solutions_dir=_resolve(repo, settings.solutions_dir),
                artifacts_dir=_resolve(repo, settings.artifacts_dir),
                hooks=_hooks(manifest, repo, settings),
            )

        _emit_metrics("import.completed", {"environment": env.name, "solutions": len(deploy_result.records)})
        if _json_output:
            payload = {
                "build": build_result.model_dump(mode="json"),
                "deploy": deploy_result.model_dump(mode="json"),
            }
            sys.stdout.write(json.dumps(payload) + "\n")
        else:
            display_build_result(console, build_result)
            display_deploy_result(console, deploy_result)
        raise typer.Exit(code=0)

    except typer.Exit:
        raise
    except DeployError as exc:
        if exc.result is not None and not _json_output:
            display_deploy_result(console, exc.result)
        raise _fail("Import failed", "import.error", exc) from exc
    except Exception as exc:
        raise _fail("Import failed", "import.error", exc) from exc


# ---------------------------------------------------------------------------
# Support commands
# ---------------------------------------------------------------------------


@app.command()
def plan(
    environment: str = typer.Argument(..., help="Target environment name from the manifest."),
    repo: Path = typer.Option(Path("."), "--repo", help=_REPO_OPTION_HELP, file_okay=False, resolve_path=True),
    artifacts: Path | None = typer.Option(
        None,
        "--artifacts",
        help="Directory holding the built artifacts (defaults to ALM_ARTIFACTS_DIR).",
    ),
    unmanaged: bool = typer.Option(False, "--unmanaged", help="Plan an unmanaged deployment."),
) -> None:
    """Show the import decision for every solution without changing anything."""
    from alm_engine.pipelines import build_deployment_plan
    from alm_engine.platform import connect

    try:
        settings, manifest = _load(repo)
        env = manifest.environment(environment)
        with connect(env, settings) as platform:
            deployment_plan = build_deployment_plan(
                manifest,
                platform,
                _resolve(repo, artifacts or settings.artifacts_dir),
                unmanaged=unmanaged,
            )

        _emit_metrics(
            "plan.generated",
            {
                "environment": env.name,
                "imports": sum(1 for e in deployment_plan.entries if e.decision.requires_import),
            },
        )
        if _json_output:
            sys.stdout.write(deployment_plan.model_dump_json() + "\n")
        else:
            display_deployment_plan(console, deployment_plan)
        raise typer.Exit(code=0)

    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail("Error generating plan", "plan.error", exc) from exc


@app.command()
def config(
    repo: Path = typer.Option(Path("."), "--repo", help=_REPO_OPTION_HELP, file_okay=False, resolve_path=True),
) -> None:
    """Print the resolved (merged and validated) manifest."""
    try:
        _, manifest = _load(repo)
        if _json_output:
            sys.stdout.write(manifest.model_dump_json(by_alias=True) + "\n")
        else:
            display_manifest(console, manifest)
        raise typer.Exit(code=0)

    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail("Invalid configuration", "config.error", exc) from exc


@app.command("prepare-release")
def prepare_release(
    tag: str = typer.Argument(..., help="The release tag (e.g. v1.0.0)."),
    output_dir: Path = typer.Argument(..., help="Directory where the rendered setup.ps1 is written."),
    upstream_repo: str | None = typer.Argument(
        None,
        help="URL of the upstream repository (defaults to the public ALM4Dataverse repository).",
    ),
    alm_root: Path = typer.Option(
        Path("."),
        "--alm-root",
        help="Directory holding setup.ps1 and alm-config-defaults.yml.",
        file_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Render setup.ps1 for a release tag."""
    from alm_engine.release import DEFAULT_UPSTREAM_REPO
    from alm_engine.release import prepare_release as render_release

    try:
        output = render_release(tag, output_dir, alm_root, upstream_repo or DEFAULT_UPSTREAM_REPO)
        _emit_metrics("release.prepared", {"tag": tag, "output": str(output)})
        if _json_output:
            sys.stdout.write(json.dumps({"tag": tag, "output": str(output)}) + "\n")
        else:
            console.print(f"[green]Release preparation complete.[/green] Output file: [bold]{output}[/bold]")
        raise typer.Exit(code=0)

    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail("Release preparation failed", "release.error", exc) from exc
