"""Rich output formatting for the ``alm`` CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from alm_engine.models.deployment import DeploymentPlan, DeployResult
    from alm_engine.models.manifest import AlmManifest
    from alm_engine.models.pipeline import BuildResult, ExportResult


# ---------------------------------------------------------------------------
# Status colour mapping
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[str, str] = {
    "PUBLISHED": "green",
    "UPDATED": "green",
    "UNCHANGED": "dim",
    "FAILED": "red",
    "NOT_STAGED": "dim",
    "STAGED": "yellow",
    "UPGRADED": "yellow",
    "PROCESSES_ACTIVATED": "yellow",
}

_ACTION_COLOURS: dict[str, str] = {
    "SKIP": "dim",
    "INSTALL": "cyan",
    "UPDATE": "blue",
    "UPGRADE": "magenta",
}


def _coloured_status(status: str) -> str:
    """Return a Rich markup string with the status colour-coded."""
    colour = _STATUS_COLOURS.get(status, "white")
    return f"[{colour}]{status}[/{colour}]"


def _coloured_action(action: str) -> str:
    colour = _ACTION_COLOURS.get(action, "white")
    return f"[{colour}]{action}[/{colour}]"


# ---------------------------------------------------------------------------
# Deployment plan
# ---------------------------------------------------------------------------


def display_deployment_plan(console: Console, plan: DeploymentPlan) -> None:
    """Render the import decision of every solution, in staging order.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    plan:
        The deployment plan to display.
    """
    header_lines = [
        f"[bold]Environment:[/bold] {plan.environment}",
        f"[bold]Solutions:[/bold]   {len(plan.entries)}",
        f"[bold]Unmanaged:[/bold]   {'yes' if plan.unmanaged else 'no'}",
    ]
    console.print(Panel("\n".join(header_lines), title="Deployment Plan", border_style="blue"))

    if not plan.entries:
        console.print("[dim]No solutions in the manifest.[/dim]")
        return

    table = Table(title="Import Decisions", show_lines=False, pad_edge=True, expand=False)
    table.add_column("#", style="dim", width=4, justify="right")
    table.add_column("Solution", style="bold")
    table.add_column("Artifact")
    table.add_column("Installed")
    table.add_column("Action")
    table.add_column("Mode")
    table.add_column("Reason")

    for idx, entry in enumerate(plan.entries, start=1):
        installed = entry.installed
        if installed is None:
            installed_str = "-"
        else:
            installed_str = f"{installed.installed_version} ({'managed' if installed.is_managed else 'unmanaged'})"
        table.add_row(
            str(idx),
            entry.name,
            str(entry.artifact_version),
            installed_str,
            _coloured_action(entry.decision.action.value),
            entry.decision.mode.value,
            entry.decision.reason,
        )

    console.print(table)

    upgrades = plan.upgrade_order
    if upgrades:
        console.print(f"Holding upgrades apply in order: [bold]{' -> '.join(upgrades)}[/bold]")


# ---------------------------------------------------------------------------
# Deploy results
# ---------------------------------------------------------------------------


def display_deploy_result(console: Console, result: DeployResult) -> None:
    """Render the final stage of every solution and process activation counts."""
    table = Table(title=f"Deployment to {result.environment}", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Solution", style="bold")
    table.add_column("Action")
    table.add_column("Stage")
    table.add_column("Processes", justify="right")
    table.add_column("Error")

    for record in result.records:
        processes = record.processes
        process_str = (
            f"{len(processes.activated)} activated / {len(processes.reassigned)} reassigned"
            if processes is not None
            else "-"
        )
        table.add_row(
            record.name,
            _coloured_action(record.decision.action.value),
            _coloured_status(record.stage.value),
            process_str,
            record.error_message or "",
        )

    console.print(table)
    if result.succeeded:
        console.print(f"[green]Deployment to {result.environment} complete.[/green]")
    else:
        console.print(f"[red]Deployment to {result.environment} did not complete.[/red]")


# ---------------------------------------------------------------------------
# Export and build results
# ---------------------------------------------------------------------------


def display_export_result(console: Console, result: ExportResult) -> None:
    table = Table(title=f"Export from {result.environment}", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Solution", style="bold")
    table.add_column("Status")
    table.add_column("Change")
    table.add_column("Version")
    table.add_column("Details")

    for solution in result.solutions:
        if solution.new_version is not None:
            version_str = f"{solution.previous_version} -> {solution.new_version}"
        elif solution.previous_version is not None:
            version_str = str(solution.previous_version)
        else:
            version_str = "-"
        details = solution.error_message or "; ".join(solution.findings)
        table.add_row(
            solution.name,
            _coloured_status(solution.status.value),
            solution.classification.value if solution.classification else "-",
            version_str,
            details,
        )

    console.print(table)
    if result.commit_sha:
        console.print(f"Committed [bold]{result.commit_sha[:12]}[/bold]")
    else:
        console.print("[dim]Nothing to commit.[/dim]")


def display_build_result(console: Console, result: BuildResult) -> None:
    if not result.artifacts:
        console.print("[dim]No solutions to build.[/dim]")
        return

    table = Table(title="Built Artifacts", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Solution", style="bold")
    table.add_column("Version")
    table.add_column("Managed")
    table.add_column("Unmanaged")

    for artifact in result.artifacts:
        table.add_row(artifact.name, str(artifact.version), artifact.managed_path, artifact.unmanaged_path)

    console.print(table)
    console.print(f"Artifacts written to [bold]{result.artifacts_dir}[/bold]")


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


def display_manifest(console: Console, manifest: AlmManifest) -> None:
    """Render the resolved (merged) manifest."""
    solutions = Table(title="Solutions (dependency order)", show_lines=False, pad_edge=True, expand=False)
    solutions.add_column("#", style="dim", width=4, justify="right")
    solutions.add_column("Name", style="bold")
    solutions.add_column("Deploy Unmanaged", justify="center")
    solutions.add_column("Service Account Key")
    for idx, solution in enumerate(manifest.solutions, start=1):
        solutions.add_row(
            str(idx),
            solution.name,
            "yes" if solution.deploy_unmanaged else "no",
            solution.service_account_key,
        )
    console.print(solutions)

    environments = Table(title="Environments", show_lines=False, pad_edge=True, expand=False)
    environments.add_column("Name", style="bold")
    environments.add_column("URL")
    environments.add_column("Variables")
    for env in manifest.environments.values():
        environments.add_row(env.name, env.url, ", ".join(sorted(env.variables)) or "-")
    console.print(environments)

    hook_lines = [
        f"[bold]{phase.value}:[/bold] {', '.join(h.path for h in hooks)}"
        for phase, hooks in manifest.hooks.items()
        if hooks
    ]
    dependency_lines = [f"[bold]{name}:[/bold] {spec}" for name, spec in manifest.script_dependencies.items()]
    console.print(
        Panel(
            "\n".join(hook_lines) or "[dim]No hooks registered.[/dim]",
            title="Hooks",
            border_style="yellow",
        )
    )
    console.print(Panel("\n".join(dependency_lines) or "[dim]None.[/dim]", title="Script Dependencies"))
