"""Render the bootstrap ``setup.ps1`` for a tagged release.

The template in the ALM root carries three placeholders that are replaced
with the release tag, the pinned Power Platform CLI version and the upstream
repository URL.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alm_engine.manifest.loader import (
    DEFAULTS_FILE_NAME,
    PAC_CLI_DEPENDENCY,
    ManifestError,
    build_manifest,
    read_yaml_layer,
    require_dependency,
)
from alm_engine.models.manifest import DependencyKind

logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_REPO = "https://github.com/rnwood/ALM4Dataverse.git"
SETUP_SCRIPT_NAME = "setup.ps1"

REF_PLACEHOLDER = "__ALM4DATAVERSE_REF__"
CLI_VERSION_PLACEHOLDER = "__DATAVERSE_CLI_VERSION__"
# Name used by setup scripts written before the CLI version placeholder was renamed.
LEGACY_CLI_VERSION_PLACEHOLDER = "__RNWOOD_DATAVERSE_VERSION__"
UPSTREAM_PLACEHOLDER = "__UPSTREAM_REPO__"

PLACEHOLDERS = (REF_PLACEHOLDER, CLI_VERSION_PLACEHOLDER, LEGACY_CLI_VERSION_PLACEHOLDER, UPSTREAM_PLACEHOLDER)


class ReleaseError(Exception):
    """Raised when the release script cannot be rendered."""


def pinned_cli_version(alm_root: Path) -> str:
    """Return the exact CLI version pinned in the ALM root's defaults file.

    Raises
    ------
    ReleaseError
        If the defaults file is missing or does not pin an exact version.
    """
    defaults_path = alm_root / DEFAULTS_FILE_NAME
    if not defaults_path.is_file():
        raise ReleaseError(f"Config file not found: {defaults_path}")
    try:
        manifest = build_manifest(read_yaml_layer(defaults_path))
        spec = require_dependency(manifest, PAC_CLI_DEPENDENCY)
    except ManifestError as exc:
        raise ReleaseError(str(exc)) from exc
    if spec.kind != DependencyKind.EXACT or not spec.version:
        raise ReleaseError(f"{defaults_path} must pin an exact {PAC_CLI_DEPENDENCY} version, found {spec}")
    return spec.version


def render_setup_script(template: str, *, tag: str, cli_version: str, upstream_repo: str) -> str:
    """Replace every placeholder in *template*.

    Raises
    ------
    ReleaseError
        If any placeholder survives the substitution.
    """
    rendered = (
        template.replace(REF_PLACEHOLDER, tag)
        .replace(CLI_VERSION_PLACEHOLDER, cli_version)
        .replace(LEGACY_CLI_VERSION_PLACEHOLDER, cli_version)
        .replace(UPSTREAM_PLACEHOLDER, upstream_repo)
    )
    leftover = [p for p in PLACEHOLDERS if p in rendered]
    if leftover:
        raise ReleaseError(f"Placeholders were not fully replaced: {', '.join(leftover)}")
    return rendered


def prepare_release(
    tag: str,
    output_dir: Path,
    alm_root: Path,
    upstream_repo: str = DEFAULT_UPSTREAM_REPO,
) -> Path:
    """Write the rendered ``setup.ps1`` into *output_dir* and return its path."""
    if not tag.strip():
        raise ReleaseError("Release tag cannot be empty")
    if not upstream_repo.strip():
        raise ReleaseError("Upstream repository URL cannot be empty")

    cli_version = pinned_cli_version(alm_root)

    template_path = alm_root / SETUP_SCRIPT_NAME
    if not template_path.is_file():
        raise ReleaseError(f"Setup file not found: {template_path}")
    rendered = render_setup_script(
        template_path.read_text(encoding="utf-8"),
        tag=tag,
        cli_version=cli_version,
        upstream_repo=upstream_repo,
    )

    output_dir.mkdir(parents=True, exist_ok=True)
    output = output_dir / SETUP_SCRIPT_NAME
    output.write_text(rendered, encoding="utf-8")
    logger.info("Rendered %s for %s (CLI %s, upstream %s)", output, tag, cli_version, upstream_repo)
    return output
