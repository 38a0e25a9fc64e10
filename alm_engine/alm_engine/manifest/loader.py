"""Load the layered ALM manifest from YAML files.

Three layers are merged, lowest priority first:

1. :data:`BUILTIN_DEFAULTS` shipped with the engine,
2. the shared defaults file (``alm-config-defaults.yml``), which a fork of
   the ALM repository may customise,
3. the repository's own ``alm-config.yml``.

The merged mapping is validated into an immutable :class:`AlmManifest`.  All
problems surface as :class:`ManifestError` before any pipeline side effect.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from alm_engine.manifest.layered import merge_layers
from alm_engine.models.manifest import AlmManifest, DependencySpec

logger = logging.getLogger(__name__)

DEFAULTS_FILE_NAME = "alm-config-defaults.yml"
CONFIG_FILE_NAME = "alm-config.yml"

PAC_CLI_DEPENDENCY = "Microsoft.PowerApps.CLI.Tool"

BUILTIN_DEFAULTS: dict[str, Any] = {
    "solutions": [],
    "environments": {},
    "hooks": {},
    "scriptDependencies": {PAC_CLI_DEPENDENCY: ""},
}


class ManifestError(Exception):
    """Raised when the manifest is missing, unreadable, or invalid."""


def read_yaml_layer(path: Path, *, required: bool = True) -> dict[str, Any] | None:
    """Read one YAML layer.

    Returns ``None`` for a missing optional file; an empty file is an empty
    layer.
    """
    if not path.is_file():
        if required:
            raise ManifestError(f"Manifest file not found: {path}")
        logger.debug("Optional manifest layer not present: %s", path)
        return None

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ManifestError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest file {path} must contain a mapping at the top level")
    return data


def build_manifest(*layers: dict[str, Any] | None) -> AlmManifest:
    """Merge *layers* on top of the built-in defaults and validate."""
    merged = merge_layers(BUILTIN_DEFAULTS, *layers)
    try:
        return AlmManifest.model_validate(merged)
    except ValidationError as exc:
        raise ManifestError(f"Invalid manifest: {exc}") from exc


def load_manifest(
    repo_root: Path,
    *,
    config_file: str = CONFIG_FILE_NAME,
    defaults_file: Path | None = None,
) -> AlmManifest:
    """Load and validate the manifest for the repository at *repo_root*.

    Parameters
    ----------
    repo_root:
        Repository containing ``alm-config.yml``.
    config_file:
        File name (or repo-relative path) of the repository layer.
    defaults_file:
        Shared defaults layer.  Defaults to ``alm-config-defaults.yml`` next
        to the repository file; it is optional.
    """
    repo_layer_path = repo_root / config_file
    defaults_path = defaults_file if defaults_file is not None else repo_root / DEFAULTS_FILE_NAME

    defaults_layer = read_yaml_layer(defaults_path, required=defaults_file is not None)
    repo_layer = read_yaml_layer(repo_layer_path)

    manifest = build_manifest(defaults_layer, repo_layer)
    logger.info(
        "Loaded manifest with %d solution(s) and %d environment(s)",
        len(manifest.solutions),
        len(manifest.environments),
    )
    return manifest


def require_dependency(manifest: AlmManifest, name: str) -> DependencySpec:
    """Return the declared spec for dependency *name*.

    Raises
    ------
    ManifestError
        If the manifest does not declare *name*.
    """
    spec = manifest.script_dependencies.get(name)
    if spec is None:
        declared = ", ".join(sorted(manifest.script_dependencies)) or "(none)"
        raise ManifestError(f"Required dependency '{name}' is not declared in scriptDependencies. Declared: {declared}")
    return spec
