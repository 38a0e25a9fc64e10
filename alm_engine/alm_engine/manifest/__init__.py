"""Layered manifest loading."""

from __future__ import annotations

from alm_engine.manifest.layered import merge_layers
from alm_engine.manifest.loader import (
    BUILTIN_DEFAULTS,
    CONFIG_FILE_NAME,
    DEFAULTS_FILE_NAME,
    PAC_CLI_DEPENDENCY,
    ManifestError,
    build_manifest,
    load_manifest,
    read_yaml_layer,
    require_dependency,
)

__all__ = [
    "BUILTIN_DEFAULTS",
    "CONFIG_FILE_NAME",
    "DEFAULTS_FILE_NAME",
    "PAC_CLI_DEPENDENCY",
    "ManifestError",
    "build_manifest",
    "load_manifest",
    "merge_layers",
    "read_yaml_layer",
    "require_dependency",
]
