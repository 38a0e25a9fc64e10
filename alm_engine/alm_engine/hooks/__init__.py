"""Pipeline hook scripts."""

from __future__ import annotations

from alm_engine.hooks.context import (
    PHASE_CONTEXT_TYPES,
    BuildHookContext,
    DeployHookContext,
    ExportHookContext,
    HookContext,
)
from alm_engine.hooks.registry import HookError, HookRegistry, build_command

__all__ = [
    "PHASE_CONTEXT_TYPES",
    "BuildHookContext",
    "DeployHookContext",
    "ExportHookContext",
    "HookContext",
    "HookError",
    "HookRegistry",
    "build_command",
]
