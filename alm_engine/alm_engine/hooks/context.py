"""Typed context records handed to hook scripts.

Each pipeline has its own context type; a hook receives the record serialised
as JSON on stdin.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from alm_engine.models.manifest import HookPhase
from alm_engine.models.solution import ImportDecision


class ExportHookContext(BaseModel):
    repo_root: str
    environment: str
    solutions_dir: str
    solutions: list[str] = Field(default_factory=list)
    commit_message: str = ""
    updated_solutions: list[str] = Field(
        default_factory=list,
        description="Solutions whose version was bumped (post-export only).",
    )


class BuildHookContext(BaseModel):
    repo_root: str
    solutions_dir: str
    artifacts_dir: str
    solutions: list[str] = Field(default_factory=list)


class DeployHookContext(BaseModel):
    repo_root: str
    environment: str
    environment_url: str
    artifacts_dir: str
    unmanaged: bool = False
    solutions: list[str] = Field(default_factory=list)
    decisions: dict[str, ImportDecision] = Field(default_factory=dict)


HookContext = ExportHookContext | BuildHookContext | DeployHookContext

PHASE_CONTEXT_TYPES: dict[HookPhase, type[BaseModel]] = {
    HookPhase.PRE_EXPORT: ExportHookContext,
    HookPhase.POST_EXPORT: ExportHookContext,
    HookPhase.PRE_BUILD: BuildHookContext,
    HookPhase.POST_BUILD: BuildHookContext,
    HookPhase.PRE_DEPLOY: DeployHookContext,
    HookPhase.MIGRATE_DATA: DeployHookContext,
    HookPhase.POST_DEPLOY: DeployHookContext,
}
