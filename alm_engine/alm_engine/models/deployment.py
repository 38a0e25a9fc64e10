"""Deployment plan and per-solution run state for the deploy saga.

A :class:`DeploymentPlan` is computed before any side effect and is a pure
function of the artifacts, the target environment's installed solutions and
the manifest order.  Executing the plan walks every solution through the
:class:`SolutionStage` state machine::

    NOT_STAGED -> STAGED -> UPGRADED -> PROCESSES_ACTIVATED -> PUBLISHED

Any state may move to ``FAILED``.  Solutions whose decision needs no platform
work for a step (a ``SKIP``, or a non-holding import at upgrade time) still
advance through the step so that every run ends in a single terminal state.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from alm_engine.models.solution import (
    DeployedSolutionState,
    ImportDecision,
    SolutionConfig,
)
from alm_engine.models.version import SolutionVersion


class SolutionStage(str, Enum):
    """Lifecycle state of one solution within one deploy run."""

    NOT_STAGED = "NOT_STAGED"
    STAGED = "STAGED"
    UPGRADED = "UPGRADED"
    PROCESSES_ACTIVATED = "PROCESSES_ACTIVATED"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: dict[SolutionStage, frozenset[SolutionStage]] = {
    SolutionStage.NOT_STAGED: frozenset({SolutionStage.STAGED, SolutionStage.FAILED}),
    SolutionStage.STAGED: frozenset({SolutionStage.UPGRADED, SolutionStage.FAILED}),
    SolutionStage.UPGRADED: frozenset({SolutionStage.PROCESSES_ACTIVATED, SolutionStage.FAILED}),
    SolutionStage.PROCESSES_ACTIVATED: frozenset({SolutionStage.PUBLISHED, SolutionStage.FAILED}),
    SolutionStage.PUBLISHED: frozenset(),
    SolutionStage.FAILED: frozenset(),
}


class SolutionDeployment(BaseModel):
    """One planned entry: the artifact to deploy and the decision for it."""

    config: SolutionConfig
    artifact_path: str = Field(..., min_length=1)
    artifact_version: SolutionVersion
    installed: DeployedSolutionState | None = None
    unmanaged_target: bool = False
    decision: ImportDecision

    @property
    def name(self) -> str:
        return self.config.name


class DeploymentPlan(BaseModel):
    """Ordered import decisions for a single target environment."""

    environment: str = Field(..., min_length=1)
    unmanaged: bool = False
    entries: list[SolutionDeployment] = Field(default_factory=list)

    @property
    def staging_order(self) -> list[str]:
        """Solutions in listed (dependency, upstream-first) order."""
        return [entry.name for entry in self.entries]

    @property
    def upgrade_order(self) -> list[str]:
        """Holding solutions in the exact reverse of the staging order."""
        return [entry.name for entry in reversed(self.entries) if entry.decision.requires_upgrade]

    def entry(self, name: str) -> SolutionDeployment:
        for candidate in self.entries:
            if candidate.name == name:
                return candidate
        raise KeyError(name)


class ProcessActivationSummary(BaseModel):
    """Counts of process (workflow) changes made for one solution."""

    reassigned: list[str] = Field(default_factory=list)
    activated: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)


class SolutionRunRecord(BaseModel):
    """Where one solution ended up during a deploy run."""

    name: str
    decision: ImportDecision
    stage: SolutionStage = SolutionStage.NOT_STAGED
    error_message: str | None = None
    processes: ProcessActivationSummary | None = None


class DeployResult(BaseModel):
    """Outcome of a deploy run against one environment."""

    environment: str
    records: list[SolutionRunRecord] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(r.stage == SolutionStage.PUBLISHED for r in self.records)

    def record(self, name: str) -> SolutionRunRecord:
        for candidate in self.records:
            if candidate.name == name:
                return candidate
        raise KeyError(name)
