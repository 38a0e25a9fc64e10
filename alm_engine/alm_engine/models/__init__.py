"""Domain models for the ALM engine."""

from alm_engine.models.deployment import (
    DeploymentPlan,
    DeployResult,
    ProcessActivationSummary,
    SolutionDeployment,
    SolutionRunRecord,
    SolutionStage,
)
from alm_engine.models.manifest import (
    AlmManifest,
    DependencyKind,
    DependencySpec,
    EnvironmentConfig,
    HookInvocation,
    HookPhase,
)
from alm_engine.models.pipeline import (
    BuildResult,
    BuiltArtifact,
    ExportedSolution,
    ExportResult,
    ExportStatus,
)
from alm_engine.models.solution import (
    ChangeClassification,
    DeployedSolutionState,
    ImportAction,
    ImportDecision,
    ImportMode,
    SolutionConfig,
)
from alm_engine.models.version import SolutionVersion, VersionParseError

__all__ = [
    "AlmManifest",
    "BuildResult",
    "BuiltArtifact",
    "ChangeClassification",
    "DependencyKind",
    "DependencySpec",
    "DeployResult",
    "DeployedSolutionState",
    "DeploymentPlan",
    "EnvironmentConfig",
    "ExportResult",
    "ExportStatus",
    "ExportedSolution",
    "HookInvocation",
    "HookPhase",
    "ImportAction",
    "ImportDecision",
    "ImportMode",
    "ProcessActivationSummary",
    "SolutionConfig",
    "SolutionDeployment",
    "SolutionRunRecord",
    "SolutionStage",
    "SolutionVersion",
    "VersionParseError",
]
