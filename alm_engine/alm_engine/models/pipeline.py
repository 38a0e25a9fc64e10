"""Result records for the export and build pipelines."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from alm_engine.models.solution import ChangeClassification
from alm_engine.models.version import SolutionVersion


class ExportStatus(str, Enum):
    UNCHANGED = "UNCHANGED"
    UPDATED = "UPDATED"
    FAILED = "FAILED"


class ExportedSolution(BaseModel):
    """Outcome of exporting one solution."""

    name: str
    status: ExportStatus
    classification: ChangeClassification | None = None
    previous_version: SolutionVersion | None = None
    new_version: SolutionVersion | None = None
    findings: list[str] = Field(
        default_factory=list,
        description="Removed or altered components that made the change breaking.",
    )
    error_message: str | None = None


class ExportResult(BaseModel):
    environment: str
    solutions: list[ExportedSolution] = Field(default_factory=list)
    commit_sha: str | None = None

    @property
    def failed(self) -> list[ExportedSolution]:
        return [s for s in self.solutions if s.status == ExportStatus.FAILED]

    @property
    def updated(self) -> list[ExportedSolution]:
        return [s for s in self.solutions if s.status == ExportStatus.UPDATED]


class BuiltArtifact(BaseModel):
    """Managed and unmanaged packages produced for one solution."""

    name: str
    version: SolutionVersion
    managed_path: str
    unmanaged_path: str


class BuildResult(BaseModel):
    artifacts_dir: str
    artifacts: list[BuiltArtifact] = Field(default_factory=list)
