"""Structural interfaces for the Dataverse collaborators.

The engine never talks to the ``pac`` CLI or the Web API directly; it goes
through these protocols so that pipelines and the deploy saga remain
testable and backend-agnostic.  Implementations are **not** required to
subclass the protocols; matching method signatures are enough.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, Field

from alm_engine.models.solution import DeployedSolutionState, ImportMode
from alm_engine.models.version import SolutionVersion

if TYPE_CHECKING:
    from alm_engine.versioning.component_diff import ComponentComparison


class PlatformError(Exception):
    """Raised when an external platform call fails."""


class PackageType(str, Enum):
    MANAGED = "Managed"
    UNMANAGED = "Unmanaged"
    BOTH = "Both"


class ProcessState(str, Enum):
    DRAFT = "DRAFT"
    ACTIVATED = "ACTIVATED"


class ProcessRecord(BaseModel):
    """A process (workflow, cloud flow, business rule) belonging to a solution."""

    process_id: str = Field(..., min_length=1)
    name: str = ""
    state: ProcessState = ProcessState.DRAFT
    owner_id: str | None = None


class SystemUser(BaseModel):
    """A Dataverse user that can own processes."""

    user_id: str = Field(..., min_length=1)
    domain_name: str = ""


class SolutionPacker(Protocol):
    """Local pack/unpack of solution sources.  Needs no environment."""

    def unpack(self, archive: Path, folder: Path, package_type: PackageType) -> Path:
        """Unpack *archive* (and its ``_managed`` sibling for ``BOTH``) into *folder*."""
        ...

    def pack(self, folder: Path, archive: Path, package_type: PackageType) -> Path:
        """Pack the unpacked sources in *folder* into *archive*."""
        ...


class ComponentComparer(Protocol):
    """Decides whether a new snapshot is a compatible superset of an old one."""

    def compare(self, old_snapshot: Path, new_snapshot: Path) -> ComponentComparison: ...

    def has_changes(self, old_snapshot: Path, new_snapshot: Path) -> bool: ...


class SolutionPlatform(Protocol):
    """Operations against one Dataverse environment."""

    @property
    def environment_name(self) -> str: ...

    def export_solution(self, name: str, folder: Path) -> Path:
        """Export *name* from the environment and unpack it into *folder*."""
        ...

    def stage(self, artifact: Path, mode: ImportMode) -> None:
        """Import *artifact* using *mode* (holding, stage-and-upgrade, ...)."""
        ...

    def upgrade(self, name: str) -> None:
        """Apply a previously imported holding solution."""
        ...

    def publish(self) -> None:
        """Publish all customizations."""
        ...

    def get_installed_solution(self, name: str) -> DeployedSolutionState | None:
        """Return the installed state of *name*, or ``None`` when absent."""
        ...

    def set_version(self, name: str, version: SolutionVersion) -> None:
        """Record *version* on the installed solution *name*."""
        ...

    def list_processes(self, name: str) -> list[ProcessRecord]:
        """Processes that are components of solution *name*."""
        ...

    def find_users(self, domain_name: str) -> list[SystemUser]:
        """Users whose domain name (UPN) equals *domain_name*."""
        ...

    def assign_process_owner(self, process_id: str, user_id: str) -> None: ...

    def set_process_state(self, process_id: str, state: ProcessState) -> None: ...
