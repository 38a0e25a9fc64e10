"""Solution-level domain records: manifest entries, installed state, decisions."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from alm_engine.models.version import SolutionVersion

DEFAULT_SERVICE_ACCOUNT_KEY = "ServiceAccountUpn"


class SolutionConfig(BaseModel):
    """A single solution entry from the deployment manifest.

    The manifest lists solutions in dependency order: every solution appears
    after the solutions it depends on.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(
        ...,
        min_length=1,
        description="Unique name of the solution in Dataverse.",
    )
    deploy_unmanaged: bool = Field(
        default=False,
        alias="deployUnmanaged",
        description="Always deploy this solution as unmanaged, regardless of the target.",
    )
    service_account_key: str = Field(
        default=DEFAULT_SERVICE_ACCOUNT_KEY,
        min_length=1,
        alias="serviceAccountKey",
        description="Environment variable name holding the UPN that should own the solution's processes.",
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"name": value}
        return value


class DeployedSolutionState(BaseModel):
    """What a target environment reports about an installed solution."""

    unique_name: str = Field(..., min_length=1)
    installed_version: SolutionVersion
    is_managed: bool = True
    solution_id: str | None = None


class ChangeClassification(str, Enum):
    """How a detected change affects consumers of the solution."""

    ADDITIVE = "ADDITIVE"
    BREAKING = "BREAKING"


class ImportAction(str, Enum):
    """What the deploy step does with a solution artifact."""

    SKIP = "SKIP"
    INSTALL = "INSTALL"
    UPDATE = "UPDATE"
    UPGRADE = "UPGRADE"


class ImportMode(str, Enum):
    """How the artifact is handed to the platform import."""

    NONE = "NONE"
    MANAGED = "MANAGED"
    UNMANAGED = "UNMANAGED"
    HOLDING = "HOLDING"
    STAGE_AND_UPGRADE = "STAGE_AND_UPGRADE"


class ImportDecision(BaseModel):
    """Derived import action for one solution in one deploy run."""

    model_config = ConfigDict(frozen=True)

    action: ImportAction
    mode: ImportMode
    reason: str = ""

    @property
    def requires_import(self) -> bool:
        return self.action != ImportAction.SKIP

    @property
    def requires_upgrade(self) -> bool:
        """True when a separate upgrade call must follow the holding import."""
        return self.mode == ImportMode.HOLDING
