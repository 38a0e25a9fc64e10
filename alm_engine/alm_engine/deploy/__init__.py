"""Import decisions and the holding-solution deploy saga."""

from __future__ import annotations

from alm_engine.deploy.import_strategy import select_import_strategy
from alm_engine.deploy.orchestrator import (
    DeployError,
    DeployOrchestrator,
    SolutionArtifact,
    plan_deployment,
)
from alm_engine.deploy.process_activation import (
    IdentityResolutionError,
    ServiceIdentity,
    activate_processes,
    resolve_service_identity,
    service_account_upn,
)

__all__ = [
    "DeployError",
    "DeployOrchestrator",
    "IdentityResolutionError",
    "ServiceIdentity",
    "SolutionArtifact",
    "activate_processes",
    "plan_deployment",
    "resolve_service_identity",
    "select_import_strategy",
    "service_account_upn",
]
