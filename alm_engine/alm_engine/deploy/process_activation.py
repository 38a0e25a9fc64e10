"""Process (workflow) ownership and activation after import.

Every process shipped in a just-imported solution must end up activated and
owned by the environment's service identity.  Processes that already satisfy
both conditions are left untouched.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from alm_engine.models.deployment import ProcessActivationSummary
from alm_engine.models.manifest import EnvironmentConfig
from alm_engine.models.solution import SolutionConfig
from alm_engine.platform.base import ProcessState, SolutionPlatform

logger = logging.getLogger(__name__)


class IdentityResolutionError(Exception):
    """Raised when a service identity is not configured, not found, or ambiguous."""


class ServiceIdentity(BaseModel):
    user_id: str = Field(..., min_length=1)
    upn: str = Field(..., min_length=1)


def service_account_upn(environment: EnvironmentConfig, solution: SolutionConfig) -> str:
    """Read the UPN configured for *solution* in *environment*'s variables."""
    upn = environment.variables.get(solution.service_account_key, "").strip()
    if not upn:
        raise IdentityResolutionError(
            f"Environment '{environment.name}' has no value for '{solution.service_account_key}' "
            f"(service account for solution '{solution.name}')"
        )
    return upn


def resolve_service_identity(platform: SolutionPlatform, upn: str) -> ServiceIdentity:
    """Find the single user whose domain name is *upn*.

    Raises
    ------
    IdentityResolutionError
        If no user or more than one user matches.
    """
    users = platform.find_users(upn)
    if not users:
        raise IdentityResolutionError(f"Service account '{upn}' not found in {platform.environment_name}")
    if len(users) > 1:
        ids = ", ".join(sorted(u.user_id for u in users))
        raise IdentityResolutionError(f"Service account '{upn}' is ambiguous in {platform.environment_name}: {ids}")
    return ServiceIdentity(user_id=users[0].user_id, upn=upn)


def activate_processes(
    platform: SolutionPlatform,
    solution_name: str,
    identity: ServiceIdentity,
) -> ProcessActivationSummary:
    """Reassign and activate the processes of *solution_name* where needed.

    A process owned by someone else is deactivated (if active), reassigned,
    and activated.  A process already owned by *identity* is only activated
    when it is not active yet.
    """
    summary = ProcessActivationSummary()
    for process in platform.list_processes(solution_name):
        label = process.name or process.process_id
        if process.owner_id != identity.user_id:
            if process.state == ProcessState.ACTIVATED:
                platform.set_process_state(process.process_id, ProcessState.DRAFT)
            platform.assign_process_owner(process.process_id, identity.user_id)
            platform.set_process_state(process.process_id, ProcessState.ACTIVATED)
            summary.reassigned.append(label)
            summary.activated.append(label)
        elif process.state != ProcessState.ACTIVATED:
            platform.set_process_state(process.process_id, ProcessState.ACTIVATED)
            summary.activated.append(label)
        else:
            summary.unchanged.append(label)

    logger.info(
        "%s: %d process(es) reassigned, %d activated, %d unchanged",
        solution_name,
        len(summary.reassigned),
        len(summary.activated),
        len(summary.unchanged),
    )
    return summary
