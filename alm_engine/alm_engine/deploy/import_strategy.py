"""Import-method selection for solution deployment.

Chooses the cheapest safe way to bring a target environment to the artifact's
version.  The decision table is evaluated top to bottom and the first
matching row wins:

====  ===========================================  ==========  ==================
Row   Condition                                    Action      Mode
====  ===========================================  ==========  ==================
1     not installed                                INSTALL     MANAGED/UNMANAGED
2     unmanaged target (development)               UPDATE      UNMANAGED
3     artifact == installed                        SKIP        NONE
4     same major and minor                         UPDATE      MANAGED
5     major/minor differ, batch of several         UPGRADE     HOLDING
6     major/minor differ, single solution          UPGRADE     STAGE_AND_UPGRADE
====  ===========================================  ==========  ==================

Row 4 assumes a build/revision change is never breaking (that is what the
version bump guarantees) and keeps unmanaged customisation layers in place.
Row 5 imports a holding solution first so that superseded components are
only deleted once every solution in the batch has been staged.
"""

from __future__ import annotations

import logging

from alm_engine.models.solution import ImportAction, ImportDecision, ImportMode
from alm_engine.models.version import SolutionVersion

logger = logging.getLogger(__name__)


def select_import_strategy(
    artifact_version: SolutionVersion,
    installed_version: SolutionVersion | None,
    *,
    is_unmanaged_target: bool,
    batch_size: int,
) -> ImportDecision:
    """Decide how to import one solution.

    Parameters
    ----------
    artifact_version:
        Version recorded in the artifact being deployed.
    installed_version:
        Version currently installed in the target, or ``None`` when absent.
    is_unmanaged_target:
        True for development/import scenarios where the target is always
        fully overwritten with unmanaged customisations.
    batch_size:
        Number of solutions deployed together in this run.

    Returns
    -------
    ImportDecision
        Exactly one decision; the table is total.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    if installed_version is None:
        mode = ImportMode.UNMANAGED if is_unmanaged_target else ImportMode.MANAGED
        return ImportDecision(
            action=ImportAction.INSTALL,
            mode=mode,
            reason=f"not installed; installing {artifact_version}",
        )

    if is_unmanaged_target:
        return ImportDecision(
            action=ImportAction.UPDATE,
            mode=ImportMode.UNMANAGED,
            reason=f"unmanaged target; overwriting {installed_version} with {artifact_version}",
        )

    if artifact_version == installed_version:
        return ImportDecision(
            action=ImportAction.SKIP,
            mode=ImportMode.NONE,
            reason=f"{installed_version} already installed",
        )

    if artifact_version < installed_version:
        logger.warning(
            "Artifact version %s is older than installed version %s",
            artifact_version,
            installed_version,
        )

    if artifact_version.same_major_minor(installed_version):
        return ImportDecision(
            action=ImportAction.UPDATE,
            mode=ImportMode.MANAGED,
            reason=f"{installed_version} -> {artifact_version} (same major.minor)",
        )

    if batch_size > 1:
        return ImportDecision(
            action=ImportAction.UPGRADE,
            mode=ImportMode.HOLDING,
            reason=f"{installed_version} -> {artifact_version} via holding solution",
        )

    return ImportDecision(
        action=ImportAction.UPGRADE,
        mode=ImportMode.STAGE_AND_UPGRADE,
        reason=f"{installed_version} -> {artifact_version} (single solution, direct upgrade)",
    )
