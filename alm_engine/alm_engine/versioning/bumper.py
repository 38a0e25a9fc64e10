"""Semantic version bumping for exported solutions.

After an export detects that a solution changed, the change is classified and
the solution version advanced:

* **Additive** (nothing removed or structurally altered): the revision is
  incremented, everything else is kept.
* **Breaking**: the minor component is incremented and build and revision are
  reset to zero.  The major component is never changed automatically.

This module only computes values.  Writing the new version to the source
manifest and the live environment is the export pipeline's responsibility.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from alm_engine.models.solution import ChangeClassification
from alm_engine.models.version import SolutionVersion
from alm_engine.platform.base import ComponentComparer
from alm_engine.versioning.component_diff import SnapshotComparer

logger = logging.getLogger(__name__)


class VersionBump(BaseModel):
    """A computed version advance and the evidence behind it."""

    classification: ChangeClassification
    previous_version: SolutionVersion
    next_version: SolutionVersion
    findings: list[str] = Field(default_factory=list)


def classify_change(
    old_snapshot: Path | None,
    new_snapshot: Path | None,
    comparer: ComponentComparer | None = None,
) -> ChangeClassification:
    """Classify the change from *old_snapshot* to *new_snapshot*.

    A missing old snapshot means a first export with no baseline, which is
    additive.  A missing new snapshot with an existing old one means every
    component was removed, which is breaking.

    Raises
    ------
    SnapshotError
        If either snapshot cannot be read.
    """
    return _classify(old_snapshot, new_snapshot, comparer)[0]


def _classify(
    old_snapshot: Path | None,
    new_snapshot: Path | None,
    comparer: ComponentComparer | None,
) -> tuple[ChangeClassification, list[str]]:
    if old_snapshot is None:
        return ChangeClassification.ADDITIVE, []
    if new_snapshot is None:
        return ChangeClassification.BREAKING, ["removed entire solution"]

    comparison = (comparer or SnapshotComparer()).compare(old_snapshot, new_snapshot)
    if comparison.is_additive:
        return ChangeClassification.ADDITIVE, []
    return ChangeClassification.BREAKING, comparison.findings


def next_version(current: SolutionVersion, classification: ChangeClassification) -> SolutionVersion:
    """Compute the version that follows *current* for a change of *classification*."""
    if classification == ChangeClassification.ADDITIVE:
        return SolutionVersion(
            major=current.major,
            minor=current.minor,
            build=max(0, current.build),
            revision=max(0, current.revision) + 1,
        )
    return SolutionVersion(
        major=current.major,
        minor=max(0, current.minor) + 1,
        build=0,
        revision=0,
    )


class VersionBumper:
    """Classify a snapshot change and compute the next version in one call."""

    def __init__(self, comparer: ComponentComparer | None = None) -> None:
        self._comparer = comparer or SnapshotComparer()

    def bump(
        self,
        current: SolutionVersion,
        old_snapshot: Path | None,
        new_snapshot: Path | None,
    ) -> VersionBump:
        classification, findings = _classify(old_snapshot, new_snapshot, self._comparer)
        new_version = next_version(current, classification)
        logger.info(
            "%s change: %s -> %s",
            classification.value.capitalize(),
            current,
            new_version,
        )
        return VersionBump(
            classification=classification,
            previous_version=current,
            next_version=new_version,
            findings=findings,
        )
