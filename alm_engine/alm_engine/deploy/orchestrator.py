"""Holding-solution deploy saga.

Planning is a pure function of the artifacts, the installed solutions and the
manifest order.  Execution is strictly sequential:

1. resolve every service identity (before any side effect),
2. ``preDeploy`` hooks,
3. stage every solution in listed (dependency) order,
4. ``migrateData`` hooks while old and new components coexist,
5. apply holding upgrades in the exact reverse of the staging order,
6. activate and reassign processes of imported solutions,
7. publish, then ``postDeploy`` hooks.

The first failure stops the run.  Nothing is rolled back: solutions keep the
stage they reached and re-running the deploy is the recovery path, made safe
by the ``SKIP`` row of the decision table.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from alm_engine.deploy.import_strategy import select_import_strategy
from alm_engine.deploy.process_activation import (
    ServiceIdentity,
    activate_processes,
    resolve_service_identity,
    service_account_upn,
)
from alm_engine.hooks.context import DeployHookContext
from alm_engine.hooks.registry import HookError, HookRegistry
from alm_engine.models.deployment import (
    ALLOWED_TRANSITIONS,
    DeploymentPlan,
    DeployResult,
    SolutionDeployment,
    SolutionRunRecord,
    SolutionStage,
)
from alm_engine.models.manifest import EnvironmentConfig, HookPhase
from alm_engine.models.solution import DeployedSolutionState, SolutionConfig
from alm_engine.models.version import SolutionVersion
from alm_engine.platform.base import PlatformError, SolutionPlatform

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeployError(Exception):
    """Raised when a deploy run stops; carries the partial result."""

    def __init__(
        self,
        message: str,
        *,
        step: str,
        solution: str | None = None,
        result: DeployResult | None = None,
    ) -> None:
        self.step = step
        self.solution = solution
        self.result = result
        super().__init__(message)


@dataclass(frozen=True)
class SolutionArtifact:
    """A packed artifact ready to deploy."""

    config: SolutionConfig
    path: Path
    version: SolutionVersion


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def plan_deployment(
    environment: str,
    artifacts: Sequence[SolutionArtifact],
    installed: Mapping[str, DeployedSolutionState | None],
    *,
    unmanaged: bool = False,
) -> DeploymentPlan:
    """Decide the import action for every artifact, preserving list order."""
    batch_size = len(artifacts)
    entries: list[SolutionDeployment] = []
    for artifact in artifacts:
        state = installed.get(artifact.config.name)
        unmanaged_target = unmanaged or artifact.config.deploy_unmanaged
        decision = select_import_strategy(
            artifact.version,
            state.installed_version if state is not None else None,
            is_unmanaged_target=unmanaged_target,
            batch_size=batch_size,
        )
        logger.info("%s: %s/%s (%s)", artifact.config.name, decision.action.value, decision.mode.value, decision.reason)
        entries.append(
            SolutionDeployment(
                config=artifact.config,
                artifact_path=str(artifact.path),
                artifact_version=artifact.version,
                installed=state,
                unmanaged_target=unmanaged_target,
                decision=decision,
            )
        )
    return DeploymentPlan(environment=environment, unmanaged=unmanaged, entries=entries)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


def _advance(record: SolutionRunRecord, stage: SolutionStage) -> None:
    if stage not in ALLOWED_TRANSITIONS[record.stage]:
        raise DeployError(
            f"Illegal stage transition for {record.name}: {record.stage.value} -> {stage.value}",
            step="transition",
            solution=record.name,
        )
    record.stage = stage


class DeployOrchestrator:
    """Runs a :class:`DeploymentPlan` against one environment."""

    def __init__(
        self,
        platform: SolutionPlatform,
        environment: EnvironmentConfig,
        hooks: HookRegistry | None = None,
    ) -> None:
        self._platform = platform
        self._environment = environment
        self._hooks = hooks

    def resolve_identities(self, plan: DeploymentPlan) -> dict[str, ServiceIdentity]:
        """Resolve the service identity of every solution that will be imported.

        Raises
        ------
        IdentityResolutionError
            If any identity is missing, unknown, or ambiguous.
        """
        by_upn: dict[str, ServiceIdentity] = {}
        identities: dict[str, ServiceIdentity] = {}
        for entry in plan.entries:
            if not entry.decision.requires_import:
                continue
            upn = service_account_upn(self._environment, entry.config)
            if upn not in by_upn:
                by_upn[upn] = resolve_service_identity(self._platform, upn)
            identities[entry.name] = by_upn[upn]
        return identities

    def execute(self, plan: DeploymentPlan, hook_context: DeployHookContext | None = None) -> DeployResult:
        """Walk every solution through the stage machine.

        Raises
        ------
        IdentityResolutionError
            Before any side effect, if a service identity cannot be resolved.
        DeployError
            When a step fails; ``result`` holds every solution's stage.
        """
        result = DeployResult(
            environment=plan.environment,
            records=[SolutionRunRecord(name=e.name, decision=e.decision) for e in plan.entries],
        )
        identities = self.resolve_identities(plan)

        if hook_context is not None:
            hook_context = hook_context.model_copy(
                update={
                    "solutions": plan.staging_order,
                    "decisions": {e.name: e.decision for e in plan.entries},
                }
            )

        self._run_hooks(HookPhase.PRE_DEPLOY, hook_context, result)

        for entry in plan.entries:
            record = result.record(entry.name)
            if entry.decision.requires_import:
                self._call(
                    result,
                    record,
                    "stage",
                    lambda e=entry: self._platform.stage(Path(e.artifact_path), e.decision.mode),
                )
            else:
                logger.info("Skipping %s: %s", entry.name, entry.decision.reason)
            _advance(record, SolutionStage.STAGED)

        self._run_hooks(HookPhase.MIGRATE_DATA, hook_context, result)

        for entry in reversed(plan.entries):
            record = result.record(entry.name)
            if entry.decision.requires_upgrade:
                self._call(result, record, "upgrade", lambda n=entry.name: self._platform.upgrade(n))
            _advance(record, SolutionStage.UPGRADED)

        for entry in plan.entries:
            record = result.record(entry.name)
            if entry.decision.requires_import:
                identity = identities[entry.name]
                record.processes = self._call(
                    result,
                    record,
                    "activate processes",
                    lambda n=entry.name, i=identity: activate_processes(self._platform, n, i),
                )
            _advance(record, SolutionStage.PROCESSES_ACTIVATED)

        if any(entry.decision.requires_import for entry in plan.entries):
            try:
                self._platform.publish()
            except PlatformError as exc:
                for entry in plan.entries:
                    if entry.decision.requires_import:
                        record = result.record(entry.name)
                        _advance(record, SolutionStage.FAILED)
                        record.error_message = str(exc)
                logger.error("publish failed in %s: %s", plan.environment, exc)
                raise DeployError(f"Publish failed in {plan.environment}: {exc}", step="publish", result=result) from exc
        for record in result.records:
            _advance(record, SolutionStage.PUBLISHED)

        self._run_hooks(HookPhase.POST_DEPLOY, hook_context, result)
        return result

    def _call(
        self,
        result: DeployResult,
        record: SolutionRunRecord,
        step: str,
        fn: Callable[[], T],
    ) -> T:
        try:
            return fn()
        except PlatformError as exc:
            _advance(record, SolutionStage.FAILED)
            record.error_message = str(exc)
            logger.error("%s failed for %s: %s", step, record.name, exc, extra={"solution": record.name})
            raise DeployError(
                f"{step} failed for solution '{record.name}': {exc}",
                step=step,
                solution=record.name,
                result=result,
            ) from exc

    def _run_hooks(self, phase: HookPhase, context: DeployHookContext | None, result: DeployResult) -> None:
        if self._hooks is None or context is None:
            return
        try:
            self._hooks.run(phase, context)
        except HookError as exc:
            raise DeployError(str(exc), step=f"{phase.value} hooks", result=result) from exc
