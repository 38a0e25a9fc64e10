"""Hook registry: ordered external scripts per pipeline phase.

Scripts are resolved against the repository root and run one at a time, in
manifest order.  The interpreter is chosen from the file extension.  A hook
that fails stops the pipeline; hooks are never retried.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from alm_engine.hooks.context import PHASE_CONTEXT_TYPES, HookContext
from alm_engine.models.manifest import AlmManifest, HookInvocation, HookPhase

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 3600  # seconds


class HookError(Exception):
    """Raised when a hook script is missing, fails, or times out."""


def build_command(script: Path, args: Sequence[str] = ()) -> list[str]:
    """Return the argv used to run *script*."""
    suffix = script.suffix.lower()
    if suffix == ".py":
        prefix = [sys.executable]
    elif suffix == ".ps1":
        prefix = ["pwsh", "-NoProfile", "-NonInteractive", "-File"]
    elif suffix == ".sh":
        prefix = ["bash"]
    else:
        prefix = []
    return [*prefix, str(script), *args]


class HookRegistry:
    """Maps each :class:`HookPhase` to its ordered list of invocations."""

    def __init__(
        self,
        hooks: Mapping[HookPhase, Sequence[HookInvocation]],
        repo_root: Path,
        *,
        timeout_seconds: int = _DEFAULT_TIMEOUT,
    ) -> None:
        self._hooks = {phase: tuple(invocations) for phase, invocations in hooks.items()}
        self._repo_root = repo_root
        self._timeout = timeout_seconds

    @classmethod
    def from_manifest(
        cls,
        manifest: AlmManifest,
        repo_root: Path,
        *,
        timeout_seconds: int = _DEFAULT_TIMEOUT,
    ) -> HookRegistry:
        return cls(manifest.hooks, repo_root, timeout_seconds=timeout_seconds)

    def invocations(self, phase: HookPhase) -> tuple[HookInvocation, ...]:
        return self._hooks.get(phase, ())

    def run(self, phase: HookPhase, context: HookContext) -> int:
        """Run every hook registered for *phase*; return how many ran.

        Raises
        ------
        HookError
            If *context* is the wrong type for *phase*, or any hook fails.
        """
        expected = PHASE_CONTEXT_TYPES[phase]
        if not isinstance(context, expected):
            raise HookError(
                f"Hook phase {phase.value} expects {expected.__name__}, got {type(context).__name__}"
            )

        invocations = self.invocations(phase)
        if not invocations:
            return 0

        payload = json.dumps({"phase": phase.value, **context.model_dump(mode="json")}, sort_keys=True)
        env = {**os.environ, "ALM_HOOK_PHASE": phase.value, "ALM_REPO_ROOT": str(self._repo_root)}

        for invocation in invocations:
            self._run_one(phase, invocation, payload, env)
        return len(invocations)

    def _run_one(self, phase: HookPhase, invocation: HookInvocation, payload: str, env: dict[str, str]) -> None:
        script = Path(invocation.path)
        if not script.is_absolute():
            script = self._repo_root / script
        if not script.is_file():
            raise HookError(f"{phase.value} hook not found: {script}")

        cmd = build_command(script, invocation.args)
        logger.info("Running %s hook %s", phase.value, invocation.path)
        try:
            subprocess.run(
                cmd,
                cwd=self._repo_root,
                env=env,
                input=payload,
                text=True,
                check=True,
                timeout=self._timeout,
            )
        except subprocess.CalledProcessError as exc:
            raise HookError(f"{phase.value} hook {invocation.path} failed with exit code {exc.returncode}") from exc
        except subprocess.TimeoutExpired as exc:
            raise HookError(f"{phase.value} hook {invocation.path} timed out after {self._timeout}s") from exc
        except FileNotFoundError as exc:
            raise HookError(f"Cannot start {phase.value} hook {invocation.path}: {exc}") from exc
