"""Resolved ALM manifest: solutions, environments, hooks and tool dependencies.

The manifest is built once per pipeline run from several configuration layers
(see :mod:`alm_engine.manifest.layered`) and is immutable afterwards.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from alm_engine.models.solution import SolutionConfig


class HookPhase(str, Enum):
    """Pipeline phases that accept hook scripts."""

    PRE_EXPORT = "preExport"
    POST_EXPORT = "postExport"
    PRE_BUILD = "preBuild"
    POST_BUILD = "postBuild"
    PRE_DEPLOY = "preDeploy"
    MIGRATE_DATA = "migrateData"
    POST_DEPLOY = "postDeploy"


class HookInvocation(BaseModel):
    """One external script run for a hook phase."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="Script path, relative to the repository root.")
    args: tuple[str, ...] = Field(default=(), description="Extra command-line arguments.")

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_path(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"path": value}
        return value


class DependencyKind(str, Enum):
    EXACT = "EXACT"
    LATEST = "LATEST"
    PRERELEASE = "PRERELEASE"


_EXACT_VERSION_RE = re.compile(r"^\d+(\.\d+){0,3}(-[0-9A-Za-z.-]+)?$")


class DependencySpec(BaseModel):
    """Version requirement for an external tool.

    Written in the manifest as a plain string: an exact version (``"1.38.3"``),
    an empty string for the latest stable release, or ``"prerelease"`` for the
    newest prerelease.
    """

    model_config = ConfigDict(frozen=True)

    kind: DependencyKind
    version: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_specifier(cls, value: Any) -> Any:
        if value is None:
            return {"kind": DependencyKind.LATEST}
        if isinstance(value, str):
            return cls._parse_specifier(value)
        if isinstance(value, float):
            # YAML reads an unquoted 1.40 as the float 1.4.
            raise ValueError(f"Dependency version {value!r} was read as a number; quote it (e.g. \"1.40\")")
        if isinstance(value, int) and not isinstance(value, bool):
            return cls._parse_specifier(str(value))
        return value

    @staticmethod
    def _parse_specifier(text: str) -> dict[str, Any]:
        spec = text.strip()
        if not spec:
            return {"kind": DependencyKind.LATEST}
        if spec.lower() == "prerelease":
            return {"kind": DependencyKind.PRERELEASE}
        if not _EXACT_VERSION_RE.match(spec):
            raise ValueError(f"Invalid dependency version specifier {text!r}")
        return {"kind": DependencyKind.EXACT, "version": spec}

    def __str__(self) -> str:
        if self.kind == DependencyKind.EXACT:
            return str(self.version)
        return "prerelease" if self.kind == DependencyKind.PRERELEASE else "latest"


class EnvironmentConfig(BaseModel):
    """A deploy target: its Dataverse URL and pipeline variables."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1, description="Dataverse organisation URL.")
    variables: dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AlmManifest(BaseModel):
    """Fully resolved, read-only manifest for one pipeline run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    solutions: tuple[SolutionConfig, ...] = Field(default=())
    environments: dict[str, EnvironmentConfig] = Field(default_factory=dict)
    hooks: dict[HookPhase, tuple[HookInvocation, ...]] = Field(default_factory=dict)
    script_dependencies: dict[str, DependencySpec] = Field(
        default_factory=dict,
        alias="scriptDependencies",
    )

    @model_validator(mode="before")
    @classmethod
    def _name_environments(cls, data: Any) -> Any:
        """Fill each environment's ``name`` from its mapping key."""
        if not isinstance(data, dict):
            return data
        environments = data.get("environments")
        if isinstance(environments, dict):
            named: dict[str, Any] = {}
            for key, env in environments.items():
                if isinstance(env, dict):
                    env = {"name": key, **env}
                named[key] = env
            data = {**data, "environments": named}
        return data

    @field_validator("solutions")
    @classmethod
    def _unique_solution_names(cls, value: tuple[SolutionConfig, ...]) -> tuple[SolutionConfig, ...]:
        seen: set[str] = set()
        duplicates: list[str] = []
        for solution in value:
            key = solution.name.lower()
            if key in seen:
                duplicates.append(solution.name)
            seen.add(key)
        if duplicates:
            raise ValueError(f"Duplicate solution names in manifest: {', '.join(sorted(duplicates))}")
        return value

    def solution_names(self) -> list[str]:
        return [s.name for s in self.solutions]

    def environment(self, name: str) -> EnvironmentConfig:
        """Look up an environment case-insensitively.

        Raises
        ------
        KeyError
            If the manifest declares no such environment.
        """
        for key, env in self.environments.items():
            if key.lower() == name.lower():
                return env
        available = ", ".join(sorted(self.environments)) or "(none)"
        raise KeyError(f"Environment '{name}' is not declared in the manifest. Available: {available}")
