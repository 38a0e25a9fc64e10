"""Dataverse collaborators: pac CLI, Web API, and their protocols."""

from __future__ import annotations

from alm_engine.platform.base import (
    ComponentComparer,
    PackageType,
    PlatformError,
    ProcessRecord,
    ProcessState,
    SolutionPacker,
    SolutionPlatform,
    SystemUser,
)
from alm_engine.platform.dataverse import DataversePlatform, connect
from alm_engine.platform.pac_cli import PacCli, PacCliError
from alm_engine.platform.web_api import DataverseWebClient, WebApiError

__all__ = [
    "ComponentComparer",
    "DataversePlatform",
    "DataverseWebClient",
    "PacCli",
    "PacCliError",
    "PackageType",
    "PlatformError",
    "ProcessRecord",
    "ProcessState",
    "SolutionPacker",
    "SolutionPlatform",
    "SystemUser",
    "WebApiError",
    "connect",
]
