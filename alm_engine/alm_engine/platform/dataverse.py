"""Dataverse environment backed by the ``pac`` CLI and the Web API."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from alm_engine.config import Settings
from alm_engine.models.manifest import EnvironmentConfig
from alm_engine.models.solution import DeployedSolutionState, ImportMode
from alm_engine.models.version import SolutionVersion
from alm_engine.platform.base import (
    PackageType,
    PlatformError,
    ProcessRecord,
    ProcessState,
    SystemUser,
)
from alm_engine.platform.pac_cli import PacCli
from alm_engine.platform.web_api import DataverseWebClient

logger = logging.getLogger(__name__)


class DataversePlatform:
    """:class:`~alm_engine.platform.base.SolutionPlatform` for one environment.

    Solution lifecycle operations (export, import, upgrade, publish, version)
    go through ``pac``; reads and process ownership go through the Web API.
    """

    def __init__(self, environment: EnvironmentConfig, pac: PacCli, web: DataverseWebClient) -> None:
        self._environment = environment
        self._pac = pac
        self._web = web

    @property
    def environment_name(self) -> str:
        return self._environment.name

    @property
    def url(self) -> str:
        return self._environment.url

    def close(self) -> None:
        self._web.close()

    def __enter__(self) -> DataversePlatform:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- Solutions ---------------------------------------------------------

    def export_solution(self, name: str, folder: Path) -> Path:
        """Export managed and unmanaged packages and unpack both into *folder*."""
        with tempfile.TemporaryDirectory(prefix="alm-export-") as tmp:
            unmanaged = Path(tmp) / f"{name}.zip"
            self._pac.export(name, unmanaged, managed=False, environment_url=self.url)
            self._pac.export(name, Path(tmp) / f"{name}_managed.zip", managed=True, environment_url=self.url)
            self._pac.unpack(unmanaged, folder, PackageType.BOTH)
        logger.info("Exported %s from %s", name, self.environment_name)
        return folder

    def stage(self, artifact: Path, mode: ImportMode) -> None:
        logger.info("Importing %s into %s (%s)", artifact.name, self.environment_name, mode.value)
        self._pac.import_solution(artifact, mode, environment_url=self.url)

    def upgrade(self, name: str) -> None:
        logger.info("Applying upgrade of %s in %s", name, self.environment_name)
        self._pac.upgrade(name, environment_url=self.url)

    def publish(self) -> None:
        logger.info("Publishing customizations in %s", self.environment_name)
        self._pac.publish(environment_url=self.url)

    def get_installed_solution(self, name: str) -> DeployedSolutionState | None:
        return self._web.get_solution(name)

    def set_version(self, name: str, version: SolutionVersion) -> None:
        self._pac.set_online_version(name, version, environment_url=self.url)

    # -- Processes ---------------------------------------------------------

    def list_processes(self, name: str) -> list[ProcessRecord]:
        installed = self._web.get_solution(name)
        if installed is None or not installed.solution_id:
            raise PlatformError(f"Solution '{name}' is not installed in {self.environment_name}")
        return self._web.list_solution_processes(installed.solution_id)

    def find_users(self, domain_name: str) -> list[SystemUser]:
        return self._web.find_users(domain_name)

    def assign_process_owner(self, process_id: str, user_id: str) -> None:
        self._web.assign_process_owner(process_id, user_id)

    def set_process_state(self, process_id: str, state: ProcessState) -> None:
        self._web.set_process_state(process_id, state)


def connect(environment: EnvironmentConfig, settings: Settings) -> DataversePlatform:
    """Build a :class:`DataversePlatform` for *environment* from *settings*.

    Raises
    ------
    PlatformError
        If no Web API token is configured.
    """
    if settings.dataverse_token is None:
        raise PlatformError("ALM_DATAVERSE_TOKEN is not set; a bearer token is required to reach the Web API")
    pac = PacCli(settings.pac_executable, settings.pac_timeout_seconds)
    web = DataverseWebClient(
        environment.url,
        settings.dataverse_token.get_secret_value(),
        api_version=settings.web_api_version,
        timeout=settings.http_timeout_seconds,
    )
    return DataversePlatform(environment, pac, web)
