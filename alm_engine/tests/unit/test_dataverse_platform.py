"""Unit tests for alm_engine.platform.dataverse."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from alm_engine.config import Settings
from alm_engine.models.manifest import EnvironmentConfig
from alm_engine.models.solution import DeployedSolutionState, ImportMode
from alm_engine.models.version import SolutionVersion
from alm_engine.platform.base import PackageType, PlatformError, ProcessRecord, ProcessState
from alm_engine.platform.dataverse import DataversePlatform, connect
from alm_engine.platform.pac_cli import PacCli
from alm_engine.platform.web_api import DataverseWebClient

_URL = "https://test.crm.dynamics.com"


@pytest.fixture()
def pac():
    return MagicMock(spec=PacCli)


@pytest.fixture()
def web():
    return MagicMock(spec=DataverseWebClient)


@pytest.fixture()
def dataverse(pac, web):
    return DataversePlatform(EnvironmentConfig(name="TEST", url=_URL + "/"), pac, web)


class TestSolutionOperations:
    def test_export_fetches_both_packages_and_unpacks(self, dataverse, pac, tmp_path):
        folder = tmp_path / "Core"
        assert dataverse.export_solution("Core", folder) == folder

        exports = [(c.args[0], c.args[1].name, c.kwargs) for c in pac.export.call_args_list]
        assert exports == [
            ("Core", "Core.zip", {"managed": False, "environment_url": _URL}),
            ("Core", "Core_managed.zip", {"managed": True, "environment_url": _URL}),
        ]
        archive, target, package_type = pac.unpack.call_args.args
        assert archive.name == "Core.zip"
        assert target == folder
        assert package_type == PackageType.BOTH

    def test_stage_upgrade_publish(self, dataverse, pac):
        dataverse.stage(Path("/out/Core_managed.zip"), ImportMode.HOLDING)
        dataverse.upgrade("Core")
        dataverse.publish()

        pac.import_solution.assert_called_once_with(
            Path("/out/Core_managed.zip"), ImportMode.HOLDING, environment_url=_URL
        )
        pac.upgrade.assert_called_once_with("Core", environment_url=_URL)
        pac.publish.assert_called_once_with(environment_url=_URL)

    def test_set_version(self, dataverse, pac):
        version = SolutionVersion.parse("1.2.0.4")
        dataverse.set_version("Core", version)
        pac.set_online_version.assert_called_once_with("Core", version, environment_url=_URL)

    def test_installed_state_comes_from_web_api(self, dataverse, web):
        web.get_solution.return_value = None
        assert dataverse.get_installed_solution("Core") is None
        web.get_solution.assert_called_once_with("Core")


class TestProcessOperations:
    def test_list_processes_by_solution_id(self, dataverse, web):
        web.get_solution.return_value = DeployedSolutionState(
            unique_name="Core", installed_version=SolutionVersion.parse("1.0.0.0"), solution_id="sol-1"
        )
        web.list_solution_processes.return_value = [ProcessRecord(process_id="p1")]

        assert dataverse.list_processes("Core") == [ProcessRecord(process_id="p1")]
        web.list_solution_processes.assert_called_once_with("sol-1")

    def test_list_processes_of_missing_solution(self, dataverse, web):
        web.get_solution.return_value = None
        with pytest.raises(PlatformError, match="not installed in TEST"):
            dataverse.list_processes("Core")

    def test_owner_and_state_delegate(self, dataverse, web):
        dataverse.assign_process_owner("p1", "u1")
        dataverse.set_process_state("p1", ProcessState.ACTIVATED)
        web.assign_process_owner.assert_called_once_with("p1", "u1")
        web.set_process_state.assert_called_once_with("p1", ProcessState.ACTIVATED)

    def test_context_manager_closes_client(self, dataverse, web):
        with dataverse as entered:
            assert entered.environment_name == "TEST"
        web.close.assert_called_once_with()


class TestConnect:
    def test_requires_token(self):
        with pytest.raises(PlatformError, match="ALM_DATAVERSE_TOKEN"):
            connect(EnvironmentConfig(name="TEST", url=_URL), Settings(dataverse_token=None))

    def test_builds_platform(self):
        settings = Settings(dataverse_token="secret", pac_executable="/opt/pac")
        with connect(EnvironmentConfig(name="TEST", url=_URL), settings) as platform:
            assert platform.environment_name == "TEST"
            assert platform.url == _URL
