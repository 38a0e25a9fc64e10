"""Minimal synchronous client for the Dataverse Web API.

Covers only what the deploy and export pipelines need: reading installed
solutions, listing a solution's processes, resolving users, and updating
process ownership and state.  Token acquisition is out of scope; callers pass
a bearer token obtained elsewhere.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from alm_engine.models.solution import DeployedSolutionState
from alm_engine.models.version import SolutionVersion
from alm_engine.platform.base import PlatformError, ProcessRecord, ProcessState, SystemUser

logger = logging.getLogger(__name__)

# solutioncomponent.componenttype for processes (workflows, flows, rules).
_COMPONENT_TYPE_WORKFLOW = 29

# workflow.statecode / statuscode pairs.
_STATE_CODES: dict[ProcessState, tuple[int, int]] = {
    ProcessState.DRAFT: (0, 1),
    ProcessState.ACTIVATED: (1, 2),
}


class WebApiError(PlatformError):
    """Raised when a Web API request fails."""


def _odata_literal(value: str) -> str:
    """Quote *value* as an OData string literal."""
    return "'" + value.replace("'", "''") + "'"


class DataverseWebClient:
    """Thin wrapper around ``/api/data/v{version}/`` for one environment.

    Parameters
    ----------
    environment_url:
        Organisation URL, e.g. ``https://contoso.crm.dynamics.com``.
    token:
        Bearer token for the environment.
    api_version:
        Web API version segment.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional transport override (tests use :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        environment_url: str,
        token: str,
        *,
        api_version: str = "9.2",
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = f"{environment_url.rstrip('/')}/api/data/v{api_version}/"
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json; charset=utf-8",
                "OData-MaxVersion": "4.0",
                "OData-Version": "4.0",
            },
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> DataverseWebClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- Transport ---------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, params=params, json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text
            try:
                detail = exc.response.json().get("error", {}).get("message", detail)
            except ValueError:
                pass
            raise WebApiError(
                f"Web API {method} {path} failed ({exc.response.status_code}): {detail}"
            ) from exc
        except httpx.HTTPError as exc:
            raise WebApiError(f"Web API {method} {path} failed: {exc}") from exc

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    def _get_values(self, path: str, params: dict[str, str]) -> list[dict[str, Any]]:
        return list(self._request("GET", path, params=params).get("value", []))

    # -- Solutions ---------------------------------------------------------

    def get_solution(self, unique_name: str) -> DeployedSolutionState | None:
        rows = self._get_values(
            "solutions",
            {
                "$select": "solutionid,uniquename,version,ismanaged",
                "$filter": f"uniquename eq {_odata_literal(unique_name)}",
            },
        )
        if not rows:
            return None
        row = rows[0]
        return DeployedSolutionState(
            unique_name=row["uniquename"],
            installed_version=SolutionVersion.parse(row["version"]),
            is_managed=bool(row.get("ismanaged", False)),
            solution_id=row.get("solutionid"),
        )

    def list_solution_processes(self, solution_id: str) -> list[ProcessRecord]:
        components = self._get_values(
            "solutioncomponents",
            {
                "$select": "objectid",
                "$filter": f"_solutionid_value eq {solution_id} and componenttype eq {_COMPONENT_TYPE_WORKFLOW}",
            },
        )
        processes: list[ProcessRecord] = []
        for component in components:
            row = self._request(
                "GET",
                f"workflows({component['objectid']})",
                params={"$select": "workflowid,name,statecode,_ownerid_value"},
            )
            processes.append(
                ProcessRecord(
                    process_id=row["workflowid"],
                    name=row.get("name") or "",
                    state=ProcessState.ACTIVATED if row.get("statecode") == 1 else ProcessState.DRAFT,
                    owner_id=row.get("_ownerid_value"),
                )
            )
        processes.sort(key=lambda p: (p.name, p.process_id))
        return processes

    # -- Users and processes -----------------------------------------------

    def find_users(self, domain_name: str) -> list[SystemUser]:
        rows = self._get_values(
            "systemusers",
            {
                "$select": "systemuserid,domainname",
                "$filter": f"domainname eq {_odata_literal(domain_name)}",
            },
        )
        return [SystemUser(user_id=row["systemuserid"], domain_name=row.get("domainname") or "") for row in rows]

    def assign_process_owner(self, process_id: str, user_id: str) -> None:
        self._request(
            "PATCH",
            f"workflows({process_id})",
            body={"ownerid@odata.bind": f"/systemusers({user_id})"},
        )

    def set_process_state(self, process_id: str, state: ProcessState) -> None:
        statecode, statuscode = _STATE_CODES[state]
        self._request(
            "PATCH",
            f"workflows({process_id})",
            body={"statecode": statecode, "statuscode": statuscode},
        )
