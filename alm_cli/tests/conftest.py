"""Shared fixtures for CLI tests."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

_CONFIG = """\
solutions:
  - Core
  - name: Sales
    serviceAccountKey: SalesUpn
environments:
  TEST:
    url: https://test.crm.dynamics.com
    variables:
      ServiceAccountUpn: svc@contoso.com
      SalesUpn: sales@contoso.com
  DEV:
    url: https://dev.crm.dynamics.com
hooks:
  preDeploy:
    - hooks/check.ps1
scriptDependencies:
  Microsoft.PowerApps.CLI.Tool: "1.38.3"
"""


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path, monkeypatch):
    """Keep ambient ALM_* variables and .env files out of the settings."""
    for key in list(os.environ):
        if key.startswith("ALM_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    with patch("alm_cli.app.configure_logging"):
        yield


@pytest.fixture()
def repo(tmp_path):
    root = tmp_path / "repo"
    root.mkdir()
    (root / "alm-config.yml").write_text(_CONFIG, encoding="utf-8")
    return root
