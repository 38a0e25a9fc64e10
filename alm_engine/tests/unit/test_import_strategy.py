"""Unit tests for alm_engine.deploy.import_strategy."""

from __future__ import annotations

import itertools
import logging

import pytest

from alm_engine.deploy.import_strategy import select_import_strategy
from alm_engine.models.solution import ImportAction, ImportMode
from alm_engine.models.version import SolutionVersion

V = SolutionVersion.parse


def _decide(artifact: str, installed: str | None, *, unmanaged: bool = False, batch: int = 1):
    return select_import_strategy(
        V(artifact),
        V(installed) if installed is not None else None,
        is_unmanaged_target=unmanaged,
        batch_size=batch,
    )


# ---------------------------------------------------------------------------
# Decision table rows
# ---------------------------------------------------------------------------


class TestDecisionTable:
    def test_not_installed_installs_managed(self):
        d = _decide("1.0.0.0", None)
        assert (d.action, d.mode) == (ImportAction.INSTALL, ImportMode.MANAGED)

    def test_not_installed_installs_unmanaged_on_unmanaged_target(self):
        d = _decide("1.0.0.0", None, unmanaged=True)
        assert (d.action, d.mode) == (ImportAction.INSTALL, ImportMode.UNMANAGED)

    def test_unmanaged_target_always_overwrites_even_when_equal(self):
        d = _decide("1.2.3.4", "1.2.3.4", unmanaged=True)
        assert (d.action, d.mode) == (ImportAction.UPDATE, ImportMode.UNMANAGED)

    def test_equal_versions_skip(self):
        d = _decide("1.2.3.4", "1.2.3.4")
        assert (d.action, d.mode) == (ImportAction.SKIP, ImportMode.NONE)
        assert not d.requires_import

    def test_same_major_minor_updates(self):
        d = _decide("1.2.9.9", "1.2.0.0")
        assert (d.action, d.mode) == (ImportAction.UPDATE, ImportMode.MANAGED)

    def test_minor_change_in_batch_uses_holding(self):
        d = _decide("1.3.0.0", "1.2.0.0", batch=3)
        assert (d.action, d.mode) == (ImportAction.UPGRADE, ImportMode.HOLDING)
        assert d.requires_upgrade

    def test_major_change_single_solution_upgrades_directly(self):
        d = _decide("2.0.0.0", "1.9.0.0", batch=1)
        assert (d.action, d.mode) == (ImportAction.UPGRADE, ImportMode.STAGE_AND_UPGRADE)
        assert not d.requires_upgrade

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError, match="batch_size"):
            _decide("1.0.0.0", None, batch=0)


class TestDowngrade:
    def test_older_artifact_same_minor_still_updates(self, caplog):
        with caplog.at_level(logging.WARNING, logger="alm_engine.deploy.import_strategy"):
            d = _decide("1.2.0.0", "1.2.5.0")
        assert d.action == ImportAction.UPDATE
        assert "older than installed" in caplog.text

    def test_older_artifact_different_minor_upgrades(self):
        d = _decide("1.1.0.0", "1.2.0.0", batch=2)
        assert d.mode == ImportMode.HOLDING


# ---------------------------------------------------------------------------
# Totality, determinism, idempotence
# ---------------------------------------------------------------------------

_INSTALLED = [None, "1.2.3.4"]
_ARTIFACTS = ["1.2.3.4", "1.2.9.9", "1.3.0.0", "2.0.0.0"]
_EXPECTED_OUTCOMES = {
    (ImportAction.INSTALL, ImportMode.MANAGED),
    (ImportAction.INSTALL, ImportMode.UNMANAGED),
    (ImportAction.UPDATE, ImportMode.UNMANAGED),
    (ImportAction.SKIP, ImportMode.NONE),
    (ImportAction.UPDATE, ImportMode.MANAGED),
    (ImportAction.UPGRADE, ImportMode.HOLDING),
    (ImportAction.UPGRADE, ImportMode.STAGE_AND_UPGRADE),
}


class TestTableProperties:
    def test_total_and_deterministic(self):
        seen = set()
        for installed, artifact, unmanaged, batch in itertools.product(
            _INSTALLED, _ARTIFACTS, [False, True], [1, 3]
        ):
            first = _decide(artifact, installed, unmanaged=unmanaged, batch=batch)
            second = _decide(artifact, installed, unmanaged=unmanaged, batch=batch)
            assert first == second
            assert (first.action, first.mode) in _EXPECTED_OUTCOMES
            seen.add((first.action, first.mode))
        assert seen == _EXPECTED_OUTCOMES

    @pytest.mark.parametrize("installed", _INSTALLED)
    @pytest.mark.parametrize("artifact", _ARTIFACTS)
    @pytest.mark.parametrize("batch", [1, 3])
    def test_rerun_after_success_skips(self, installed, artifact, batch):
        first = _decide(artifact, installed, batch=batch)
        assert first.action in {ImportAction.INSTALL, ImportAction.SKIP, ImportAction.UPDATE, ImportAction.UPGRADE}
        second = _decide(artifact, artifact, batch=batch)
        assert second.action == ImportAction.SKIP

    def test_reason_is_populated(self):
        assert _decide("1.0.0.0", None).reason
