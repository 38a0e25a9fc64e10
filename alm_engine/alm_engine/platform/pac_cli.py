"""Thin wrapper around the Power Platform CLI (``pac``).

All interaction with the ``pac`` binary is done through :func:`subprocess.run`
with explicit timeouts and structured error handling so that callers receive
:class:`PacCliError` exceptions with descriptive messages rather than raw
subprocess failures.  Authentication is whatever ``pac auth`` profile is
active; this module never handles credentials.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from alm_engine.models.solution import ImportMode
from alm_engine.models.version import SolutionVersion
from alm_engine.platform.base import PackageType, PlatformError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 1800  # seconds; solution imports can be slow


class PacCliError(PlatformError):
    """Raised when a ``pac`` command fails, times out, or cannot start."""


_IMPORT_FLAGS: dict[ImportMode, list[str]] = {
    ImportMode.MANAGED: [],
    ImportMode.UNMANAGED: ["--force-overwrite"],
    ImportMode.HOLDING: ["--import-as-holding"],
    ImportMode.STAGE_AND_UPGRADE: ["--stage-and-upgrade"],
}


def _bool_arg(value: bool) -> str:
    return "true" if value else "false"


class PacCli:
    """Runs ``pac solution`` sub-commands.

    Parameters
    ----------
    executable:
        Name or path of the ``pac`` binary.
    timeout_seconds:
        Upper bound on a single command's runtime.
    """

    def __init__(self, executable: str = "pac", timeout_seconds: int = _DEFAULT_TIMEOUT) -> None:
        self._executable = executable
        self._timeout = timeout_seconds

    def run(self, args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        """Execute ``pac <args>`` and return the completed process.

        Raises
        ------
        PacCliError
            On non-zero exit, timeout, or if the executable cannot be found.
        """
        cmd = [self._executable, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self._timeout,
            )
        except subprocess.CalledProcessError as exc:
            output = ((exc.stderr or "").strip() or (exc.stdout or "").strip())[-2000:]
            raise PacCliError(f"pac command failed: {' '.join(cmd)}\nExit code {exc.returncode}: {output}") from exc
        except subprocess.TimeoutExpired as exc:
            raise PacCliError(f"pac command timed out after {self._timeout}s: {' '.join(cmd)}") from exc
        except FileNotFoundError as exc:
            raise PacCliError(
                f"pac executable '{self._executable}' not found. Install the Power Platform CLI and ensure it is on PATH."
            ) from exc

    # -- Local (no environment) -------------------------------------------

    def unpack(self, archive: Path, folder: Path, package_type: PackageType) -> Path:
        self.run(
            [
                "solution",
                "unpack",
                "--zipfile",
                str(archive),
                "--folder",
                str(folder),
                "--packagetype",
                package_type.value,
                "--allowDelete",
                "true",
                "--allowWrite",
                "true",
            ]
        )
        return folder

    def pack(self, folder: Path, archive: Path, package_type: PackageType) -> Path:
        archive.parent.mkdir(parents=True, exist_ok=True)
        self.run(
            [
                "solution",
                "pack",
                "--zipfile",
                str(archive),
                "--folder",
                str(folder),
                "--packagetype",
                package_type.value,
            ]
        )
        return archive

    # -- Environment-bound ------------------------------------------------

    def export(self, name: str, archive: Path, *, managed: bool, environment_url: str) -> Path:
        archive.parent.mkdir(parents=True, exist_ok=True)
        self.run(
            [
                "solution",
                "export",
                "--name",
                name,
                "--path",
                str(archive),
                "--managed",
                _bool_arg(managed),
                "--environment",
                environment_url,
                "--overwrite",
            ]
        )
        return archive

    def import_solution(self, archive: Path, mode: ImportMode, *, environment_url: str) -> None:
        if mode not in _IMPORT_FLAGS:
            raise PacCliError(f"Import mode {mode.value} does not import anything")
        self.run(
            [
                "solution",
                "import",
                "--path",
                str(archive),
                "--environment",
                environment_url,
                *_IMPORT_FLAGS[mode],
            ]
        )

    def upgrade(self, name: str, *, environment_url: str) -> None:
        self.run(["solution", "upgrade", "--solution-name", name, "--environment", environment_url])

    def publish(self, *, environment_url: str) -> None:
        self.run(["solution", "publish", "--environment", environment_url])

    def set_online_version(self, name: str, version: SolutionVersion, *, environment_url: str) -> None:
        self.run(
            [
                "solution",
                "online-version",
                "--solution-name",
                name,
                "--solution-version",
                str(version),
                "--environment",
                environment_url,
            ]
        )
