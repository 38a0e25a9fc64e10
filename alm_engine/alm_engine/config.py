"""Engine settings loaded from environment variables."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Process-level settings loaded from environment variables with ALM_ prefix.

    Per-repository configuration (solutions, environments, hooks) lives in the
    layered manifest, not here.
    """

    model_config = SettingsConfigDict(
        env_prefix="ALM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    debug: bool = False

    # Logging / telemetry
    structured_logging: bool = False
    metrics_file: Path | None = None

    # Power Platform CLI
    pac_executable: str = "pac"
    pac_timeout_seconds: int = 1800

    # Dataverse Web API
    dataverse_token: SecretStr | None = None
    web_api_version: str = "9.2"
    http_timeout_seconds: float = 60.0

    # Repository layout
    solutions_dir: Path = Path("solutions")
    artifacts_dir: Path = Path("out/artifacts")
    config_file: str = "alm-config.yml"
    defaults_file: Path | None = None

    # Export
    source_environment: str = "DEV"
    git_remote: str = "origin"

    # Hooks
    hook_timeout_seconds: int = 3600

    @field_validator("dataverse_token", mode="before")
    @classmethod
    def mask_token_in_repr(cls, v: str | None) -> SecretStr | None:
        if v is None:
            return None
        if isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    def is_web_api_configured(self) -> bool:
        return self.dataverse_token is not None


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded settings (pac=%s, web api v%s)", settings.pac_executable, settings.web_api_version)

    return settings
