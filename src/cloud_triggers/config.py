"""Configuration for the command line tools.

Loaded from environment variables and a local `.env` file (if present).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ToolSettings(BaseSettings):
    """Settings for ``cloud-triggers`` commands.

    Environment variables:
    - LOG_LEVEL              (optional)
    - CLOUD_TRIGGERS_OUTPUT  (optional) default manifest path
    - CLOUD_TRIGGERS_FORMAT  (optional) ``yaml`` or ``json``

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `ToolSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    manifest_output: Path = Field(
        default=Path("functions.yaml"),
        validation_alias="CLOUD_TRIGGERS_OUTPUT",
        description="Where `cloud-triggers manifest` writes the manifest by default",
    )

    manifest_format: str = Field(
        default="yaml",
        validation_alias="CLOUD_TRIGGERS_FORMAT",
        description="Manifest serialization format (yaml or json)",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("manifest_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"yaml", "json"}:
            raise ValueError("CLOUD_TRIGGERS_FORMAT must be 'yaml' or 'json'")
        return value
