"""Configuration for the function server.

Most values are set by the hosting platform or the local emulator rather than by
users; the names match the environment variables they use.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class RuntimeSettings(BaseSettings):
    """Settings read when the app is created.

    Environment variables:
    - FUNCTION_TARGET           (optional) serve only this function
    - FUNCTION_SIGNATURE_TYPE   (optional) ``http`` or ``cloudevent``
    - FUNCTIONS_CONTROL_API     (optional) ``true`` exposes ``/__/functions.yaml``
    - FIREBASE_DEBUG_FEATURES   (optional) emulator feature flags as JSON
    - LOG_LEVEL                 (optional)
    - PORT                      (optional)
    """

    function_target: str = Field(
        default="",
        validation_alias="FUNCTION_TARGET",
        description="Name of the single function this process serves; empty routes by path.",
    )
    function_signature_type: str = Field(
        default="",
        validation_alias="FUNCTION_SIGNATURE_TYPE",
        description="Signature type the platform expects from FUNCTION_TARGET.",
    )
    functions_control_api: str = Field(
        default="",
        validation_alias="FUNCTIONS_CONTROL_API",
        description="Set to 'true' by the deploy tooling during function discovery.",
    )
    debug_features: str = Field(
        default="",
        validation_alias="FIREBASE_DEBUG_FEATURES",
        description="JSON object with emulator flags; only enableCors is read.",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    port: int = Field(default=8080, validation_alias="PORT", ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    @property
    def control_api_enabled(self) -> bool:
        return self.functions_control_api == "true"

    def parsed_debug_features(self) -> dict[str, Any]:
        if not self.debug_features.strip():
            return {}
        try:
            parsed = json.loads(self.debug_features)
        except json.JSONDecodeError:
            logger.warning("FIREBASE_DEBUG_FEATURES is not valid JSON; ignoring it")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @property
    def cors_enabled(self) -> bool:
        return bool(self.parsed_debug_features().get("enableCors"))
