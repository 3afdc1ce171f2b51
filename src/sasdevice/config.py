# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Device Settings

Runtime configuration for the device agent. Every default matches the
fixed literal the agent was originally built against; the environment can
override them with ``SASDEVICE_*`` variables.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field

from sasdevice import constants

ENV_PREFIX = "SASDEVICE_"


class DeviceSettings(BaseModel):
    """Configuration for one device agent run.

    Attributes:
        identity_socket_path: Unix socket of the identity service.
        key_socket_path: Unix socket of the key service.
        local_api_version: ``api-version`` sent to both local services.
        hub_api_version: ``api-version`` sent to the hub in the MQTT username.
        request_timeout_seconds: Per-call timeout for local service requests.
        token_ttl_seconds: Lifetime of the shared access signature.
        telemetry_interval_seconds: Delay between telemetry messages.
        close_timeout_seconds: Upper bound on waiting for the session to close.
        mqtt_port: TLS port of the hub or gateway.
        model_id: Plug and Play model id announced on connect.
        log_level: Logging level name used by the CLI.
    """

    identity_socket_path: str = Field(
        default=constants.IDENTITY_SOCKET_PATH,
        description="Unix socket of the identity service",
    )
    key_socket_path: str = Field(
        default=constants.KEY_SOCKET_PATH,
        description="Unix socket of the key service",
    )
    local_api_version: str = Field(default=constants.LOCAL_API_VERSION)
    hub_api_version: str = Field(default=constants.HUB_API_VERSION)
    request_timeout_seconds: float = Field(
        default=constants.DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0
    )
    token_ttl_seconds: int = Field(
        default=constants.DEFAULT_TOKEN_TTL_SECONDS,
        gt=0,
        description="Seconds until the shared access signature expires",
    )
    telemetry_interval_seconds: float = Field(
        default=constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS, gt=0
    )
    close_timeout_seconds: float = Field(
        default=constants.DEFAULT_CLOSE_TIMEOUT_SECONDS, gt=0
    )
    mqtt_port: int = Field(default=constants.MQTT_TLS_PORT, ge=1, le=65535)
    model_id: str = Field(default=constants.MODEL_ID)
    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "DeviceSettings":
        """Build settings from ``SASDEVICE_*`` environment variables.

        Unset variables keep their defaults. Values are validated by pydantic,
        so a malformed number raises ``pydantic.ValidationError``.

        Args:
            environ: Mapping to read instead of ``os.environ`` (for tests).

        Returns:
            The resolved settings.
        """
        values: dict[str, str] = {}
        for name in cls.model_fields:
            key = f"{ENV_PREFIX}{name.upper()}"
            raw = environ.get(key) if environ is not None else os.getenv(key)
            if raw is not None and raw != "":
                values[name] = raw
        return cls(**values)
