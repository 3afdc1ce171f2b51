# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Identity Resolver

Asks the local identity service who this device is. The answer is fetched
fresh on every call and never cached.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from sasdevice.cancellation import CancellationToken
from sasdevice.config import DeviceSettings
from sasdevice.constants import IDENTITY_HOST
from sasdevice.exceptions import IdentityUnavailableError
from sasdevice.identity.models import DeviceIdentity, IdentityEnvelope
from sasdevice.transport.local import LocalServiceClient, LocalServiceError

logger = logging.getLogger(__name__)

IDENTITY_PATH = "/identities/identity"


class IdentityResolver:
    """Resolves the device identity from the identity service.

    Args:
        client: Local service client bound to the identity socket.
    """

    def __init__(self, client: LocalServiceClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: DeviceSettings) -> "IdentityResolver":
        return cls(
            LocalServiceClient(
                socket_path=settings.identity_socket_path,
                host=IDENTITY_HOST,
                api_version=settings.local_api_version,
                timeout_seconds=settings.request_timeout_seconds,
            )
        )

    async def resolve(self, cancel: CancellationToken) -> DeviceIdentity:
        """Fetch and parse the current identity.

        Args:
            cancel: Token observed while waiting on the service.

        Returns:
            The device identity.

        Raises:
            IdentityUnavailableError: If the service is unreachable or the
                response is malformed.
            OperationCancelledError: If ``cancel`` fires first.
        """
        logger.info("Getting identity info...")
        try:
            data = await self._client.request_json("GET", IDENTITY_PATH, cancel)
        except LocalServiceError as exc:
            raise IdentityUnavailableError(f"Identity service unavailable: {exc}") from exc

        try:
            envelope = IdentityEnvelope.model_validate(data)
        except ValidationError as exc:
            raise IdentityUnavailableError(
                f"Identity service returned a malformed identity: {exc}"
            ) from exc

        identity = DeviceIdentity.from_spec(envelope.spec)
        logger.info(
            "Identity resolved: device=%s hub=%s gateway=%s",
            identity.device_id,
            identity.hub_endpoint,
            identity.gateway_endpoint,
        )
        return identity


async def resolve_identity(
    cancel: CancellationToken,
    settings: Optional[DeviceSettings] = None,
) -> DeviceIdentity:
    """Resolve the device identity using default (or given) settings."""
    resolver = IdentityResolver.from_settings(settings or DeviceSettings())
    return await resolver.resolve(cancel)
