# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Signing Client

Asks the local key service to sign a payload with the key named by the
identity's key handle. The key itself stays inside the key service: the
request carries only the handle, and only the ``signature`` field of the
response is ever read.
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sasdevice.cancellation import CancellationToken
from sasdevice.config import DeviceSettings
from sasdevice.constants import KEY_HOST, SIGNING_ALGORITHM
from sasdevice.credentials.payload import SignablePayload
from sasdevice.exceptions import SigningUnavailableError
from sasdevice.identity.models import DeviceIdentity
from sasdevice.transport.local import LocalServiceClient, LocalServiceError

logger = logging.getLogger(__name__)

SIGN_PATH = "/sign"


class Signature(BaseModel):
    """A signature over one encoded payload.

    Attributes:
        value: Base64 signature as returned by the key service.
        message: The encoded message that was signed.
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., min_length=1)
    message: str

    @property
    def quoted(self) -> str:
        """Signature percent-encoded for a URL query value."""
        return quote_plus(self.value, safe="")


class _SignResponse(BaseModel):
    # Anything besides the signature is dropped on parse
    model_config = ConfigDict(extra="ignore")

    signature: Optional[str] = None


def build_sign_request(identity: DeviceIdentity, payload: SignablePayload) -> dict:
    """Return the key service request body for ``payload``."""
    return {
        "keyHandle": identity.key_handle,
        "algorithm": SIGNING_ALGORITHM,
        "parameters": {"message": payload.encoded_message},
    }


class SigningClient:
    """Client for the key service's ``/sign`` operation.

    Args:
        client: Local service client bound to the key service socket.
    """

    def __init__(self, client: LocalServiceClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, settings: DeviceSettings) -> "SigningClient":
        return cls(
            LocalServiceClient(
                socket_path=settings.key_socket_path,
                host=KEY_HOST,
                api_version=settings.local_api_version,
                timeout_seconds=settings.request_timeout_seconds,
            )
        )

    async def sign(
        self,
        identity: DeviceIdentity,
        payload: SignablePayload,
        cancel: CancellationToken,
    ) -> Signature:
        """Sign ``payload`` with the key named by ``identity.key_handle``.

        Returns:
            The signature, bound to the payload it signs.

        Raises:
            SigningUnavailableError: If the key service is unreachable, fails,
                or returns no signature.
            OperationCancelledError: If ``cancel`` fires first.
        """
        logger.info("Getting signature from key service")
        body = build_sign_request(identity, payload)
        try:
            data = await self._client.request_json("POST", SIGN_PATH, cancel, body=body)
        except LocalServiceError as exc:
            raise SigningUnavailableError(f"Key service unavailable: {exc}") from exc

        try:
            response = _SignResponse.model_validate(data)
        except ValidationError as exc:
            raise SigningUnavailableError(f"Key service returned a malformed response: {exc}") from exc

        if not response.signature:
            raise SigningUnavailableError("Key service returned an empty signature")

        logger.debug("Signature received (%d chars)", len(response.signature))
        return Signature(value=response.signature, message=payload.encoded_message)


async def sign(
    identity: DeviceIdentity,
    payload: SignablePayload,
    cancel: CancellationToken,
    settings: Optional[DeviceSettings] = None,
) -> Signature:
    """Sign ``payload`` using default (or given) settings."""
    client = SigningClient.from_settings(settings or DeviceSettings())
    return await client.sign(identity, payload, cancel)
