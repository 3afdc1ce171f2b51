# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Signable Payload

Builds the canonical string-to-sign for a shared access signature:
``<url-encoded resource uri>\\n<expiry>``, base64 encoded for the key
service. The expiry is computed once per process and passed in.
"""

from __future__ import annotations

import base64
import time
from typing import Optional
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict

from sasdevice.constants import DEFAULT_TOKEN_TTL_SECONDS
from sasdevice.exceptions import CredentialMalformedError
from sasdevice.identity.models import DeviceIdentity


class SignablePayload(BaseModel):
    """The value handed to the key service for signing."""

    model_config = ConfigDict(frozen=True)

    resource_uri: str
    expiry: int
    encoded_message: str

    def decoded_message(self) -> str:
        """Return the plain ``resource_uri\\nexpiry`` string."""
        return base64.b64decode(self.encoded_message).decode("utf-8")


def compute_expiry(
    now: Optional[float] = None,
    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
) -> int:
    """Return the token expiry as integer Unix seconds.

    Call once at process start; the same value must reach both the builder
    and the assembler.
    """
    if now is None:
        now = time.time()
    return int(now) + ttl_seconds


def build_resource_uri(identity: DeviceIdentity) -> str:
    """URL-encode ``<hub>/devices/<device id>`` (lowercased), escaping ``/``."""
    if not identity.hub_endpoint.strip() or not identity.device_id.strip():
        raise CredentialMalformedError("Identity is missing hub endpoint or device id")
    raw = f"{identity.hub_endpoint}/devices/{identity.device_id}".lower()
    # Form encoding: a space becomes "+", not "%20". These are the signed
    # bytes, so switching to quote() would change every signature.
    return quote_plus(raw, safe="")


def build_signable_payload(identity: DeviceIdentity, expiry: int) -> SignablePayload:
    """Build the payload to sign for ``identity`` expiring at ``expiry``.

    Deterministic: the same identity and expiry always give byte-identical
    ``encoded_message`` values.
    """
    resource_uri = build_resource_uri(identity)
    message = f"{resource_uri}\n{expiry}".encode("utf-8")
    return SignablePayload(
        resource_uri=resource_uri,
        expiry=expiry,
        encoded_message=base64.b64encode(message).decode("ascii"),
    )
