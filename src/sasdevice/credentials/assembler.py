# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Credential Assembler

Turns an identity, a signature and the payload it signs into the device
connection string:

    HostName=<h>;DeviceId=<d>;SharedAccessSignature=SharedAccessSignature sr=<uri>&se=<exp>&sig=<sig>[;GatewayHost=<g>]

Other tooling parses this exact shape, so field order is fixed.
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict

from sasdevice.constants import SAS_SCHEME
from sasdevice.credentials.payload import SignablePayload, build_resource_uri
from sasdevice.credentials.signing import Signature
from sasdevice.exceptions import CredentialMalformedError
from sasdevice.identity.models import DeviceIdentity

_SAS_TOKEN_RE = re.compile(
    rf"^{SAS_SCHEME} sr=(?P<sr>[^&]+)&se=(?P<se>\d+)&sig=(?P<sig>[^&]+)$"
)


class ConnectionCredential(BaseModel):
    """A complete, time-bounded device credential."""

    model_config = ConfigDict(frozen=True)

    host_name: str
    device_id: str
    resource_uri: str
    expiry: int
    signature: str
    gateway_host: Optional[str] = None

    @property
    def sas_token(self) -> str:
        return f"{SAS_SCHEME} sr={self.resource_uri}&se={self.expiry}&sig={self.signature}"

    def to_connection_string(self) -> str:
        parts = [
            f"HostName={self.host_name}",
            f"DeviceId={self.device_id}",
            f"SharedAccessSignature={self.sas_token}",
        ]
        if self.gateway_host:
            parts.append(f"GatewayHost={self.gateway_host}")
        return ";".join(parts)

    def redacted(self) -> str:
        """Connection string with the signature masked, safe to log."""
        return self.model_copy(update={"signature": "***"}).to_connection_string()

    def __str__(self) -> str:
        return self.to_connection_string()

    @classmethod
    def from_connection_string(cls, text: str) -> "ConnectionCredential":
        """Parse a connection string produced by :meth:`to_connection_string`.

        Raises:
            CredentialMalformedError: If a required field is missing or the
                SAS token is not in ``sr``/``se``/``sig`` form.
        """
        fields: dict[str, str] = {}
        for part in text.split(";"):
            if not part:
                continue
            key, sep, value = part.partition("=")
            if not sep:
                raise CredentialMalformedError(f"Malformed connection string segment: {key!r}")
            fields[key] = value

        missing = [k for k in ("HostName", "DeviceId", "SharedAccessSignature") if not fields.get(k)]
        if missing:
            raise CredentialMalformedError(f"Connection string missing: {', '.join(missing)}")

        match = _SAS_TOKEN_RE.match(fields["SharedAccessSignature"])
        if match is None:
            raise CredentialMalformedError("SharedAccessSignature is not a valid SAS token")

        return cls(
            host_name=fields["HostName"],
            device_id=fields["DeviceId"],
            resource_uri=match.group("sr"),
            expiry=int(match.group("se")),
            signature=match.group("sig"),
            gateway_host=fields.get("GatewayHost") or None,
        )


def assemble_credential(
    identity: DeviceIdentity,
    signature: Signature,
    payload: SignablePayload,
) -> ConnectionCredential:
    """Assemble the connection credential.

    The expiry and resource URI come from ``payload`` so they always match
    what was signed.

    Raises:
        CredentialMalformedError: If a required field is blank or the
            signature/payload do not belong to ``identity``.
    """
    if not identity.device_id.strip() or not identity.hub_endpoint.strip():
        raise CredentialMalformedError("Identity is missing hub endpoint or device id")
    if not signature.value:
        raise CredentialMalformedError("Signature is empty")
    if signature.message != payload.encoded_message:
        raise CredentialMalformedError("Signature was not produced for this payload")
    if payload.resource_uri != build_resource_uri(identity):
        raise CredentialMalformedError("Payload resource URI does not match the identity")

    return ConnectionCredential(
        host_name=identity.hub_endpoint,
        device_id=identity.device_id,
        resource_uri=payload.resource_uri,
        expiry=payload.expiry,
        signature=signature.quoted,
        gateway_host=identity.gateway_endpoint if identity.uses_gateway else None,
    )
