# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""Device identity as reported by the local identity service."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class IdentityAuth(BaseModel):
    """Authentication block of an identity spec.

    Only a key handle is ever read; the service never returns key bytes.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    auth_type: Optional[str] = Field(None, alias="type")
    key_handle: str = Field(..., alias="keyHandle", min_length=1)


class IdentitySpec(BaseModel):
    """The ``spec`` object inside the identity service envelope."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    hub_name: str = Field(..., alias="hubName", min_length=1)
    gateway_host: Optional[str] = Field(None, alias="gatewayHost")
    device_id: str = Field(..., alias="deviceId", min_length=1)
    module_id: Optional[str] = Field(None, alias="moduleId")
    auth: IdentityAuth


class IdentityEnvelope(BaseModel):
    """Full response of ``GET /identities/identity``."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    spec: IdentitySpec


class DeviceIdentity(BaseModel):
    """Immutable identity of this device for one process run.

    ``key_handle`` names a key held by the key service; it is not key
    material and is useless without access to that service.
    """

    model_config = ConfigDict(frozen=True)

    device_id: str = Field(..., min_length=1)
    hub_endpoint: str = Field(..., min_length=1)
    gateway_endpoint: str = Field(default="")
    key_handle: str = Field(..., min_length=1, repr=False)

    @model_validator(mode="before")
    @classmethod
    def _default_gateway(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("gateway_endpoint"):
            data = {**data, "gateway_endpoint": data.get("hub_endpoint", "")}
        return data

    @property
    def uses_gateway(self) -> bool:
        """True when traffic goes through a gateway distinct from the hub."""
        return self.gateway_endpoint != self.hub_endpoint

    @classmethod
    def from_spec(cls, spec: IdentitySpec) -> "DeviceIdentity":
        """Build an identity from the service's spec object."""
        return cls(
            device_id=spec.device_id,
            hub_endpoint=spec.hub_name,
            gateway_endpoint=spec.gateway_host or spec.hub_name,
            key_handle=spec.auth.key_handle,
        )
