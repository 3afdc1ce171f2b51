"""
Shared Access Signature Credentials

- Canonical payload with a fixed expiry
- Signing delegated to the local key service
- Connection string assembly
"""

from .payload import (
    SignablePayload,
    build_resource_uri,
    build_signable_payload,
    compute_expiry,
)
from .signing import Signature, SigningClient, build_sign_request, sign
from .assembler import ConnectionCredential, assemble_credential

__all__ = [
    "SignablePayload",
    "build_resource_uri",
    "build_signable_payload",
    "compute_expiry",
    "Signature",
    "SigningClient",
    "build_sign_request",
    "sign",
    "ConnectionCredential",
    "assemble_credential",
]
