"""
Device Identity

- Identity records resolved from the local identity service
- Key handles only, never key material
"""

from .models import DeviceIdentity, IdentityAuth, IdentityEnvelope, IdentitySpec
from .resolver import IdentityResolver, resolve_identity

__all__ = [
    "DeviceIdentity",
    "IdentityAuth",
    "IdentityEnvelope",
    "IdentitySpec",
    "IdentityResolver",
    "resolve_identity",
]
