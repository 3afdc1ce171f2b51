"""
sas-device - Delegated SAS authentication for hub-connected devices

Identity · Signing · Credential · Session

Derives a short-lived shared access signature through the local identity
and key services, so the device key never leaves the key service, then
holds one telemetry session to the hub open until shutdown.

Version: 0.1.0
"""

__version__ = "0.1.0"

from .cancellation import CancellationToken
from .config import DeviceSettings

# Stage 1: Identity
from .identity import DeviceIdentity, IdentityResolver, resolve_identity

# Stages 2-4: Credentials
from .credentials import (
    ConnectionCredential,
    Signature,
    SignablePayload,
    SigningClient,
    assemble_credential,
    build_signable_payload,
    compute_expiry,
    sign,
)

# Stage 5: Session lifecycle
from .lifecycle import ConnectionLifecycleManager
from .transport import Session, SessionState
from .pipeline import DevicePipeline, run_device

# Exceptions
from .exceptions import (
    SasDeviceError,
    IdentityUnavailableError,
    SigningUnavailableError,
    CredentialMalformedError,
    SessionError,
    SessionOpenFailedError,
    SessionRunFailedError,
    OperationCancelledError,
)

__all__ = [
    # Version
    "__version__",

    # Core
    "CancellationToken",
    "DeviceSettings",

    # Identity
    "DeviceIdentity",
    "IdentityResolver",
    "resolve_identity",

    # Credentials
    "ConnectionCredential",
    "Signature",
    "SignablePayload",
    "SigningClient",
    "assemble_credential",
    "build_signable_payload",
    "compute_expiry",
    "sign",

    # Session
    "ConnectionLifecycleManager",
    "Session",
    "SessionState",
    "DevicePipeline",
    "run_device",

    # Exceptions
    "SasDeviceError",
    "IdentityUnavailableError",
    "SigningUnavailableError",
    "CredentialMalformedError",
    "SessionError",
    "SessionOpenFailedError",
    "SessionRunFailedError",
    "OperationCancelledError",
]
