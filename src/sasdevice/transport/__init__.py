"""sas-device Transport Layer.

- **local**: one-shot JSON requests to the identity and key services over
  Unix domain sockets.
- **mqtt**: the long-lived hub session opened with the assembled credential.
  Import it from ``sasdevice.transport.mqtt``; it depends on the credentials
  package, which itself uses the local transport.
"""

from .base import Session, SessionState
from .local import LocalServiceClient, LocalServiceError

__all__ = [
    # Base
    "Session",
    "SessionState",
    # Local services
    "LocalServiceClient",
    "LocalServiceError",
]
