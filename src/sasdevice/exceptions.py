# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""Centralized exception hierarchy for sas-device.

All sas-device exceptions inherit from SasDeviceError, so the process
boundary can tell pipeline failures apart from programming errors.
None of them are retried inside the pipeline.
"""


class SasDeviceError(Exception):
    """Base exception for all sas-device errors."""


class IdentityUnavailableError(SasDeviceError):
    """The identity service is unreachable or returned malformed data."""


class SigningUnavailableError(SasDeviceError):
    """The key service is unreachable, failed, or returned no signature."""


class CredentialMalformedError(SasDeviceError):
    """A credential could not be built from the given identity and signature."""


class SessionError(SasDeviceError):
    """Errors related to the remote telemetry session."""


class SessionOpenFailedError(SessionError):
    """The hub rejected the credential or the session could not be opened."""


class SessionRunFailedError(SessionError):
    """The telemetry loop failed while the session was open."""


class OperationCancelledError(SasDeviceError):
    """The cancellation token fired while a stage was suspended.

    This is a shutdown request, not a failure: the process boundary treats
    it as a clean exit.
    """


__all__ = [
    "SasDeviceError",
    "IdentityUnavailableError",
    "SigningUnavailableError",
    "CredentialMalformedError",
    "SessionError",
    "SessionOpenFailedError",
    "SessionRunFailedError",
    "OperationCancelledError",
]
