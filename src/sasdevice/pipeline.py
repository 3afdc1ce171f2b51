# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Device Pipeline

Runs the five stages strictly in order with one cancellation token:

1. resolve the device identity
2. build the signable payload (expiry fixed once per run)
3. sign it through the key service
4. assemble the connection credential
5. hold the hub session open until cancelled

then waits for the token before returning, so the process only exits on
an interrupt or host shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sasdevice.cancellation import CancellationToken
from sasdevice.config import DeviceSettings
from sasdevice.credentials.assembler import ConnectionCredential, assemble_credential
from sasdevice.credentials.payload import build_signable_payload, compute_expiry
from sasdevice.credentials.signing import SigningClient
from sasdevice.exceptions import OperationCancelledError, SasDeviceError
from sasdevice.identity.models import DeviceIdentity
from sasdevice.identity.resolver import IdentityResolver
from sasdevice.lifecycle import ConnectionLifecycleManager, SessionFactory
from sasdevice.telemetry import TelemetryProducer, ThermostatSample
from sasdevice.transport.mqtt import MqttSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


class DevicePipeline:
    """The credential pipeline plus the session lifecycle for one device.

    Collaborators default to the real services; tests inject fakes.

    Args:
        settings: Device settings.
        cancel: The process-wide cancellation token.
        resolver: Identity resolver.
        signer: Signing client.
        session_factory: Builds the hub session from a connection string.
        producer: Telemetry producer.
        expiry: Token expiry; computed from ``settings.token_ttl_seconds``
            when omitted.
    """

    def __init__(
        self,
        settings: DeviceSettings,
        cancel: CancellationToken,
        resolver: Optional[IdentityResolver] = None,
        signer: Optional[SigningClient] = None,
        session_factory: Optional[SessionFactory] = None,
        producer: Optional[TelemetryProducer] = None,
        expiry: Optional[int] = None,
    ) -> None:
        self.settings = settings
        self.cancel = cancel
        self.resolver = resolver or IdentityResolver.from_settings(settings)
        self.signer = signer or SigningClient.from_settings(settings)
        self.session_factory = session_factory or (
            lambda text: MqttSession.from_connection_string(text, settings)
        )
        self.producer = producer or ThermostatSample(settings.telemetry_interval_seconds)
        # Fixed once for the whole run; both the payload and the credential use it
        self.expiry = expiry if expiry is not None else compute_expiry(
            ttl_seconds=settings.token_ttl_seconds
        )
        self.lifecycle = ConnectionLifecycleManager(
            self.session_factory,
            self.producer,
            close_timeout_seconds=settings.close_timeout_seconds,
        )

    async def resolve_identity(self) -> DeviceIdentity:
        return await self.resolver.resolve(self.cancel)

    async def build_credential(self, identity: DeviceIdentity) -> ConnectionCredential:
        """Stages 2-4: payload, signature, credential."""
        payload = build_signable_payload(identity, self.expiry)
        logger.debug("Signature data: %s", payload.encoded_message)
        self.cancel.raise_if_triggered()
        signature = await self.signer.sign(identity, payload, self.cancel)
        credential = assemble_credential(identity, signature, payload)
        logger.info("Using connection string: %s", credential.redacted())
        return credential

    async def run(self) -> None:
        """Run all stages, then wait until cancelled.

        Raises:
            SasDeviceError: Any pipeline failure, including
                OperationCancelledError when cancelled before the session
                was open.
        """
        identity = await self.resolve_identity()
        credential = await self.build_credential(identity)
        await self.lifecycle.run(credential, self.cancel)
        await self.cancel.wait()


async def run_device(
    settings: DeviceSettings,
    cancel: Optional[CancellationToken] = None,
    install_signals: bool = True,
) -> int:
    """Process boundary: run the pipeline and map the outcome to an exit code.

    Cancellation is a clean shutdown (exit 0); any other pipeline error is
    logged and exits 1. Nothing is retried.
    """
    cancel = cancel or CancellationToken()
    if install_signals:
        cancel.install_signal_handlers(asyncio.get_running_loop())

    pipeline = DevicePipeline(settings, cancel)
    try:
        await pipeline.run()
    except OperationCancelledError:
        logger.info("Shutdown requested (%s)", cancel.reason)
        return EXIT_OK
    except SasDeviceError as exc:
        logger.error("Device agent failed: %s", exc)
        return EXIT_FAILURE
    logger.info("Shutdown complete (%s)", cancel.reason)
    return EXIT_OK
