# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""MQTT session to the hub, authenticated with a shared access signature.

Built from a device connection string. The SAS token is the MQTT password;
the username carries the hub api version and the Plug and Play model id.
paho-mqtt runs its network loop on a background thread, and results are
handed back to the event loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional
from urllib.parse import quote

import paho.mqtt.client as mqtt

from sasdevice.config import DeviceSettings
from sasdevice.constants import TELEMETRY_TOPIC_TEMPLATE
from sasdevice.credentials.assembler import ConnectionCredential
from sasdevice.transport.base import Session

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 60
MESSAGE_PROPERTIES = "$.ct=application%2Fjson&$.ce=utf-8"


class MqttSession(Session):
    """Hub session over MQTT (v3.1.1) with TLS.

    Args:
        credential: Parsed connection credential.
        settings: Device settings (port, api version, model id, timeouts).
        client: Optional pre-built paho client (tests pass a mock).
    """

    def __init__(
        self,
        credential: ConnectionCredential,
        settings: Optional[DeviceSettings] = None,
        client: Optional[mqtt.Client] = None,
    ) -> None:
        super().__init__()
        self.credential = credential
        self.settings = settings or DeviceSettings()
        self.host = credential.gateway_host or credential.host_name
        self.port = self.settings.mqtt_port
        self.topic = (
            TELEMETRY_TOPIC_TEMPLATE.format(device_id=credential.device_id)
            + MESSAGE_PROPERTIES
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connect_future: Optional[asyncio.Future[None]] = None
        self._client = client or self._make_client()

    @classmethod
    def from_connection_string(
        cls, text: str, settings: Optional[DeviceSettings] = None
    ) -> "MqttSession":
        """Build a session from a device connection string."""
        return cls(ConnectionCredential.from_connection_string(text), settings)

    @property
    def username(self) -> str:
        return (
            f"{self.credential.host_name}/{self.credential.device_id}/"
            f"?api-version={self.settings.hub_api_version}"
            f"&model-id={quote(self.settings.model_id, safe='')}"
        )

    def _make_client(self) -> mqtt.Client:
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.credential.device_id,
            protocol=mqtt.MQTTv311,
        )
        client.username_pw_set(self.username, self.credential.sas_token)
        client.tls_set()
        return client

    # -- Connection lifecycle --------------------------------------------------

    async def connect(self) -> None:
        """Connect to the hub (or gateway) and wait for CONNACK."""
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._connect_future = loop.create_future()
        self._client.on_connect = self._on_connect
        self._client.on_connect_fail = self._on_connect_fail
        self._client.on_disconnect = self._on_disconnect

        # The socket is opened on paho's network thread, so an abort below
        # can always stop it
        self._client.connect_async(self.host, self.port, KEEPALIVE_SECONDS)
        self._client.loop_start()
        try:
            await asyncio.wait_for(
                self._connect_future, timeout=self.settings.request_timeout_seconds
            )
        except asyncio.TimeoutError:
            await self._abort_connect()
            raise ConnectionError(f"No CONNACK from {self.host} within timeout")
        except (ConnectionError, asyncio.CancelledError):
            await self._abort_connect()
            raise

        self._connected = True
        logger.info("MQTT session open to %s:%d as %s", self.host, self.port, self.credential.device_id)

    async def _abort_connect(self) -> None:
        # Stop the network thread first; a socket it opened in the meantime
        # is then closed by the DISCONNECT written from this side.
        await asyncio.to_thread(self._client.loop_stop)
        self._client.disconnect()
        logger.debug("Aborted connection attempt to %s:%d", self.host, self.port)

    async def disconnect(self) -> None:
        """Send DISCONNECT and stop the network thread."""
        self._connected = False
        self._client.disconnect()
        await asyncio.to_thread(self._client.loop_stop)
        logger.info("MQTT session to %s closed", self.host)

    # -- Send ------------------------------------------------------------------

    async def send(self, payload: dict[str, Any]) -> None:
        """Publish ``payload`` as JSON with QoS 1 and wait for PUBACK."""
        if not self.is_connected:
            raise ConnectionError("MQTT session is not connected")
        info = self._client.publish(self.topic, json.dumps(payload), qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise ConnectionError(f"Publish failed: {mqtt.error_string(info.rc)}")
        await asyncio.to_thread(
            info.wait_for_publish, self.settings.request_timeout_seconds
        )
        if not info.is_published():
            raise ConnectionError("Publish was not acknowledged within timeout")

    # -- paho callbacks (network thread) ---------------------------------------

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        error = None
        if reason_code.is_failure:
            error = ConnectionError(f"Hub refused connection: {reason_code}")
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._resolve_connect, error)

    def _on_connect_fail(self, client, userdata) -> None:
        error = ConnectionError(f"Failed to connect to {self.host}:{self.port}")
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._resolve_connect, error)

    def _resolve_connect(self, error: Optional[Exception]) -> None:
        future = self._connect_future
        if future is None or future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(None)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        if self._connected:
            logger.warning("MQTT session dropped: %s", reason_code)
        self._connected = False


__all__ = [
    "MqttSession",
]
