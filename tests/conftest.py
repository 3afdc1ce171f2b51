"""Shared fixtures: fake local services and a fake hub session."""

import asyncio
import json
from typing import Any, Optional

import httpx
import pytest

from sasdevice.cancellation import CancellationToken
from sasdevice.constants import IDENTITY_HOST, KEY_HOST, LOCAL_API_VERSION
from sasdevice.identity.models import DeviceIdentity
from sasdevice.transport.base import Session
from sasdevice.transport.local import LocalServiceClient


IDENTITY_RESPONSE = {
    "type": "aziot",
    "spec": {
        "hubName": "hub.example.net",
        "gatewayHost": "hub.example.net",
        "deviceId": "sensor-1",
        "auth": {"type": "sas", "keyHandle": "k1"},
    },
}


def make_transport(
    body: Any = None,
    status: int = 200,
    requests: Optional[list] = None,
    delay: float = 0.0,
) -> httpx.MockTransport:
    """MockTransport answering every request with ``body``.

    Each request is recorded as a dict in ``requests`` when given.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(
                {
                    "method": request.method,
                    "host": request.url.host,
                    "path": request.url.path,
                    "params": dict(request.url.params),
                    "json": json.loads(request.content) if request.content else None,
                }
            )
        if delay:
            await asyncio.sleep(delay)
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler)


def identity_client(transport: httpx.AsyncBaseTransport) -> LocalServiceClient:
    return LocalServiceClient(
        socket_path="/tmp/identityd.sock",
        host=IDENTITY_HOST,
        api_version=LOCAL_API_VERSION,
        timeout_seconds=1.0,
        transport=transport,
    )


def key_client(transport: httpx.AsyncBaseTransport) -> LocalServiceClient:
    return LocalServiceClient(
        socket_path="/tmp/keyd.sock",
        host=KEY_HOST,
        api_version=LOCAL_API_VERSION,
        timeout_seconds=1.0,
        transport=transport,
    )


class FakeSession(Session):
    """In-memory session recording every call."""

    def __init__(
        self,
        connection_string: str = "",
        connect_error: Optional[Exception] = None,
        send_error: Optional[Exception] = None,
        disconnect_error: Optional[Exception] = None,
        connect_delay: float = 0.0,
        disconnect_delay: float = 0.0,
    ) -> None:
        super().__init__()
        self.connection_string = connection_string
        self.connect_error = connect_error
        self.send_error = send_error
        self.disconnect_error = disconnect_error
        self.connect_delay = connect_delay
        self.disconnect_delay = disconnect_delay
        self.calls: list[str] = []
        self.sent: list[dict] = []

    async def connect(self) -> None:
        self.calls.append("connect")
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error:
            raise self.connect_error
        self._connected = True

    async def disconnect(self) -> None:
        self.calls.append("disconnect")
        if self.disconnect_delay:
            await asyncio.sleep(self.disconnect_delay)
        self._connected = False
        if self.disconnect_error:
            raise self.disconnect_error

    async def send(self, payload: dict[str, Any]) -> None:
        self.calls.append("send")
        if self.send_error:
            raise self.send_error
        self.sent.append(payload)


@pytest.fixture
def cancel() -> CancellationToken:
    return CancellationToken()


@pytest.fixture
def identity() -> DeviceIdentity:
    return DeviceIdentity(
        device_id="sensor-1",
        hub_endpoint="hub.example.net",
        gateway_endpoint="hub.example.net",
        key_handle="k1",
    )


@pytest.fixture
def gateway_identity() -> DeviceIdentity:
    return DeviceIdentity(
        device_id="sensor-1",
        hub_endpoint="hub.example.net",
        gateway_endpoint="edge-gw.local",
        key_handle="k1",
    )
