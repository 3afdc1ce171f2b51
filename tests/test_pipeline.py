"""End-to-end tests for the device pipeline with faked local services."""

import asyncio
import base64
import copy
import random
from unittest.mock import AsyncMock, patch

import pytest

from sasdevice.config import DeviceSettings
from sasdevice.credentials.signing import SigningClient
from sasdevice.exceptions import (
    IdentityUnavailableError,
    OperationCancelledError,
    SessionOpenFailedError,
    SigningUnavailableError,
)
from sasdevice.identity.resolver import IdentityResolver
from sasdevice.pipeline import EXIT_FAILURE, EXIT_OK, DevicePipeline, run_device
from sasdevice.telemetry import ThermostatSample

from conftest import IDENTITY_RESPONSE, FakeSession, identity_client, key_client, make_transport

EXPECTED = (
    "HostName=hub.example.net;DeviceId=sensor-1;"
    "SharedAccessSignature=SharedAccessSignature "
    "sr=hub.example.net%2Fdevices%2Fsensor-1&se=1700000000&sig=abc123"
)


class _Harness:
    """Pipeline wired to mock transports and fake sessions."""

    def __init__(
        self,
        cancel,
        identity_body=IDENTITY_RESPONSE,
        identity_status=200,
        sign_body=None,
        identity_delay=0.0,
        sign_delay=0.0,
        producer=None,
        **session_kwargs,
    ):
        self.identity_requests: list = []
        self.key_requests: list = []
        self.sessions: list[FakeSession] = []
        resolver = IdentityResolver(
            identity_client(
                make_transport(
                    identity_body,
                    status=identity_status,
                    requests=self.identity_requests,
                    delay=identity_delay,
                )
            )
        )
        signer = SigningClient(
            key_client(
                make_transport(
                    {"signature": "abc123"} if sign_body is None else sign_body,
                    requests=self.key_requests,
                    delay=sign_delay,
                )
            )
        )
        self.pipeline = DevicePipeline(
            DeviceSettings(),
            cancel,
            resolver=resolver,
            signer=signer,
            session_factory=self._build_session,
            producer=producer or ThermostatSample(0.01, rng=random.Random(0)),
            expiry=1700000000,
        )
        self._session_kwargs = session_kwargs

    def _build_session(self, text):
        session = FakeSession(text, **self._session_kwargs)
        self.sessions.append(session)
        return session


class _NoopProducer:
    async def run(self, session, cancel):
        return None


class TestDevicePipeline:
    """Tests for DevicePipeline.run."""

    @pytest.mark.asyncio
    async def test_end_to_end(self, cancel):
        h = _Harness(cancel)
        asyncio.get_running_loop().call_later(0.05, cancel.trigger)

        await asyncio.wait_for(h.pipeline.run(), timeout=1.0)

        assert len(h.identity_requests) == 1
        assert len(h.key_requests) == 1
        message = h.key_requests[0]["json"]["parameters"]["message"]
        assert base64.b64decode(message) == b"hub.example.net%2Fdevices%2Fsensor-1\n1700000000"
        assert h.sessions[0].connection_string == EXPECTED
        assert h.sessions[0].sent
        assert h.pipeline.lifecycle.state.value == "closed"

    @pytest.mark.asyncio
    async def test_gateway_in_connection_string(self, cancel):
        body = copy.deepcopy(IDENTITY_RESPONSE)
        body["spec"]["gatewayHost"] = "edge-gw.local"
        h = _Harness(cancel, identity_body=body)
        asyncio.get_running_loop().call_later(0.03, cancel.trigger)

        await asyncio.wait_for(h.pipeline.run(), timeout=1.0)

        assert h.sessions[0].connection_string == EXPECTED + ";GatewayHost=edge-gw.local"

    @pytest.mark.asyncio
    async def test_waits_for_cancel_after_session(self, cancel):
        """The run only ends once the token fires, even if telemetry stops early."""
        h = _Harness(cancel, producer=_NoopProducer())
        task = asyncio.create_task(h.pipeline.run())

        await asyncio.sleep(0.05)
        assert not task.done()
        assert h.sessions[0].calls == ["connect", "disconnect"]

        cancel.trigger()
        await asyncio.wait_for(task, timeout=1.0)

    @pytest.mark.asyncio
    async def test_identity_failure_stops_pipeline(self, cancel):
        h = _Harness(cancel, identity_body={}, identity_status=503)

        with pytest.raises(IdentityUnavailableError):
            await h.pipeline.run()
        assert h.key_requests == []
        assert h.sessions == []

    @pytest.mark.asyncio
    async def test_empty_signature_never_reaches_session(self, cancel):
        h = _Harness(cancel, sign_body={"signature": ""})

        with pytest.raises(SigningUnavailableError):
            await h.pipeline.run()
        assert h.sessions == []

    @pytest.mark.asyncio
    async def test_open_failure(self, cancel):
        h = _Harness(cancel, connect_error=ConnectionError("Not authorized"))

        with pytest.raises(SessionOpenFailedError):
            await h.pipeline.run()

    @pytest.mark.asyncio
    async def test_cancel_during_identity_call(self, cancel):
        """No signing request and no session once the identity fetch is cancelled."""
        h = _Harness(cancel, identity_delay=30)
        asyncio.get_running_loop().call_later(0.02, cancel.trigger)

        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(h.pipeline.run(), timeout=1.0)

        assert len(h.identity_requests) == 1
        assert h.key_requests == []
        assert h.sessions == []

    @pytest.mark.asyncio
    async def test_cancel_during_signing_call(self, cancel):
        h = _Harness(cancel, sign_delay=30)
        asyncio.get_running_loop().call_later(0.02, cancel.trigger)

        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(h.pipeline.run(), timeout=1.0)

        assert len(h.key_requests) == 1
        assert h.sessions == []

    @pytest.mark.asyncio
    async def test_cancel_during_identity_call_exits_cleanly(self, cancel):
        h = _Harness(cancel, identity_delay=30)
        asyncio.get_running_loop().call_later(0.02, cancel.trigger)

        with patch("sasdevice.pipeline.DevicePipeline", return_value=h.pipeline):
            code = await asyncio.wait_for(
                run_device(DeviceSettings(), cancel, install_signals=False), timeout=1.0
            )
        assert code == EXIT_OK
        assert h.sessions == []

    @pytest.mark.asyncio
    async def test_cancel_between_stages(self, cancel):
        h = _Harness(cancel)
        identity = await h.pipeline.resolve_identity()
        cancel.trigger()

        with pytest.raises(OperationCancelledError):
            await h.pipeline.build_credential(identity)
        assert h.key_requests == []

    @pytest.mark.asyncio
    async def test_expiry_fixed_once(self, cancel):
        h = _Harness(cancel)
        identity = await h.pipeline.resolve_identity()

        first = await h.pipeline.build_credential(identity)
        second = await h.pipeline.build_credential(identity)
        assert first.expiry == second.expiry == 1700000000

    def test_default_expiry_uses_ttl(self, cancel):
        with patch("sasdevice.credentials.payload.time.time", return_value=1000.0):
            pipeline = DevicePipeline(DeviceSettings(token_ttl_seconds=60), cancel)
        assert pipeline.expiry == 1060


class TestRunDevice:
    """Tests for the process-boundary exit codes."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome, code",
        [
            (None, EXIT_OK),
            (OperationCancelledError("Cancelled: SIGTERM"), EXIT_OK),
            (IdentityUnavailableError("down"), EXIT_FAILURE),
            (SigningUnavailableError("empty"), EXIT_FAILURE),
            (SessionOpenFailedError("refused"), EXIT_FAILURE),
        ],
    )
    async def test_exit_codes(self, cancel, outcome, code):
        with patch("sasdevice.pipeline.DevicePipeline") as pipeline_cls:
            pipeline_cls.return_value.run = AsyncMock(side_effect=outcome)
            result = await run_device(DeviceSettings(), cancel, install_signals=False)
        assert result == code

    @pytest.mark.asyncio
    async def test_programming_errors_propagate(self, cancel):
        with patch("sasdevice.pipeline.DevicePipeline") as pipeline_cls:
            pipeline_cls.return_value.run = AsyncMock(side_effect=TypeError("bug"))
            with pytest.raises(TypeError):
                await run_device(DeviceSettings(), cancel, install_signals=False)

    @pytest.mark.asyncio
    async def test_installs_signal_handlers(self, cancel):
        with patch("sasdevice.pipeline.DevicePipeline") as pipeline_cls, \
                patch.object(cancel, "install_signal_handlers") as install:
            pipeline_cls.return_value.run = AsyncMock()
            await run_device(DeviceSettings(), cancel)
        install.assert_called_once()
