# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Connection Lifecycle Manager

Owns the one long-lived hub session: opens it with the assembled
credential, hands it to the telemetry producer until the cancellation
token fires, and always attempts an orderly close.

State machine::

    IDLE -> OPENING -> OPEN -> RUNNING -> CLOSING -> CLOSED
               \\____________________/
                 cancel or error -> CLOSING

A close failure is logged and never replaces the primary outcome.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Union

from sasdevice.cancellation import CancellationToken
from sasdevice.constants import DEFAULT_CLOSE_TIMEOUT_SECONDS
from sasdevice.credentials.assembler import ConnectionCredential
from sasdevice.exceptions import (
    OperationCancelledError,
    SessionOpenFailedError,
    SessionRunFailedError,
)
from sasdevice.telemetry import TelemetryProducer
from sasdevice.transport.base import Session, SessionState

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], Session]


class ConnectionLifecycleManager:
    """Drives one session through open, run and close.

    Args:
        session_factory: Builds a session from a connection string.
        producer: Telemetry producer run while the session is open.
        close_timeout_seconds: Upper bound on waiting for the session to close.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        producer: TelemetryProducer,
        close_timeout_seconds: float = DEFAULT_CLOSE_TIMEOUT_SECONDS,
    ) -> None:
        if close_timeout_seconds <= 0:
            raise ValueError(
                f"close_timeout_seconds must be positive, got: {close_timeout_seconds}"
            )
        self._session_factory = session_factory
        self._producer = producer
        self.close_timeout_seconds = close_timeout_seconds
        self._state = SessionState.IDLE
        self.history: list[SessionState] = [SessionState.IDLE]

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    def _transition(self, state: SessionState) -> None:
        logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        self.history.append(state)

    async def run(
        self,
        credential: Union[ConnectionCredential, str],
        cancel: CancellationToken,
    ) -> None:
        """Open the session, run telemetry until cancelled, then close.

        Returns normally when the producer stops because ``cancel`` fired.

        Raises:
            SessionOpenFailedError: If the session could not be opened.
            SessionRunFailedError: If the producer failed while running.
            OperationCancelledError: If ``cancel`` fired before the session
                was open.
            RuntimeError: If called more than once.
        """
        if self._state is not SessionState.IDLE:
            raise RuntimeError("ConnectionLifecycleManager.run() may only be called once")

        self._transition(SessionState.OPENING)
        session: Optional[Session] = None
        try:
            try:
                session = self._session_factory(str(credential))
                await cancel.guard(session.connect())
            except OperationCancelledError:
                logger.info("Cancelled while opening the session")
                raise
            except Exception as exc:
                raise SessionOpenFailedError(f"Failed to open session: {exc}") from exc

            self._transition(SessionState.OPEN)
            logger.info("Device connection SUCCESS.")

            self._transition(SessionState.RUNNING)
            try:
                await self._producer.run(session, cancel)
            except OperationCancelledError:
                logger.info("Telemetry interrupted by cancellation")
            except Exception as exc:
                raise SessionRunFailedError(f"Telemetry loop failed: {exc}") from exc
        finally:
            await self._close(session)

    async def _close(self, session: Optional[Session]) -> None:
        self._transition(SessionState.CLOSING)
        if session is not None:
            try:
                await asyncio.wait_for(session.disconnect(), timeout=self.close_timeout_seconds)
            except asyncio.TimeoutError:
                logger.error("Session close timed out after %.1fs", self.close_timeout_seconds)
            except Exception:
                logger.exception("Session close failed")
        self._transition(SessionState.CLOSED)
