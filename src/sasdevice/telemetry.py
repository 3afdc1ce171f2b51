# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""Telemetry producers that write to an open session."""

from __future__ import annotations

import logging
import random
from typing import Optional, Protocol

from sasdevice.cancellation import CancellationToken
from sasdevice.constants import DEFAULT_TELEMETRY_INTERVAL_SECONDS
from sasdevice.transport.base import Session

logger = logging.getLogger(__name__)


class TelemetryProducer(Protocol):
    """Anything that sends telemetry on a session until cancelled."""

    async def run(self, session: Session, cancel: CancellationToken) -> None:
        ...


class ThermostatSample:
    """Sends simulated thermostat temperatures at a fixed interval.

    The temperature does a bounded random walk so consecutive readings look
    like a real sensor.

    Args:
        interval_seconds: Delay between messages.
        initial_temperature: Starting reading in degrees Celsius.
        rng: Random generator (seed it in tests).
    """

    MIN_TEMPERATURE = 5.0
    MAX_TEMPERATURE = 45.0

    def __init__(
        self,
        interval_seconds: float = DEFAULT_TELEMETRY_INTERVAL_SECONDS,
        initial_temperature: float = 20.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got: {interval_seconds}")
        self.interval_seconds = interval_seconds
        self.temperature = initial_temperature
        self.messages_sent = 0
        self._rng = rng or random.Random()

    def next_reading(self) -> dict[str, float]:
        step = self._rng.uniform(-0.5, 0.5)
        self.temperature = min(
            self.MAX_TEMPERATURE, max(self.MIN_TEMPERATURE, self.temperature + step)
        )
        return {"temperature": round(self.temperature, 2)}

    async def run(self, session: Session, cancel: CancellationToken) -> None:
        """Send readings until ``cancel`` fires.

        Session errors propagate to the caller.
        """
        while not cancel.is_triggered:
            reading = self.next_reading()
            await cancel.guard(session.send(reading))
            self.messages_sent += 1
            logger.info("Telemetry sent: %s", reading)
            if await cancel.sleep(self.interval_seconds):
                break
        logger.info("Telemetry loop stopped after %d messages", self.messages_sent)
