# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""Abstract session interface for the remote telemetry endpoint.

Defines the contract a session backend (MQTT, or a fake in tests) must
implement so the lifecycle manager can open it, hand it to a telemetry
producer and close it.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    """Lifecycle of the remote session as driven by the lifecycle manager."""

    IDLE = "idle"
    OPENING = "opening"
    OPEN = "open"
    RUNNING = "running"
    CLOSING = "closing"
    CLOSED = "closed"


class Session(ABC):
    """Abstract base class for remote telemetry sessions.

    A session is built from a connection string, opened once, written to by
    exactly one producer and closed once.
    """

    def __init__(self) -> None:
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Whether the session is currently connected."""
        return self._connected

    @abstractmethod
    async def connect(self) -> None:
        """Open the session to the remote endpoint.

        Raises:
            ConnectionError: If the endpoint refuses the connection.
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Gracefully close the session."""

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> None:
        """Send one telemetry message.

        Args:
            payload: Message body as a dictionary.

        Raises:
            ConnectionError: If not connected or the message was not delivered.
        """


__all__ = [
    "Session",
    "SessionState",
]
