# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
Cancellation Token

One token is created at process start and passed explicitly into every
call that can suspend. Any number of triggers (SIGINT, SIGTERM, tests)
may fire it; the first trigger wins and the token never resets.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable, Optional, TypeVar

from sasdevice.exceptions import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """Process-wide cooperative cancellation signal.

    Example:
        >>> token = CancellationToken()
        >>> token.trigger("test")
        >>> token.is_triggered
        True
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def is_triggered(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        """Reason given by the first trigger, or None if not triggered."""
        return self._reason

    def trigger(self, reason: str = "requested") -> None:
        """Fire the token. Later calls are ignored."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.info("Cancellation triggered: %s", reason)

    def raise_if_triggered(self) -> None:
        """Raise OperationCancelledError if the token has fired."""
        if self._event.is_set():
            raise OperationCancelledError(f"Cancelled: {self._reason}")

    async def wait(self) -> None:
        """Suspend until the token fires."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds`` or until the token fires.

        Returns:
            True if the token fired during (or before) the sleep.
        """
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Run ``awaitable`` unless the token fires first.

        When the token wins the race the inner task is cancelled, so the
        guarded call issues no further I/O.

        Raises:
            OperationCancelledError: If the token fired before completion.
        """
        if self._event.is_set():
            # Close a bare coroutine so it does not warn about never being awaited
            close = getattr(awaitable, "close", None)
            if close is not None:
                close()
            raise OperationCancelledError(f"Cancelled: {self._reason}")

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Guarded call failed while being cancelled", exc_info=True)
        raise OperationCancelledError(f"Cancelled: {self._reason}")

    def install_signal_handlers(
        self, loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> None:
        """Trigger the token on SIGINT (interrupt) and SIGTERM (host shutdown).

        Platforms without ``add_signal_handler`` support are skipped with a
        warning; KeyboardInterrupt still ends the process there.
        """
        loop = loop or asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.trigger, sig.name)
            except NotImplementedError:
                logger.warning("Signal handlers not supported; %s not wired", sig.name)
