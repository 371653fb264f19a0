"""Progress reporting for downloads.

The download side writes percentages into a ``ProgressChannel`` without ever
waiting; a ``ProgressRelay`` task reads the latest value and forwards it to a
``StepUpdateSink`` as a normalized fraction. Slow consumers only see the most
recent value (last value wins).

The relay exits when it sees 100%, when its shutdown signal fires, or when
the channel is closed. Exiting early never cancels the transfer feeding it.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from .interfaces import StepUpdateSink
    from .lifecycle import ShutdownSignal

logger = structlog.get_logger(__name__)

COMPLETE_PERCENT = 100.0
DEFAULT_THROTTLE_SECONDS = 0.01


class ProgressChannel:
    """Single-slot, last-value-wins channel of download percentages.

    ``send`` never blocks. A receiver that calls ``changed`` only observes
    the newest value written since its previous read.
    """

    def __init__(self, initial: float = 0.0) -> None:
        """Initialize the channel.

        Args:
            initial: Value returned by ``borrow`` before any send.
        """
        self._value = initial
        self._version = 0
        self._seen_version = 0
        self._closed = False
        self._event = asyncio.Event()

    def send(self, value: float) -> None:
        """Publish a new percentage, replacing any unread one.

        Sends after ``close`` are ignored.
        """
        if self._closed:
            return
        self._value = value
        self._version += 1
        self._event.set()

    def close(self) -> None:
        """Mark the channel finished; a waiting receiver wakes up."""
        self._closed = True
        self._event.set()

    @property
    def is_closed(self) -> bool:
        """Whether the sending side has finished."""
        return self._closed

    def borrow(self) -> float:
        """Read the latest value and mark it seen."""
        self._seen_version = self._version
        return self._value

    def has_changed(self) -> bool:
        """Whether a value arrived that has not been borrowed yet."""
        return self._version != self._seen_version

    async def changed(self) -> bool:
        """Wait for an unread value.

        Returns:
            True when a new value is available, False when the channel was
            closed with nothing left to read.
        """
        while not self.has_changed():
            if self._closed:
                return False
            self._event.clear()
            await self._event.wait()
        return True


class ProgressRelay:
    """Forwards channel updates to a step sink until done or shut down."""

    def __init__(
        self,
        channel: ProgressChannel,
        sink: StepUpdateSink,
        shutdown_signal: ShutdownSignal,
        binary_name: str,
        throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
    ) -> None:
        """Initialize the relay.

        Args:
            channel: Channel written by the transfer.
            sink: Destination for normalized progress.
            shutdown_signal: Signal that ends the relay early.
            binary_name: Component name for log entries.
            throttle_seconds: Pause after each forwarded update.
        """
        self._channel = channel
        self._sink = sink
        self._shutdown_signal = shutdown_signal
        self._throttle_seconds = throttle_seconds
        self._log = logger.bind(component="progress_relay", binary=binary_name)

    async def _next_update(self) -> bool:
        """Wait for a new value or the shutdown signal, whichever comes first."""
        if self._channel.has_changed():
            return True

        changed = asyncio.ensure_future(self._channel.changed())
        shutdown = asyncio.ensure_future(self._shutdown_signal.wait())
        try:
            await asyncio.wait({changed, shutdown}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (changed, shutdown):
                if not waiter.done():
                    waiter.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await waiter

        if changed.done() and not changed.cancelled():
            return changed.result()
        return False

    async def run(self) -> None:
        """Relay updates until completion, shutdown, or channel close."""
        while True:
            if self._shutdown_signal.is_triggered():
                self._log.info("progress_relay_shutdown")
                return

            if not await self._next_update():
                if self._shutdown_signal.is_triggered():
                    self._log.info("progress_relay_shutdown")
                else:
                    self._log.debug("progress_channel_closed")
                return

            percentage = self._channel.borrow()
            await self._sink.send_update(
                {"progress": str(percentage)},
                normalize_progress(percentage),
            )
            await asyncio.sleep(self._throttle_seconds)

            if percentage >= COMPLETE_PERCENT:
                self._log.info("progress_relay_completed")
                return


def normalize_progress(percentage: float) -> float:
    """Convert a 0-100 percentage into a 0.0-1.0 fraction rounded to 2 places."""
    clamped = min(max(percentage, 0.0), COMPLETE_PERCENT)
    return round(clamped / COMPLETE_PERCENT, 2)
