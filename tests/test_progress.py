"""Tests for the progress channel and relay."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from binman.lifecycle import ShutdownSignal
from binman.progress import ProgressChannel, ProgressRelay, normalize_progress

if TYPE_CHECKING:
    from conftest import RecordingSink


async def wait_for_updates(sink: RecordingSink, count: int, timeout: float = 1.0) -> None:
    """Poll until the sink has received ``count`` updates."""
    async with asyncio.timeout(timeout):
        while len(sink.updates) < count:
            await asyncio.sleep(0.001)


class TestProgressChannel:
    """Tests for ProgressChannel."""

    @pytest.mark.asyncio
    async def test_last_value_wins(self) -> None:
        """Test a reader only sees the newest value."""
        channel = ProgressChannel()
        for value in (10.0, 20.0, 30.0):
            channel.send(value)

        assert await channel.changed() is True
        assert channel.borrow() == 30.0
        assert channel.has_changed() is False

    @pytest.mark.asyncio
    async def test_changed_wakes_on_send(self) -> None:
        """Test a waiting reader is woken by a send."""
        channel = ProgressChannel()
        waiter = asyncio.create_task(channel.changed())
        await asyncio.sleep(0)
        assert not waiter.done()

        channel.send(5.0)

        assert await asyncio.wait_for(waiter, timeout=1.0) is True
        assert channel.borrow() == 5.0

    @pytest.mark.asyncio
    async def test_close_wakes_reader(self) -> None:
        """Test closing an idle channel ends the wait with False."""
        channel = ProgressChannel()
        waiter = asyncio.create_task(channel.changed())
        await asyncio.sleep(0)

        channel.close()

        assert await asyncio.wait_for(waiter, timeout=1.0) is False

    @pytest.mark.asyncio
    async def test_unread_value_survives_close(self) -> None:
        """Test a value sent before close is still delivered."""
        channel = ProgressChannel()
        channel.send(100.0)
        channel.close()

        assert await channel.changed() is True
        assert channel.borrow() == 100.0
        assert await channel.changed() is False

    def test_send_after_close_is_ignored(self) -> None:
        """Test the closed channel keeps its last value."""
        channel = ProgressChannel()
        channel.send(40.0)
        channel.close()
        channel.send(90.0)

        assert channel.is_closed
        assert channel.borrow() == 40.0

    def test_borrow_initial_value(self) -> None:
        """Test the initial value before any send."""
        channel = ProgressChannel(initial=0.0)
        assert channel.borrow() == 0.0
        assert not channel.has_changed()


class TestNormalizeProgress:
    """Tests for normalize_progress."""

    @pytest.mark.parametrize(
        ("percentage", "expected"),
        [(0.0, 0.0), (42.0, 0.42), (33.333, 0.33), (100.0, 1.0), (150.0, 1.0), (-5.0, 0.0)],
    )
    def test_fraction(self, percentage: float, expected: float) -> None:
        """Test conversion to a rounded 0-1 fraction."""
        assert normalize_progress(percentage) == expected


class TestProgressRelay:
    """Tests for ProgressRelay."""

    @pytest.mark.asyncio
    async def test_stops_at_completion(self, recording_sink: RecordingSink) -> None:
        """Test the relay forwards 100% and exits on its own."""
        channel = ProgressChannel()
        relay = ProgressRelay(channel, recording_sink, ShutdownSignal(), "xmrig", 0)
        channel.send(100.0)

        await asyncio.wait_for(relay.run(), timeout=1.0)

        assert recording_sink.updates == [({"progress": "100.0"}, 1.0)]

    @pytest.mark.asyncio
    async def test_forwards_updates_in_order(self, recording_sink: RecordingSink) -> None:
        """Test intermediate values are forwarded as fractions."""
        channel = ProgressChannel()
        relay = ProgressRelay(channel, recording_sink, ShutdownSignal(), "xmrig", 0)
        task = asyncio.create_task(relay.run())

        channel.send(25.0)
        await wait_for_updates(recording_sink, 1)
        channel.send(100.0)
        await asyncio.wait_for(task, timeout=1.0)

        assert recording_sink.updates == [
            ({"progress": "25.0"}, 0.25),
            ({"progress": "100.0"}, 1.0),
        ]

    @pytest.mark.asyncio
    async def test_exits_when_shutdown_already_triggered(
        self, recording_sink: RecordingSink
    ) -> None:
        """Test a triggered signal stops the relay before any update."""
        channel = ProgressChannel()
        signal = ShutdownSignal()
        signal.trigger()
        channel.send(10.0)

        await asyncio.wait_for(
            ProgressRelay(channel, recording_sink, signal, "xmrig", 0).run(), timeout=1.0
        )

        assert recording_sink.updates == []

    @pytest.mark.asyncio
    async def test_exits_on_shutdown_while_waiting(self, recording_sink: RecordingSink) -> None:
        """Test the relay does not wait for progress once shutdown fires."""
        channel = ProgressChannel()
        signal = ShutdownSignal()
        task = asyncio.create_task(ProgressRelay(channel, recording_sink, signal, "xmrig", 0).run())
        await asyncio.sleep(0.01)

        signal.trigger()

        await asyncio.wait_for(task, timeout=1.0)
        assert recording_sink.updates == []
        # The producer side is unaffected.
        channel.send(50.0)
        assert channel.borrow() == 50.0

    @pytest.mark.asyncio
    async def test_exits_when_channel_closed(self, recording_sink: RecordingSink) -> None:
        """Test a transfer that ends below 100% still releases the relay."""
        channel = ProgressChannel()
        task = asyncio.create_task(
            ProgressRelay(channel, recording_sink, ShutdownSignal(), "xmrig", 0).run()
        )
        channel.send(60.0)
        await wait_for_updates(recording_sink, 1)

        channel.close()

        await asyncio.wait_for(task, timeout=1.0)
        assert recording_sink.updates == [({"progress": "60.0"}, 0.6)]

    @pytest.mark.asyncio
    async def test_producer_never_blocks(self, recording_sink: RecordingSink) -> None:
        """Test many sends complete without a consumer draining them."""
        channel = ProgressChannel()
        for step in range(10_000):
            channel.send(step / 100)

        relay = ProgressRelay(channel, recording_sink, ShutdownSignal(), "xmrig", 0)
        channel.send(100.0)
        await asyncio.wait_for(relay.run(), timeout=1.0)

        assert len(recording_sink.updates) == 1
