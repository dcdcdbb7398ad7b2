"""
Stream Tests
============

Bounded buffer overflow policy and event fan-out.
"""

import asyncio
import logging

import pytest

from crowd_whisper.models import DensitySample, OutputEvent
from crowd_whisper.stream import BoundedBuffer, EventBroadcaster


def density_event(value=10.0):
    return OutputEvent(
        event="density_update",
        data=DensitySample(zone_id="main-stage", timestamp=1000.0, value=value),
    )


class TestBoundedBuffer:
    """Drop-oldest queue behaviour."""

    def test_fifo_order(self):
        buffer = BoundedBuffer(maxsize=3)
        for item in (1, 2, 3):
            assert buffer.put_nowait(item) is True

        assert [buffer.get_nowait() for _ in range(3)] == [1, 2, 3]
        assert buffer.get_nowait() is None

    def test_overflow_drops_oldest(self):
        buffer = BoundedBuffer(maxsize=2)
        buffer.put_nowait("a")
        buffer.put_nowait("b")

        assert buffer.put_nowait("c") is False
        assert buffer.dropped_count == 1
        assert buffer.total_put == 3
        assert [buffer.get_nowait(), buffer.get_nowait()] == ["b", "c"]

    def test_drop_warnings_are_rate_limited(self, caplog):
        buffer = BoundedBuffer(maxsize=1, name="subscriber", log_every_n_drops=100)
        buffer.put_nowait(0)

        with caplog.at_level(logging.DEBUG, logger="crowd_whisper.stream.buffer"):
            for item in range(1, 251):
                buffer.put_nowait(item)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert buffer.dropped_count == 250
        assert [r.getMessage().rsplit(" ", 1)[-1] for r in warnings] == ["1", "100", "200"]

    def test_get_timeout_returns_none(self):
        buffer = BoundedBuffer(maxsize=1)
        assert asyncio.run(buffer.get(timeout=0.01)) is None

    def test_async_get(self):
        async def scenario():
            buffer = BoundedBuffer(maxsize=1)
            await buffer.put("x")
            return await buffer.get(timeout=1.0)

        assert asyncio.run(scenario()) == "x"

    def test_clear_and_metrics(self):
        buffer = BoundedBuffer(maxsize=5, name="test")
        for item in range(4):
            buffer.put_nowait(item)

        assert buffer.clear() == 4
        assert buffer.metrics() == {"size": 0, "maxsize": 5, "dropped_count": 0, "total_put": 4}

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            BoundedBuffer(maxsize=0)


class TestEventBroadcaster:
    """Fan-out to subscribers."""

    def test_every_subscriber_receives_event(self):
        broadcaster = EventBroadcaster()
        first, second = broadcaster.subscribe(), broadcaster.subscribe()
        event = density_event()

        assert broadcaster.publish(event) == 2
        assert first.get_nowait() is event
        assert second.get_nowait() is event

    def test_unsubscribed_buffer_receives_nothing(self):
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe()
        broadcaster.unsubscribe(subscription)
        broadcaster.unsubscribe(subscription)

        assert broadcaster.publish(density_event()) == 0
        assert subscription.get_nowait() is None
        assert broadcaster.subscriber_count == 0

    def test_slow_subscriber_loses_only_its_oldest(self):
        broadcaster = EventBroadcaster(queue_size=2)
        slow = broadcaster.subscribe()
        for value in (1.0, 2.0, 3.0):
            broadcaster.publish(density_event(value))

        assert [slow.get_nowait().data.value, slow.get_nowait().data.value] == [2.0, 3.0]
        assert broadcaster.metrics() == {"subscribers": 1, "published": 3, "dropped": 1}
