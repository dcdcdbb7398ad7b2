"""
Stream Module
=============

Buffering and fan-out between producers, the engine and subscribers.

This module provides:
    - BoundedBuffer: Async-safe bounded queue (drops oldest on overflow)
    - EventBroadcaster: Output sink delivering events to every subscriber

Example:
    from crowd_whisper.stream import BoundedBuffer, EventBroadcaster

    buffer = BoundedBuffer(maxsize=1000, name="ingest")
    broadcaster = EventBroadcaster(queue_size=256)
"""

from crowd_whisper.stream.buffer import BoundedBuffer
from crowd_whisper.stream.broadcaster import EventBroadcaster


__all__ = [
    "BoundedBuffer",
    "EventBroadcaster",
]
