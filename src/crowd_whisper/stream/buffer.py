"""
Bounded Buffer
==============

Async-safe bounded queue used between producers and consumers.

This module provides the BoundedBuffer class, which sits between:
    - reading producers (websocket clients, the crowd simulator) and the
      engine's processing loop
    - the output broadcaster and each subscriber

Design Rules:
    - Fixed maximum size (drops oldest on overflow)
    - Async-safe for producer/consumer pattern on one event loop
    - Exposes minimal metrics for observability
    - Does NOT process or modify items
"""

import asyncio
import logging
from typing import Generic, Optional, TypeVar


logger = logging.getLogger(__name__)


T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """
    Async-safe bounded queue.

    Uses a drop-oldest policy when the buffer is full so that a producer
    outpacing the consumer never grows memory without bound.

    Attributes:
        maxsize: Maximum number of items to buffer
        dropped_count: Number of items dropped due to overflow
        name: Label used in log messages

    Example:
        buffer = BoundedBuffer(maxsize=1000, name="ingest")

        # Producer
        buffer.put_nowait(reading)

        # Consumer
        reading = await buffer.get(timeout=1.0)
    """

    def __init__(
        self,
        maxsize: int = 1000,
        name: str = "buffer",
        log_every_n_drops: int = 100,
    ) -> None:
        """
        Initialize buffer.

        Args:
            maxsize: Maximum items to buffer. Must be >= 1.
            name: Label used in log messages
            log_every_n_drops: Warn on the first drop and every N drops
                after it; other drops are logged at DEBUG
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        if log_every_n_drops < 1:
            raise ValueError("log_every_n_drops must be >= 1")

        self._maxsize = maxsize
        self.name = name
        self.log_every_n_drops = log_every_n_drops
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._dropped_count: int = 0
        self._total_put: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def size(self) -> int:
        """Current number of items in buffer."""
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Number of items dropped due to overflow."""
        return self._dropped_count

    @property
    def total_put(self) -> int:
        """Total items ever put into buffer."""
        return self._total_put

    def put_nowait(self, item: T) -> bool:
        """
        Add item to buffer, dropping oldest if full.

        Args:
            item: Item to add

        Returns:
            True if the item was added without dropping,
            False if the oldest item was dropped to make room.
        """
        self._total_put += 1
        dropped = False

        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped_count += 1
                dropped = True
                self._log_drop()
            except asyncio.QueueEmpty:
                pass

        self._queue.put_nowait(item)
        return not dropped

    def _log_drop(self) -> None:
        message = (
            f"{self.name} buffer full, dropped oldest item. "
            f"Total dropped: {self._dropped_count}"
        )
        if self._dropped_count == 1 or self._dropped_count % self.log_every_n_drops == 0:
            logger.warning(message)
        else:
            logger.debug(message)

    async def put(self, item: T) -> bool:
        """Async alias of put_nowait (never blocks)."""
        return self.put_nowait(item)

    async def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Get next item from buffer.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Next item, or None if timeout occurred.
        """
        try:
            if timeout is not None:
                return await asyncio.wait_for(
                    self._queue.get(),
                    timeout=timeout
                )
            else:
                return await self._queue.get()
        except asyncio.TimeoutError:
            return None

    def get_nowait(self) -> Optional[T]:
        """
        Get next item without waiting.

        Returns:
            Next item if available, None otherwise.
        """
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def clear(self) -> int:
        """
        Clear all items from buffer.

        Returns:
            Number of items cleared.
        """
        cleared = 0
        while True:
            try:
                self._queue.get_nowait()
                cleared += 1
            except asyncio.QueueEmpty:
                break
        return cleared

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, dropped_count, total_put
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "dropped_count": self._dropped_count,
            "total_put": self._total_put,
        }
