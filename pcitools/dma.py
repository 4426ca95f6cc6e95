"""A fixed-size ring of entries in a page-aligned buffer suitable for DMA."""

from __future__ import annotations

import mmap


class DmaQueue:
    """A ring of ``capacity`` entries of ``entry_size`` bytes each.

    The backing buffer is an anonymous mapping and therefore page aligned.
    One slot is always left free, so the ring holds ``capacity - 1`` entries.
    """

    def __init__(self, capacity: int, entry_size: int = 8) -> None:
        if capacity <= 0:
            raise ValueError("Capacity must be non-zero")
        if entry_size <= 0:
            raise ValueError("Entry size must be non-zero")
        self.capacity = capacity
        self.entry_size = entry_size
        self._buffer: mmap.mmap | None = mmap.mmap(-1, capacity * entry_size)
        self._head = 0
        self._tail = 0

    @property
    def head(self) -> int:
        return self._head

    @property
    def tail(self) -> int:
        return self._tail

    def is_empty(self) -> bool:
        return self._head == self._tail

    def is_full(self) -> bool:
        return (self._head + 1) % self.capacity == self._tail

    def push(self, value: bytes) -> None:
        """Write one entry at the head and advance it."""
        if self._buffer is None:
            raise ValueError("DmaQueue is closed")
        entry = bytes(value)
        if len(entry) != self.entry_size:
            raise ValueError(
                f"entry must be {self.entry_size} bytes, got {len(entry)}"
            )
        if self.is_full():
            raise OverflowError("queue is full")
        start = self._head * self.entry_size
        self._buffer[start:start + self.entry_size] = entry
        self._head = (self._head + 1) % self.capacity

    def close(self) -> None:
        buffer, self._buffer = self._buffer, None
        if buffer is not None:
            buffer.close()

    def __enter__(self) -> DmaQueue:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()