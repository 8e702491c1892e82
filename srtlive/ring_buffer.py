"""A growable, thread-safe circular byte buffer."""

from __future__ import annotations

import threading

DEFAULT_MAX_DATA_SIZE = 4096


class RingBuffer:
    """FIFO byte queue on a circular buffer that grows when a write won't fit."""

    def __init__(self, size: int = DEFAULT_MAX_DATA_SIZE) -> None:
        if size <= 0:
            raise ValueError("size must be positive")
        self._lock = threading.Lock()
        self._reset(size)

    def _reset(self, size: int) -> None:
        self._data = bytearray(size)
        self._write_pos = 0
        self._read_pos = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        """Current size of the underlying storage."""
        return len(self._data)

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def resize(self, n: int) -> None:
        """Replace the storage with ``n`` bytes, discarding buffered data."""
        if n <= 0:
            raise ValueError("size must be positive")
        with self._lock:
            self._reset(n)

    def clear(self) -> None:
        """Discard buffered data, keeping the storage."""
        with self._lock:
            self._write_pos = 0
            self._read_pos = 0
            self._count = 0

    def put(self, data: bytes) -> int:
        """Append ``data``, growing the storage if needed; return its length."""
        length = len(data)
        if length == 0:
            raise ValueError("cannot put empty data")
        with self._lock:
            capacity = len(self._data)
            if length > capacity - self._count:
                new_size = capacity + max(DEFAULT_MAX_DATA_SIZE, length)
                pending = self._take(self._count)
                grown = bytearray(new_size)
                grown[: len(pending)] = pending
                grown[len(pending): len(pending) + length] = data
                self._data = grown
                self._read_pos = 0
                self._count = len(pending) + length
                self._write_pos = self._count % new_size
                return length

            first = min(length, capacity - self._write_pos)
            self._data[self._write_pos: self._write_pos + first] = data[:first]
            rest = length - first
            if rest:
                self._data[:rest] = data[first:]
                self._write_pos = rest
            else:
                self._write_pos += first
            if self._write_pos == capacity:
                self._write_pos = 0
            self._count += length
            return length

    def get(self, size: int) -> bytes:
        """Remove and return up to ``size`` bytes from the front."""
        if size < 0:
            raise ValueError("size must not be negative")
        with self._lock:
            return self._take(size)

    def _take(self, size: int) -> bytes:
        n = min(size, self._count)
        if n == 0:
            return b""
        capacity = len(self._data)
        first = min(n, capacity - self._read_pos)
        out = bytes(self._data[self._read_pos: self._read_pos + first])
        rest = n - first
        if rest:
            out += bytes(self._data[:rest])
            self._read_pos = rest
        else:
            self._read_pos += first
        if self._read_pos >= capacity:
            self._read_pos = 0
        self._count -= n
        return out