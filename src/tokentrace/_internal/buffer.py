# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Thread-safe pending buffer for telemetry awaiting delivery.

Items accumulate until a flush drains them. The drain is a single
lock-protected swap, so two flushes racing on the same buffer never see
the same item and anything added after the swap lands in the next batch.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

T = TypeVar("T")


class PendingBuffer(Generic[T]):
    """Unbounded FIFO buffer with an atomic drain."""

    __slots__ = ("_items", "_lock")

    def __init__(self) -> None:
        self._items: list[T] = []
        self._lock = threading.Lock()

    def add(self, item: T) -> int:
        """Append an item and return the buffer size after the append."""
        with self._lock:
            self._items.append(item)
            return len(self._items)

    def drain(self) -> list[T]:
        """Remove and return ALL items currently in the buffer, oldest first."""
        with self._lock:
            items, self._items = self._items, []
            return items

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"PendingBuffer(size={self.size})"
