"""Front/back double buffer handing values from one writer to many readers."""

from __future__ import annotations

import copy
import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class DoubleBufferChannel(Generic[T]):
    """A writer fills ``back()`` and publishes it with ``publish_swap()``;
    readers take copies of the front buffer with ``read_snapshot()``."""

    def __init__(self, factory: Callable[[], T]) -> None:
        self._lock = threading.Lock()
        self._front = factory()
        self._back = factory()
        self._publish_count = 0

    def back(self) -> T:
        """The buffer the writer fills next."""
        return self._back

    def front(self) -> T:
        """The most recently published buffer (not a copy)."""
        return self._front

    def publish_swap(self) -> None:
        """Make the back buffer the front one."""
        with self._lock:
            self._front, self._back = self._back, self._front
            self._publish_count += 1

    def read_snapshot(self) -> T:
        """A copy of the front buffer."""
        with self._lock:
            return copy.deepcopy(self._front)

    def publish_count(self) -> int:
        """How many times the buffers have been swapped."""
        with self._lock:
            return self._publish_count