"""Sliding window of position and sensor samples with chart axis ranges."""

from __future__ import annotations

from collections import deque
from typing import Deque, Tuple

Point = Tuple[int, float]

DEFAULT_WINDOW = 300
_INITIAL_Y_RANGE = (-1.5, 1.5)
_Y_PAD = 0.2


class TelemetryWindow:
    """Keeps the last ``window`` position and sensor points and the axis ranges
    a chart of them should show.

    The x range follows the newest samples; the y range is symmetric about
    zero and only changes when a sample falls outside it.
    """

    def __init__(self, window: int = DEFAULT_WINDOW) -> None:
        if window < 1:
            raise ValueError(f"window must be at least 1, got {window}")
        self._window = window
        self._positions: Deque[Point] = deque(maxlen=window)
        self._sensor: Deque[Point] = deque(maxlen=window)
        self._sample_index = 0
        self._x_range: Tuple[int, int] = (0, window - 1)
        self._y_range: Tuple[float, float] = _INITIAL_Y_RANGE

    @property
    def window(self) -> int:
        return self._window

    @property
    def sample_index(self) -> int:
        """Index the next sample will get."""
        return self._sample_index

    @property
    def position_points(self) -> Tuple[Point, ...]:
        return tuple(self._positions)

    @property
    def sensor_points(self) -> Tuple[Point, ...]:
        return tuple(self._sensor)

    @property
    def x_range(self) -> Tuple[int, int]:
        return self._x_range

    @property
    def y_range(self) -> Tuple[float, float]:
        return self._y_range

    def append_sample(self, position: float, sensor_value: float) -> None:
        """Add one sample, dropping the oldest beyond the window."""
        index = self._sample_index
        self._sample_index += 1
        self._positions.append((index, position))
        self._sensor.append((index, sensor_value))

        min_x = max(0, self._sample_index - self._window)
        self._x_range = (min_x, min_x + self._window - 1)

        y = max(abs(position), abs(sensor_value))
        low, high = self._y_range
        if y > 0 and (y < low or y > high):
            self._y_range = (-y - _Y_PAD, y + _Y_PAD)

    def clear(self) -> None:
        """Drop all samples and reset the x range; the y range is kept."""
        self._positions.clear()
        self._sensor.clear()
        self._sample_index = 0
        self._x_range = (0, self._window - 1)