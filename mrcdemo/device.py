"""Device abstractions and a proportional-control device simulator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List

_PROPORTIONAL_GAIN = 2.0
_SENSOR_NOISE_AMPLITUDE = 0.05
_LCG_MULTIPLIER = 1103515245
_LCG_INCREMENT = 12345
_LCG_MASK = 0xFFFFFFFF


@dataclass
class DeviceSnapshot:
    position: float = 0.0
    velocity: float = 0.0
    sensor_value: float = 0.0
    running: bool = False


class DataAcquisition(ABC):
    """Source of device state snapshots."""

    @abstractmethod
    def latest_snapshot(self) -> DeviceSnapshot:
        """The current state of the device."""


class HardwareControl(ABC):
    """Start/stop and target control of a device."""

    @abstractmethod
    def set_target(self, value: float) -> None:
        """Set the target position or velocity."""

    @abstractmethod
    def start(self) -> None:
        """Start the device."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the device."""


StateListener = Callable[[float, float, float], None]
EventListener = Callable[[], None]


@dataclass
class DeviceSimulator(HardwareControl, DataAcquisition):
    """Moves towards a target with proportional control and reports a noisy sensor.

    Listeners in ``on_state_updated`` receive ``(position, velocity,
    sensor_value)`` after each step; those in ``on_started`` and
    ``on_stopped`` are called when the running state changes.
    """

    on_state_updated: List[StateListener] = field(default_factory=list)
    on_started: List[EventListener] = field(default_factory=list)
    on_stopped: List[EventListener] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._target = 0.0
        self._position = 0.0
        self._velocity = 0.0
        self._sensor_value = 0.0
        self._running = False
        self._rng = 1

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def target_position(self) -> float:
        return self._target

    @property
    def position(self) -> float:
        return self._position

    @property
    def velocity(self) -> float:
        return self._velocity

    @property
    def sensor_value(self) -> float:
        return self._sensor_value

    def set_target(self, value: float) -> None:
        self._target = value

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for listener in list(self.on_started):
            listener()

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for listener in list(self.on_stopped):
            listener()

    def latest_snapshot(self) -> DeviceSnapshot:
        return DeviceSnapshot(self._position, self._velocity, self._sensor_value, self._running)

    def _next_noise(self) -> float:
        self._rng = (self._rng * _LCG_MULTIPLIER + _LCG_INCREMENT) & _LCG_MASK
        return ((self._rng % 65536) / 65536.0 - 0.5) * 2.0 * _SENSOR_NOISE_AMPLITUDE

    def step(self, dt_seconds: float) -> None:
        """Advance the simulation by ``dt_seconds``; ignored while stopped."""
        if not self._running:
            return
        error = self._target - self._position
        self._velocity = _PROPORTIONAL_GAIN * error
        self._position += self._velocity * dt_seconds
        self._sensor_value = self._position + self._next_noise()

        for listener in list(self.on_state_updated):
            listener(self._position, self._velocity, self._sensor_value)