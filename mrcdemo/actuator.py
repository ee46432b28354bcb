"""Control command model and a simple integrating actuator."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass


@dataclass
class ControlCommand:
    based_on_sensor_seq: int = 0
    cmd_value: float = 0.0


@dataclass
class ActuatorState:
    position: float = 0.0
    velocity: float = 0.0


class ActuatorSimulator:
    """Treats the command as a velocity and integrates it into a position."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = ActuatorState()

    def apply(self, cmd: ControlCommand, dt_seconds: float) -> None:
        """Advance the actuator by ``dt_seconds`` under ``cmd``."""
        with self._lock:
            self._state.velocity = cmd.cmd_value
            self._state.position += self._state.velocity * dt_seconds

    def state(self) -> ActuatorState:
        """A copy of the current state."""
        with self._lock:
            return dataclasses.replace(self._state)