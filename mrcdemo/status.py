"""System status model shared between the runtime and its displays."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from enum import IntEnum
from typing import Union


class SystemState(IntEnum):
    STARTING = 0
    RUNNING = 1
    DEGRADED = 2
    STOPPING = 3
    STOPPED = 4


class SafetyState(IntEnum):
    NORMAL = 0
    ESTOP_LATCHED = 1


class AlgoHealthState(IntEnum):
    UNKNOWN = 0
    HEALTHY = 1
    UNHEALTHY = 2
    DISCONNECTED = 3


class ErrorCode(IntEnum):
    OK = 0
    CONFIG_LOAD_FAILED = 1000
    IPC_CONNECT_FAILED = 2000
    HEARTBEAT_TIMEOUT = 2100
    ALGO_CRASHED = 2200
    SAFETY_LIMIT_EXCEEDED = 3000
    MANUAL_ESTOP = 3100


_LABELS = {
    SystemState.STARTING: "Starting",
    SystemState.RUNNING: "Running",
    SystemState.DEGRADED: "Degraded",
    SystemState.STOPPING: "Stopping",
    SystemState.STOPPED: "Stopped",
    SafetyState.NORMAL: "Normal",
    SafetyState.ESTOP_LATCHED: "EStopLatched",
    AlgoHealthState.UNKNOWN: "Unknown",
    AlgoHealthState.HEALTHY: "Healthy",
    AlgoHealthState.UNHEALTHY: "Unhealthy",
    AlgoHealthState.DISCONNECTED: "Disconnected",
}


def to_string(state: Union[SystemState, SafetyState, AlgoHealthState]) -> str:
    """Display label of a system, safety or algorithm-health state."""
    if not isinstance(state, (SystemState, SafetyState, AlgoHealthState)):
        raise TypeError(f"no label for {state!r}")
    return _LABELS.get(state, "Unknown")


@dataclass
class StatusSnapshot:
    system_state: SystemState = SystemState.STARTING
    safety_state: SafetyState = SafetyState.NORMAL
    algo_health: AlgoHealthState = AlgoHealthState.UNKNOWN

    last_error: ErrorCode = ErrorCode.OK
    last_error_message: str = ""

    sensor_rate_hz: float = 0.0
    sensor_seq: int = 0
    sensor_missed_deadlines: int = 0

    control_loop_hz: float = 0.0
    algo_latency_ms: float = 0.0

    last_command: float = 0.0
    actuator_position: float = 0.0
    actuator_velocity: float = 0.0

    heartbeat_rtt_ms: float = 0.0
    heartbeat_timeouts: int = 0
    algo_restarts: int = 0

    estop_reason: str = ""


class StatusStore:
    """Thread-safe holder of the latest status snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = StatusSnapshot()

    def update(self, snapshot: StatusSnapshot) -> None:
        """Replace the stored snapshot with a copy of ``snapshot``."""
        copy = dataclasses.replace(snapshot)
        with self._lock:
            self._snapshot = copy

    def read(self) -> StatusSnapshot:
        """Return a copy of the stored snapshot."""
        with self._lock:
            return dataclasses.replace(self._snapshot)