"""Fixed-rate control loop that turns sensor data and worker output into commands."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from . import log
from .actuator import ActuatorSimulator, ControlCommand
from .protocol import AlgoResult, SensorFrame
from .sensor import SensorSnapshot
from .status import StatusStore

_SENSOR_SEND_TIMEOUT = 0.005
_IDLE_SLEEP = 0.001


@dataclass
class ControlLoopParams:
    """Loop rate in hertz and how long to wait for a worker result, in seconds."""

    rate_hz: int = 200
    algo_read_timeout: float = 0.001


class ControlLoop:
    """Runs once per new sensor sample: forwards it to the worker, picks up
    the latest worker result, drives the actuator and updates the status."""

    def __init__(
        self,
        sensor,
        ipc,
        actuator: ActuatorSimulator,
        status: StatusStore,
        params: Optional[ControlLoopParams] = None,
    ) -> None:
        self._sensor = sensor
        self._ipc = ipc
        self._actuator = actuator
        self._status = status
        self._params = params if params is not None else ControlLoopParams()

        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._cmd_lock = threading.Lock()
        self._last_cmd = ControlCommand()
        self._last_algo: Optional[AlgoResult] = None

    def __enter__(self) -> "ControlLoop":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Start the loop; does nothing if already running."""
        with self._state_lock:
            if self._thread is not None:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="control", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop the loop and wait for it; does nothing if not running."""
        with self._state_lock:
            thread, self._thread = self._thread, None
            if thread is None:
                return
            self._stop_event.set()
        thread.join()

    def last_command(self) -> ControlCommand:
        """A copy of the most recent command."""
        with self._cmd_lock:
            return ControlCommand(self._last_cmd.based_on_sensor_seq, self._last_cmd.cmd_value)

    def compute_command(self, snapshot: SensorSnapshot, algo: Optional[AlgoResult]) -> ControlCommand:
        """The command for a sensor snapshot; zero when no worker result is known."""
        cmd_value = algo.out_value if algo is not None else 0.0
        return ControlCommand(based_on_sensor_seq=snapshot.latest.seq, cmd_value=cmd_value)

    def _run(self) -> None:
        log.set_thread_name("control")
        params = self._params
        dt = 1.0 / max(1, params.rate_hz)
        last_seq = 0

        while not self._stop_event.is_set():
            t0 = time.monotonic()
            snap = self._sensor.latest()

            # Only act on a sample that has not been seen yet.
            if snap.latest.seq == last_seq:
                time.sleep(_IDLE_SLEEP)
                continue
            last_seq = snap.latest.seq

            if self._ipc.is_connected():
                frame = SensorFrame(
                    seq=snap.latest.seq,
                    monotonic_ns=snap.latest.monotonic_ns,
                    value_a=snap.latest.value_a,
                    value_b=snap.latest.value_b,
                    value_c=snap.latest.value_c,
                )
                self._ipc.send_sensor_frame(frame, _SENSOR_SEND_TIMEOUT)

            if self._ipc.is_connected():
                received = self._ipc.try_receive_algo_result(params.algo_read_timeout)
                if received is not None:
                    self._last_algo = received
            algo = self._last_algo

            cmd = self.compute_command(snap, algo)
            with self._cmd_lock:
                self._last_cmd = cmd

            self._actuator.apply(cmd, dt)
            act = self._actuator.state()

            st = self._status.read()
            st.control_loop_hz = float(params.rate_hz)
            st.algo_latency_ms = algo.latency_ms if algo is not None else 0.0
            st.last_command = cmd.cmd_value
            st.actuator_position = act.position
            st.actuator_velocity = act.velocity
            self._status.update(st)

            elapsed = time.monotonic() - t0
            if elapsed < dt:
                time.sleep(dt - elapsed)