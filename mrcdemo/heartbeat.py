"""Periodic ping/pong liveness check of the worker connection."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from . import log
from .protocol import Ping, now_monotonic_ns, ns_to_ms

#: A pong this many rounds behind the latest ping still proves the worker is alive.
MAX_ROUNDS_LATE = 2


@dataclass
class HeartbeatParams:
    """Timing of the heartbeat; intervals and timeouts are in seconds."""

    interval: float = 0.2
    timeout: float = 0.5
    miss_threshold: int = 3


class HeartbeatMonitor:
    """Pings the worker through an IPC client on a background thread.

    The connection counts as healthy until ``miss_threshold`` pings in a
    row go unanswered, and again as soon as a pong arrives.
    """

    def __init__(self, client, params: Optional[HeartbeatParams] = None) -> None:
        self._client = client
        self._params = params if params is not None else HeartbeatParams()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._healthy = False
        self._last_rtt_ms = 0.0
        self._timeouts = 0

    def __enter__(self) -> "HeartbeatMonitor":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Start pinging; does nothing if already running."""
        with self._state_lock:
            if self._thread is not None:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="heartbeat", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop pinging and wait for the thread; does nothing if not running."""
        with self._state_lock:
            thread, self._thread = self._thread, None
            if thread is None:
                return
            self._stop_event.set()
        thread.join()

    def healthy(self) -> bool:
        return self._healthy

    def last_rtt_ms(self) -> float:
        """Round-trip time of the last pong that answered the latest ping."""
        return self._last_rtt_ms

    def timeouts(self) -> int:
        """Total number of pings that went unanswered."""
        return self._timeouts

    def _run(self) -> None:
        log.set_thread_name("heartbeat")
        params = self._params
        seq = 0
        misses = 0
        self._healthy = False

        while not self._stop_event.is_set():
            if not self._client.is_connected():
                self._healthy = False
                log.debug("heartbeat", "not connected; skipping ping")
                self._stop_event.wait(params.interval)
                continue

            seq += 1
            ping = Ping(seq=seq, t0_monotonic_ns=now_monotonic_ns())
            self._client.send_ping(ping, params.timeout)
            pong = self._client.try_receive_pong(params.timeout)

            seq_ok = pong is not None and ping.seq - MAX_ROUNDS_LATE <= pong.seq <= ping.seq

            if not seq_ok:
                misses += 1
                self._timeouts += 1
                still_healthy = misses < params.miss_threshold
                self._healthy = still_healthy
                message = (
                    f"miss: got={'true' if pong is not None else 'false'}"
                    f" pong.seq={pong.seq if pong is not None else 0}"
                    f" ping.seq={ping.seq} misses={misses}"
                    f" threshold={params.miss_threshold}"
                    f" healthy={'true' if still_healthy else 'false'}"
                )
                if still_healthy:
                    log.debug("heartbeat", message)
                else:
                    log.warn("heartbeat", message + " (unhealthy)")
            else:
                if misses > 0:
                    log.debug("heartbeat", f"pong OK seq={pong.seq} misses reset to 0")
                misses = 0
                if pong.seq == ping.seq:
                    self._last_rtt_ms = ns_to_ms(now_monotonic_ns() - ping.t0_monotonic_ns)
                self._healthy = True

            self._stop_event.wait(params.interval)