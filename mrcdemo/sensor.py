"""Simulated three-channel sensor and the thread that samples it."""

from __future__ import annotations

import math
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from .channel import DoubleBufferChannel
from .log import set_thread_name
from .protocol import now_monotonic_ns

_NOISE_SIGMA = 0.02


@dataclass
class SensorSample:
    seq: int = 0
    monotonic_ns: int = 0
    value_a: float = 0.0
    value_b: float = 0.0
    value_c: float = 0.0


@dataclass
class SensorSnapshot:
    latest: SensorSample = field(default_factory=SensorSample)
    effective_rate_hz: float = 0.0
    missed_deadlines: int = 0


class SensorSimulator:
    """Produces noisy sine/cosine samples and tracks the real sampling rate.

    ``rng`` is any object with a ``gauss(mu, sigma)`` method; a fresh
    ``random.Random`` is used when it is omitted.
    """

    def __init__(self, rate_hz: int = 200, rng: Optional[random.Random] = None) -> None:
        self._rate_hz = rate_hz
        self._rng = rng if rng is not None else random.Random()
        self._seq = 0
        self._last = time.monotonic()
        self._effective_rate_hz = 0.0
        self._missed_deadlines = 0

    def _noise(self) -> float:
        return self._rng.gauss(0.0, _NOISE_SIGMA)

    def generate(self) -> SensorSample:
        """Produce the next sample."""
        now = time.monotonic()
        dt = now - self._last
        self._last = now

        if dt > 0.0:
            self._effective_rate_hz = 1.0 / dt

        rate = max(1, self._rate_hz)
        t = self._seq / rate
        self._seq += 1

        sample = SensorSample(
            seq=self._seq,
            monotonic_ns=now_monotonic_ns(),
            value_a=math.sin(2.0 * math.pi * 0.8 * t) + self._noise(),
            value_b=math.cos(2.0 * math.pi * 0.3 * t) + self._noise(),
            value_c=0.5 * math.sin(2.0 * math.pi * 0.1 * t) + self._noise(),
        )

        # A deadline counts as missed when the period ran over twice the expected one.
        if dt > 2.0 / rate:
            self._missed_deadlines += 1

        return sample

    def effective_rate_hz(self) -> float:
        """Rate implied by the interval between the last two samples."""
        return self._effective_rate_hz

    def missed_deadlines(self) -> int:
        """Number of sampling periods that ran over twice their length."""
        return self._missed_deadlines


class SensorPipeline:
    """Samples a ``SensorSimulator`` on a background thread at a fixed rate."""

    def __init__(self, rate_hz: int = 200) -> None:
        self._rate_hz = rate_hz
        self._channel: DoubleBufferChannel[SensorSnapshot] = DoubleBufferChannel(SensorSnapshot)
        self._running = threading.Event()
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "SensorPipeline":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def start(self) -> None:
        """Start sampling; does nothing if already running."""
        with self._state_lock:
            if self._running.is_set():
                return
            self._running.set()
            self._thread = threading.Thread(target=self._run, name="sensor", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop sampling and wait for the thread; does nothing if not running."""
        with self._state_lock:
            if not self._running.is_set():
                return
            self._running.clear()
            thread, self._thread = self._thread, None
        if thread is not None:
            thread.join()

    def latest(self) -> SensorSnapshot:
        """A copy of the most recently published snapshot."""
        return self._channel.read_snapshot()

    def _run(self) -> None:
        set_thread_name("sensor")
        sim = SensorSimulator(self._rate_hz)
        period = 1.0 / max(1, self._rate_hz)

        while self._running.is_set():
            t0 = time.monotonic()

            back = self._channel.back()
            back.latest = sim.generate()
            back.effective_rate_hz = sim.effective_rate_hz()
            back.missed_deadlines = sim.missed_deadlines()
            self._channel.publish_swap()

            elapsed = time.monotonic() - t0
            if elapsed < period:
                time.sleep(period - elapsed)