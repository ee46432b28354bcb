"""Worker process: serves one controller and answers sensor frames with results."""

from __future__ import annotations

import argparse
import os
import signal
import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from . import log
from .config import Config
from .fault import FaultInjector, load_fault_params
from .ipc_server import IpcServer
from .protocol import READY_BYTE, AlgoResult, SensorFrame, now_monotonic_ns, ns_to_ms

_ACCEPT_TIMEOUT = 1.0
_FRAME_WAIT = 0.005
_RESULT_SEND_TIMEOUT = 0.05
_IDLE_SLEEP = 0.001

_shutdown = threading.Event()


def make_result(frame: SensorFrame, compute_delay_ms: int, fault: FaultInjector) -> AlgoResult:
    """Compute the worker's output for one sensor frame."""
    t0 = now_monotonic_ns()

    fault.apply_extra_delay()
    if compute_delay_ms > 0:
        time.sleep(compute_delay_ms / 1000.0)

    produced = now_monotonic_ns()
    return AlgoResult(
        sensor_seq=frame.seq,
        produced_monotonic_ns=produced,
        out_value=0.6 * frame.value_a + 0.3 * frame.value_b + 0.1 * frame.value_c,
        latency_ms=ns_to_ms(produced - t0),
    )


def _write_ready_byte() -> None:
    """Signal readiness on file descriptor 1, bypassing any stream buffering."""
    try:
        os.write(1, bytes([READY_BYTE]))
    except OSError as exc:
        log.warn("main", f"could not write ready byte: {exc}")


@contextmanager
def _signal_handlers() -> Iterator[None]:
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def request_shutdown(signum, frame) -> None:
        _shutdown.set()

    previous = {sig: signal.signal(sig, request_shutdown) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def _serve(cfg: Config) -> int:
    log.set_thread_name("main")
    log.info("main", "algo_worker starting")

    fault = FaultInjector(load_fault_params(cfg))
    fault.maybe_crash_on_start()
    fault.maybe_hang_on_start()

    host = cfg.get_string("ipc.host", "127.0.0.1")
    port = cfg.get_int("ipc.port", 45678)
    compute_delay_ms = cfg.get_int("algo.compute_delay_ms", 10)

    with IpcServer((host, port)) as server:
        _write_ready_byte()
        log.info("ipc", "waiting for controller connection...")
        while not server.accept_one(_ACCEPT_TIMEOUT):
            if _shutdown.is_set():
                break

        if server.is_connected():
            log.info("ipc", "controller connected")

        # Pings are answered on the server's receiver thread, so only frames are handled here.
        while server.is_connected() and not _shutdown.is_set():
            frame = server.try_receive_sensor_frame(_FRAME_WAIT)
            if frame is not None:
                server.send_algo_result(make_result(frame, compute_delay_ms, fault), _RESULT_SEND_TIMEOUT)
                continue
            time.sleep(_IDLE_SLEEP)

    log.info("main", "algo_worker exiting")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command entry point of the worker."""
    parser = argparse.ArgumentParser(prog="algo_worker", description=__doc__)
    parser.add_argument("--config", help="INI file with [ipc], [algo] and [fault] sections")
    args = parser.parse_args(argv)

    cfg = Config()
    if args.config:
        cfg.load(args.config)
    log.init_from_config(cfg, "algo_worker")

    _shutdown.clear()
    with _signal_handlers():
        return _serve(cfg)


if __name__ == "__main__":
    raise SystemExit(main())