"""Stress test of the double-buffer channel: one producer, two readers."""

from __future__ import annotations

import argparse
import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from . import log
from .channel import DoubleBufferChannel
from .config import Config


@dataclass
class Payload:
    seq: int = 0
    value: float = 0.0


@dataclass
class StressResult:
    produced: int = 0
    publish_count: int = 0
    consumer1_reads: int = 0
    consumer1_violations: int = 0
    consumer2_reads: int = 0
    consumer2_violations: int = 0


@dataclass
class _ConsumerStats:
    reads: int = 0
    violations: int = 0


def run_stress_test(duration_sec: float) -> StressResult:
    """Run a producer and two readers against one channel for ``duration_sec`` seconds."""
    channel: DoubleBufferChannel[Payload] = DoubleBufferChannel(Payload)
    running = threading.Event()
    running.set()
    produced = 0

    def producer() -> None:
        nonlocal produced
        log.set_thread_name("producer")
        seq = 0
        while running.is_set():
            seq += 1
            back = channel.back()
            back.seq = seq
            back.value = float(seq)
            channel.publish_swap()
            produced = seq
            time.sleep(0.001)

    def consumer(name: str, stats: _ConsumerStats) -> None:
        log.set_thread_name(name)
        last = 0
        while running.is_set():
            snap = channel.read_snapshot()
            if 0 < snap.seq < last:
                stats.violations += 1
            last = snap.seq
            stats.reads += 1

    stats1, stats2 = _ConsumerStats(), _ConsumerStats()
    threads = [
        threading.Thread(target=producer, name="producer"),
        threading.Thread(target=consumer, args=("consumer1", stats1), name="consumer1"),
        threading.Thread(target=consumer, args=("consumer2", stats2), name="consumer2"),
    ]
    for thread in threads:
        thread.start()
    try:
        time.sleep(max(0.0, duration_sec))
    finally:
        running.clear()
        for thread in threads:
            thread.join()

    return StressResult(
        produced=produced,
        publish_count=channel.publish_count(),
        consumer1_reads=stats1.reads,
        consumer1_violations=stats1.violations,
        consumer2_reads=stats2.reads,
        consumer2_violations=stats2.violations,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command entry point: run the stress test and log its results."""
    parser = argparse.ArgumentParser(prog="stress_test", description=__doc__)
    parser.add_argument("--config", help="INI file with a [stress_test] section")
    args = parser.parse_args(argv)

    cfg = Config()
    if args.config:
        cfg.load(args.config)
    log.init_from_config(cfg, "stress_test")

    log.set_thread_name("main")
    log.info("main", "stress_test starting")

    duration_sec = cfg.get_int("stress_test.duration_sec", 10)
    log.info("main", f"Running stress test for {duration_sec} seconds...")
    result = run_stress_test(duration_sec)

    log.info("main", "--- Results ---")
    log.info("main", f"Produced: {result.produced}")
    log.info("main", f"PublishCount: {result.publish_count}")
    log.info(
        "main",
        f"Consumer1 reads: {result.consumer1_reads}, monotonic violations: {result.consumer1_violations}",
    )
    log.info(
        "main",
        f"Consumer2 reads: {result.consumer2_reads}, monotonic violations: {result.consumer2_violations}",
    )
    log.info("main", "stress_test exiting")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())