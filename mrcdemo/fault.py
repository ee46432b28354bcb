"""Deliberate faults a worker can be configured to exhibit."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass

from . import log
from .config import Config


@dataclass
class FaultParams:
    enable: bool = False
    crash_on_start: bool = False
    hang_on_start: bool = False
    extra_delay_ms: int = 0


def load_fault_params(cfg: Config) -> FaultParams:
    """Read ``fault.*`` settings from a configuration."""
    return FaultParams(
        enable=cfg.get_bool("fault.enable", False),
        crash_on_start=cfg.get_bool("fault.crash_on_start", False),
        hang_on_start=cfg.get_bool("fault.hang_on_start", False),
        extra_delay_ms=cfg.get_int("fault.extra_delay_ms", 0),
    )


class FaultInjector:
    """Crashes, hangs or slows the process when configured to."""

    def __init__(self, params: FaultParams) -> None:
        self._params = params

    @property
    def params(self) -> FaultParams:
        return self._params

    def maybe_crash_on_start(self) -> None:
        """Abort the process if crash-on-start is enabled."""
        if not (self._params.enable and self._params.crash_on_start):
            return
        log.error("fault", "fault.crash_on_start triggered")
        os.abort()

    def maybe_hang_on_start(self) -> None:
        """Block forever if hang-on-start is enabled."""
        if not (self._params.enable and self._params.hang_on_start):
            return
        log.error("fault", "fault.hang_on_start triggered")
        while True:
            time.sleep(1)

    def apply_extra_delay(self) -> None:
        """Sleep for the configured extra delay, if any."""
        if not self._params.enable or self._params.extra_delay_ms <= 0:
            return
        time.sleep(self._params.extra_delay_ms / 1000.0)