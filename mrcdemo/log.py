"""Process-wide logging with per-thread names and an optional sink.

Lines are written as ``[module][thread] message`` through a channel
(console or file) formatted by a ``%``-code pattern. A sink, when set,
receives every line regardless of the level threshold.
"""

from __future__ import annotations

import logging
import os
import re
import socket
import sys
import threading
from datetime import datetime
from enum import IntEnum
from typing import Callable, Optional


class Level(IntEnum):
    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5


Sink = Callable[[Level, str, str], None]

DEFAULT_PATTERN = "%Y-%m-%d %H:%M:%S.%i [%p][%s] %t"

_LEVEL_NAMES = {
    Level.TRACE: "TRACE",
    Level.DEBUG: "DEBUG",
    Level.INFO: "INFO",
    Level.WARN: "WARN",
    Level.ERROR: "ERROR",
    Level.FATAL: "FATAL",
}

_PY_LEVELS = {
    Level.TRACE: 5,
    Level.DEBUG: logging.DEBUG,
    Level.INFO: logging.INFO,
    Level.WARN: logging.WARNING,
    Level.ERROR: logging.ERROR,
    Level.FATAL: logging.CRITICAL,
}

# Threshold names in order of increasing verbosity; the index is the numeric form.
_THRESHOLD_ORDER = (
    ("none", 100),
    ("fatal", 50),
    ("critical", 45),
    ("error", 40),
    ("warning", 30),
    ("notice", 25),
    ("information", 20),
    ("debug", 10),
    ("trace", 5),
)
_THRESHOLDS = dict(_THRESHOLD_ORDER)

_PRIORITY_NAMES = {
    5: "Trace",
    10: "Debug",
    20: "Information",
    25: "Notice",
    30: "Warning",
    40: "Error",
    45: "Critical",
    50: "Fatal",
}

_FIELD = re.compile(r"%(.)", re.DOTALL)


def _parse_threshold(text: str) -> int:
    name = text.strip().lower()
    if name in _THRESHOLDS:
        return _THRESHOLDS[name]
    if name.isdigit() and int(name) < len(_THRESHOLD_ORDER):
        return _THRESHOLD_ORDER[int(name)][1]
    raise ValueError(f"not a valid log level: {text!r}")


class _PatternFormatter(logging.Formatter):
    """Formats records according to a ``%``-code pattern."""

    def __init__(self, pattern: str) -> None:
        super().__init__()
        self._pattern = pattern

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created)
        priority = _PRIORITY_NAMES.get(record.levelno, record.levelname)
        fields = {
            "Y": lambda: f"{when.year:04d}",
            "y": lambda: f"{when.year % 100:02d}",
            "m": lambda: f"{when.month:02d}",
            "n": lambda: str(when.month),
            "b": lambda: when.strftime("%b"),
            "d": lambda: f"{when.day:02d}",
            "e": lambda: str(when.day),
            "w": lambda: when.strftime("%a"),
            "H": lambda: f"{when.hour:02d}",
            "M": lambda: f"{when.minute:02d}",
            "S": lambda: f"{when.second:02d}",
            "i": lambda: f"{when.microsecond // 1000:03d}",
            "c": lambda: str(when.microsecond // 100000),
            "F": lambda: f"{when.microsecond:06d}",
            "p": lambda: priority,
            "q": lambda: priority[:1],
            "s": lambda: str(getattr(record, "source", record.name)),
            "t": record.getMessage,
            "T": lambda: str(record.threadName),
            "I": lambda: str(record.thread),
            "P": lambda: str(record.process),
            "N": socket.gethostname,
        }

        def expand(match: "re.Match[str]") -> str:
            code = match.group(1)
            getter = fields.get(code)
            return getter() if getter else code

        return _FIELD.sub(expand, self._pattern)


class _ConsoleHandler(logging.Handler):
    """Writes to whatever ``sys.stderr`` currently is."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stream = sys.stderr
            stream.write(self.format(record) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


class _LogState:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.sink_lock = threading.Lock()
        self.process_name = "process"
        self.source: Optional[str] = None
        self.sink: Optional[Sink] = None
        self.logger = logging.getLogger(f"{__name__}.channel")
        self.logger.propagate = False
        self.local = threading.local()

    def configure(self, handler: logging.Handler, pattern: str, threshold: int, source: str) -> None:
        handler.setFormatter(_PatternFormatter(pattern))
        with self.lock:
            for old in list(self.logger.handlers):
                self.logger.removeHandler(old)
                old.close()
            self.logger.addHandler(handler)
            self.logger.setLevel(threshold)
            self.source = source

    def ensure_configured(self) -> None:
        if self.source is None:
            self.configure(_ConsoleHandler(), DEFAULT_PATTERN, _THRESHOLDS["information"], self.process_name)


_state = _LogState()


def init(process_name: str) -> None:
    """Set the process name and set up console logging if nothing is set up yet."""
    _state.process_name = process_name
    _state.ensure_configured()


def init_from_config(cfg, logger_name: str) -> None:
    """Configure logging from ``logging.pattern``, ``logging.level``,
    ``logging.channel`` and ``logging.file``."""
    pattern = cfg.get_string("logging.pattern", DEFAULT_PATTERN)
    threshold = _parse_threshold(cfg.get_string("logging.level", "information"))
    channel = cfg.get_string("logging.channel", "console")
    file_path = cfg.get_string("logging.file", "logs/app.log")

    if channel == "file":
        parent = os.path.dirname(file_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(file_path, encoding="utf-8", delay=True)
    else:
        handler = _ConsoleHandler()

    _state.process_name = logger_name
    _state.configure(handler, pattern, threshold, logger_name)


def set_thread_name(name: str) -> None:
    """Name the calling thread in log prefixes; an empty name falls back to its id."""
    _state.local.name = name


def set_sink(sink: Optional[Sink]) -> None:
    """Install a callable that receives every logged line, or remove it with None."""
    with _state.sink_lock:
        _state.sink = sink


def _prefix(module: str) -> str:
    thread = getattr(_state.local, "name", "") or str(threading.get_native_id())
    return f"[{module}][{thread}] "


def write(level: Level, module: str, message: str) -> None:
    """Log one line at ``level`` and pass it to the sink."""
    level = Level(level)
    _state.ensure_configured()
    _state.logger.log(_PY_LEVELS[level], _prefix(module) + message, extra={"source": _state.source})
    with _state.sink_lock:
        sink = _state.sink
    if sink is not None:
        sink(level, module, message)


def trace(module: str, message: str) -> None:
    write(Level.TRACE, module, message)


def debug(module: str, message: str) -> None:
    write(Level.DEBUG, module, message)


def info(module: str, message: str) -> None:
    write(Level.INFO, module, message)


def warn(module: str, message: str) -> None:
    write(Level.WARN, module, message)


def error(module: str, message: str) -> None:
    write(Level.ERROR, module, message)


def fatal(module: str, message: str) -> None:
    write(Level.FATAL, module, message)


def level_to_string(level: Level) -> str:
    """Upper-case name of a level."""
    return _LEVEL_NAMES.get(level, "INFO")