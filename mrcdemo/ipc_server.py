"""Worker side of the IPC link: accepts one controller and exchanges frames."""

from __future__ import annotations

import socket
import threading
from collections import deque
from typing import Deque, Optional, TypeVar

from . import log
from .ipc_client import Address, _Link
from .protocol import (
    AlgoResult,
    FrameHeader,
    Message,
    MsgType,
    Ping,
    Pong,
    SensorFrame,
    decode_payload,
    now_monotonic_ns,
)

_PONG_SEND_TIMEOUT = 0.05

M = TypeVar("M")


class IpcServer:
    """Listens on ``address`` and serves one controller connection at a time.

    Pings are answered with pongs straight from the receiver thread, so a
    pong is never held up by sensor-frame work. Timeouts are in seconds.
    """

    def __init__(self, address: Address) -> None:
        self._listener = socket.create_server(address)
        self._lock = threading.Lock()
        self._cond = threading.Condition()
        self._link: Optional[_Link] = None
        self._pings: Deque[Ping] = deque()
        self._frames: Deque[SensorFrame] = deque()

    def __enter__(self) -> "IpcServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def address(self) -> Address:
        """The address the server is listening on."""
        host, port = self._listener.getsockname()[:2]
        return host, port

    def start(self) -> bool:
        return True

    def stop(self) -> None:
        """Close the current connection and discard queued messages."""
        with self._lock:
            self._drop_link()

    def close(self) -> None:
        """Stop and stop listening."""
        self.stop()
        self._listener.close()

    def accept_one(self, timeout: float) -> bool:
        """Wait up to ``timeout`` for a controller, replacing any current one."""
        with self._lock:
            self._drop_link()
            try:
                self._listener.settimeout(timeout)
                conn, _ = self._listener.accept()
            except OSError as exc:
                log.warn("ipc", f"accept failed: {exc}")
                return False
            try:
                conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                pass
            link = _Link(conn, self._on_frame, self._on_disconnect)
            self._link = link
            link.start()
            return True

    def is_connected(self) -> bool:
        link = self._link
        return link is not None and link.connected

    def try_receive_ping(self, timeout: float) -> Optional[Ping]:
        """The oldest queued ping, waiting up to ``timeout``; None if none came."""
        return self._take(self._pings, timeout)

    def try_receive_sensor_frame(self, timeout: float) -> Optional[SensorFrame]:
        """The oldest queued sensor frame, waiting up to ``timeout``; None if none came."""
        return self._take(self._frames, timeout)

    def send_pong(self, pong: Pong, timeout: float) -> bool:
        return self._send(pong, timeout)

    def send_algo_result(self, result: AlgoResult, timeout: float) -> bool:
        return self._send(result, timeout)

    def _send(self, message: Message, timeout: float) -> bool:
        link = self._link
        if link is None:
            return False
        return link.send(message, timeout)

    def _drop_link(self) -> None:
        link, self._link = self._link, None
        if link is not None:
            link.close()
        with self._cond:
            self._pings.clear()
            self._frames.clear()
            self._cond.notify_all()

    def _on_frame(self, header: FrameHeader, payload: bytes) -> None:
        if header.type == MsgType.PING and header.payload_size == Ping.STRUCT.size:
            ping = decode_payload(header.type, payload)
            pong = Pong(
                seq=ping.seq,
                t0_monotonic_ns=ping.t0_monotonic_ns,
                t1_monotonic_ns=now_monotonic_ns(),
            )
            self.send_pong(pong, _PONG_SEND_TIMEOUT)
        elif header.type == MsgType.SENSOR_FRAME and header.payload_size == SensorFrame.STRUCT.size:
            frame = decode_payload(header.type, payload)
            with self._cond:
                self._frames.append(frame)
                self._cond.notify_all()

    def _on_disconnect(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _take(self, queue: "Deque[M]", timeout: float) -> Optional[M]:
        if not self.is_connected():
            return None
        with self._cond:
            self._cond.wait_for(lambda: bool(queue) or not self.is_connected(), timeout)
            if not self.is_connected() or not queue:
                return None
            return queue.popleft()