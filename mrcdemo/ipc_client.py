"""Controller side of the IPC link: connects to a worker and exchanges frames."""

from __future__ import annotations

import select
import socket
import threading
from collections import deque
from typing import Callable, Deque, Iterator, Optional, Tuple, TypeVar

from . import log
from .protocol import (
    HEADER_SIZE,
    AlgoResult,
    FrameHeader,
    Message,
    MsgType,
    Ping,
    Pong,
    ProtocolError,
    SensorFrame,
    decode_header,
    decode_payload,
    encode_frame,
)

Address = Tuple[str, int]
FrameHandler = Callable[[FrameHeader, bytes], None]

_RECV_POLL_SECONDS = 0.2
_RECV_CHUNK = 4096

M = TypeVar("M")


def _split_frames(buffer: bytearray) -> Iterator[Tuple[FrameHeader, bytes]]:
    """Yield complete frames from the front of ``buffer``, consuming them."""
    while len(buffer) >= HEADER_SIZE:
        header = decode_header(buffer)
        end = HEADER_SIZE + header.payload_size
        if len(buffer) < end:
            return
        payload = bytes(buffer[HEADER_SIZE:end])
        del buffer[:end]
        yield header, payload


class _Link:
    """A connected socket whose frames are decoded on a receiver thread."""

    def __init__(
        self,
        sock: socket.socket,
        on_frame: FrameHandler,
        on_disconnect: Callable[[], None],
        thread_name: str = "",
    ) -> None:
        self._sock = sock
        self._on_frame = on_frame
        self._on_disconnect = on_disconnect
        self._thread_name = thread_name
        self._send_lock = threading.Lock()
        self._connected = threading.Event()
        self._connected.set()
        self._running = threading.Event()
        self._thread = threading.Thread(
            target=self._receive_loop, name=thread_name or "ipc-recv", daemon=True
        )

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def start(self) -> None:
        self._running.set()
        self._thread.start()

    def send(self, message: Message, timeout: float) -> bool:
        """Send one framed message; on failure the link counts as disconnected."""
        data = encode_frame(message)
        with self._send_lock:
            if not self._connected.is_set():
                return False
            try:
                self._sock.settimeout(timeout)
                self._sock.sendall(data)
                return True
            except OSError as exc:
                self._connected.clear()
                log.error("ipc", f"send failed: {exc}")
        self._on_disconnect()
        return False

    def close(self) -> None:
        """Shut the socket down, wait for the receiver and release the socket."""
        self._running.clear()
        self._connected.clear()
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()
        self._sock.close()

    def _lose(self) -> None:
        self._connected.clear()
        self._on_disconnect()

    def _receive_loop(self) -> None:
        if self._thread_name:
            log.set_thread_name(self._thread_name)
        buffer = bytearray()
        while self._running.is_set() and self._connected.is_set():
            try:
                readable, _, _ = select.select([self._sock], [], [], _RECV_POLL_SECONDS)
            except (OSError, ValueError):
                break
            if not readable:
                continue
            try:
                chunk = self._sock.recv(_RECV_CHUNK)
            except TimeoutError:
                continue
            except OSError as exc:
                if self._running.is_set():
                    log.error("ipc", f"recv failed: {exc}")
                    self._lose()
                break
            if not chunk:
                if self._running.is_set():
                    self._lose()
                break
            buffer += chunk
            try:
                for header, payload in _split_frames(buffer):
                    self._on_frame(header, payload)
            except ProtocolError as exc:
                log.error("ipc", f"recv failed: {exc}")
                self._lose()
                break


class IpcClient:
    """Connects to a worker, sends pings and sensor frames, and queues replies.

    Timeouts are in seconds.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cond = threading.Condition()
        self._link: Optional[_Link] = None
        self._pongs: Deque[Pong] = deque()
        self._results: Deque[AlgoResult] = deque()

    def __enter__(self) -> "IpcClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    def connect(self, address: Address, timeout: float) -> bool:
        """Connect to ``address``, dropping any previous connection and queued replies."""
        with self._lock:
            self._drop_link()
            try:
                sock = socket.create_connection(address, timeout=timeout)
            except OSError as exc:
                log.error("ipc", f"connect failed: {exc}")
                return False
            try:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                pass
            link = _Link(sock, self._on_frame, self._on_disconnect, "ipc-recv")
            self._link = link
            link.start()
            return True

    def disconnect(self) -> None:
        """Close the connection and discard queued replies."""
        with self._lock:
            self._drop_link()

    def is_connected(self) -> bool:
        link = self._link
        return link is not None and link.connected

    def send_ping(self, ping: Ping, timeout: float) -> bool:
        return self._send(ping, timeout)

    def send_sensor_frame(self, frame: SensorFrame, timeout: float) -> bool:
        return self._send(frame, timeout)

    def try_receive_pong(self, timeout: float) -> Optional[Pong]:
        """The oldest queued pong, waiting up to ``timeout``; None if none came."""
        return self._take(self._pongs, timeout)

    def try_receive_algo_result(self, timeout: float) -> Optional[AlgoResult]:
        """The oldest queued result, waiting up to ``timeout``; None if none came."""
        return self._take(self._results, timeout)

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
            self._pongs.clear()
            self._results.clear()
            self._cond.notify_all()

    def _on_frame(self, header: FrameHeader, payload: bytes) -> None:
        if header.type == MsgType.PONG and header.payload_size == Pong.STRUCT.size:
            target: deque = self._pongs
        elif header.type == MsgType.ALGO_RESULT and header.payload_size == AlgoResult.STRUCT.size:
            target = self._results
        else:
            return
        message = decode_payload(header.type, payload)
        with self._cond:
            target.append(message)
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