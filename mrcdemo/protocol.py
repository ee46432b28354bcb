"""Wire format of the controller/worker IPC link.

Every frame is a fixed 12-byte big-endian header followed by a payload
whose fields are also big-endian.
"""

from __future__ import annotations

import struct
import time
from dataclasses import astuple, dataclass
from enum import IntEnum
from typing import ClassVar, Union

MAGIC = 0x4D524344  # 'MRCD'
VERSION = 1

#: Byte a worker writes to its stdout once it is ready to accept a connection.
READY_BYTE = 0x52  # 'R'

_HEADER = struct.Struct(">IHHI")
HEADER_SIZE = _HEADER.size


class ProtocolError(ValueError):
    """Raised when bytes do not form a valid frame or payload."""


class MsgType(IntEnum):
    PING = 1
    PONG = 2
    SENSOR_FRAME = 3
    ALGO_RESULT = 4
    STATUS_FRAME = 5


@dataclass
class FrameHeader:
    magic: int = MAGIC
    version: int = VERSION
    type: int = 0
    payload_size: int = 0


@dataclass
class Ping:
    MSG_TYPE: ClassVar[MsgType] = MsgType.PING
    STRUCT: ClassVar[struct.Struct] = struct.Struct(">QQ")

    seq: int = 0
    t0_monotonic_ns: int = 0


@dataclass
class Pong:
    MSG_TYPE: ClassVar[MsgType] = MsgType.PONG
    STRUCT: ClassVar[struct.Struct] = struct.Struct(">QQQ")

    seq: int = 0
    t0_monotonic_ns: int = 0
    t1_monotonic_ns: int = 0


@dataclass
class SensorFrame:
    MSG_TYPE: ClassVar[MsgType] = MsgType.SENSOR_FRAME
    STRUCT: ClassVar[struct.Struct] = struct.Struct(">QQddd")

    seq: int = 0
    monotonic_ns: int = 0
    value_a: float = 0.0
    value_b: float = 0.0
    value_c: float = 0.0


@dataclass
class AlgoResult:
    MSG_TYPE: ClassVar[MsgType] = MsgType.ALGO_RESULT
    STRUCT: ClassVar[struct.Struct] = struct.Struct(">QQdd")

    sensor_seq: int = 0
    produced_monotonic_ns: int = 0
    out_value: float = 0.0
    latency_ms: float = 0.0


@dataclass
class StatusFrame:
    MSG_TYPE: ClassVar[MsgType] = MsgType.STATUS_FRAME
    STRUCT: ClassVar[struct.Struct] = struct.Struct(">QI")

    monotonic_ns: int = 0
    status_code: int = 0


Message = Union[Ping, Pong, SensorFrame, AlgoResult, StatusFrame]

_MESSAGE_CLASSES = {cls.MSG_TYPE: cls for cls in (Ping, Pong, SensorFrame, AlgoResult, StatusFrame)}


def encode_header(header: FrameHeader) -> bytes:
    """Serialise a frame header."""
    try:
        return _HEADER.pack(header.magic, header.version, int(header.type), header.payload_size)
    except struct.error as exc:
        raise ProtocolError(f"IPC header out of range: {exc}") from exc


def decode_header(data: bytes) -> FrameHeader:
    """Parse and validate a frame header from the first bytes of ``data``."""
    if len(data) < HEADER_SIZE:
        raise ProtocolError("IPC short header")
    magic, version, msg_type, payload_size = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise ProtocolError("IPC bad magic")
    if version != VERSION:
        raise ProtocolError("IPC bad version")
    return FrameHeader(magic=magic, version=version, type=msg_type, payload_size=payload_size)


def encode_payload(message: Message) -> bytes:
    """Serialise a message body without its header."""
    if type(message) not in _MESSAGE_CLASSES.values():
        raise TypeError(f"not an IPC message: {message!r}")
    try:
        return message.STRUCT.pack(*astuple(message))
    except struct.error as exc:
        raise ProtocolError(f"IPC payload out of range: {exc}") from exc


def decode_payload(msg_type: int, data: bytes) -> Message:
    """Parse a message body of the given type."""
    try:
        cls = _MESSAGE_CLASSES[MsgType(msg_type)]
    except ValueError as exc:
        raise ProtocolError(f"IPC unknown message type {msg_type}") from exc
    if len(data) != cls.STRUCT.size:
        raise ProtocolError(
            f"IPC payload for {cls.__name__} has {len(data)} bytes, expected {cls.STRUCT.size}"
        )
    return cls(*cls.STRUCT.unpack(data))


def encode_frame(message: Message) -> bytes:
    """Serialise a message together with its header."""
    payload = encode_payload(message)
    header = FrameHeader(type=message.MSG_TYPE, payload_size=len(payload))
    return encode_header(header) + payload


def now_monotonic_ns() -> int:
    """Current monotonic clock reading in nanoseconds."""
    return time.monotonic_ns()


def ns_to_ms(ns: int) -> float:
    """Convert nanoseconds to milliseconds."""
    return ns / 1e6