import pytest

from mrcdemo.protocol import (
    HEADER_SIZE,
    AlgoResult,
    FrameHeader,
    MsgType,
    Ping,
    Pong,
    ProtocolError,
    SensorFrame,
    StatusFrame,
    decode_header,
    decode_payload,
    encode_frame,
    encode_header,
    encode_payload,
    now_monotonic_ns,
    ns_to_ms,
)

MESSAGES = [
    Ping(seq=7, t0_monotonic_ns=123456789),
    Pong(seq=7, t0_monotonic_ns=100, t1_monotonic_ns=200),
    SensorFrame(seq=42, monotonic_ns=999, value_a=0.25, value_b=-1.5, value_c=3.0),
    AlgoResult(sensor_seq=42, produced_monotonic_ns=1000, out_value=0.75, latency_ms=10.5),
    StatusFrame(monotonic_ns=55, status_code=2100),
]


@pytest.mark.parametrize("message", MESSAGES)
def test_payload_round_trip(message):
    assert decode_payload(message.MSG_TYPE, encode_payload(message)) == message


@pytest.mark.parametrize("message", MESSAGES)
def test_frame_header_describes_payload(message):
    frame = encode_frame(message)
    header = decode_header(frame[:HEADER_SIZE])
    assert header.type == message.MSG_TYPE
    assert header.payload_size == len(frame) - HEADER_SIZE
    assert decode_payload(header.type, frame[HEADER_SIZE:]) == message


def test_header_wire_bytes():
    data = encode_header(FrameHeader(type=MsgType.PING, payload_size=16))
    assert data == bytes.fromhex("4d524344" "0001" "0001" "00000010")


def test_header_round_trip():
    header = FrameHeader(type=MsgType.ALGO_RESULT, payload_size=32)
    assert decode_header(encode_header(header)) == header


def test_ping_payload_is_big_endian():
    data = encode_payload(Ping(seq=1, t0_monotonic_ns=2))
    assert data == bytes.fromhex("0000000000000001" "0000000000000002")


def test_bad_magic_rejected():
    data = encode_header(FrameHeader(magic=0x12345678, type=MsgType.PING))
    with pytest.raises(ProtocolError, match="magic"):
        decode_header(data)


def test_bad_version_rejected():
    data = encode_header(FrameHeader(version=2, type=MsgType.PING))
    with pytest.raises(ProtocolError, match="version"):
        decode_header(data)


def test_short_header_rejected():
    with pytest.raises(ProtocolError):
        decode_header(b"\x00\x00\x00")


def test_wrong_payload_length_rejected():
    with pytest.raises(ProtocolError):
        decode_payload(MsgType.PING, b"\x00" * 8)


def test_unknown_message_type_rejected():
    with pytest.raises(ProtocolError):
        decode_payload(99, b"")


def test_encode_rejects_non_message():
    with pytest.raises(TypeError):
        encode_payload(FrameHeader())


def test_out_of_range_field_rejected():
    with pytest.raises(ProtocolError):
        encode_payload(Ping(seq=-1))


def test_ns_to_ms():
    assert ns_to_ms(1_500_000) == 1.5


def test_monotonic_clock_never_goes_back():
    first = now_monotonic_ns()
    second = now_monotonic_ns()
    assert second >= first