import socket
import time

import pytest

from mrcdemo.ipc_client import IpcClient
from mrcdemo.protocol import (
    HEADER_SIZE,
    AlgoResult,
    Ping,
    Pong,
    SensorFrame,
    decode_header,
    decode_payload,
    encode_frame,
)


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _recv_exact(sock, size):
    sock.settimeout(2.0)
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def _read_message(sock):
    header = decode_header(_recv_exact(sock, HEADER_SIZE))
    return decode_payload(header.type, _recv_exact(sock, header.payload_size))


@pytest.fixture
def listener():
    srv = socket.create_server(("127.0.0.1", 0))
    srv.settimeout(2.0)
    yield srv
    srv.close()


@pytest.fixture
def client():
    c = IpcClient()
    yield c
    c.disconnect()


@pytest.fixture
def peer(listener, client):
    assert client.connect(listener.getsockname()[:2], 2.0)
    conn, _ = listener.accept()
    yield conn
    conn.close()


def _free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_connect_refused_returns_false(client):
    assert client.connect(("127.0.0.1", _free_port()), 0.5) is False
    assert client.is_connected() is False


def test_connected_after_connect(peer, client):
    assert client.is_connected() is True


def test_unconnected_client_cannot_send_or_receive(client):
    assert client.send_ping(Ping(seq=1), 0.1) is False
    assert client.try_receive_pong(0.05) is None
    assert client.try_receive_algo_result(0.05) is None


def test_send_ping_writes_frame(peer, client):
    ping = Ping(seq=3, t0_monotonic_ns=99)
    assert client.send_ping(ping, 1.0)
    data = _recv_exact(peer, HEADER_SIZE + 16)
    assert data[:HEADER_SIZE] == b"MRCD\x00\x01\x00\x01\x00\x00\x00\x10"
    assert data == encode_frame(ping)


def test_send_sensor_frame_round_trip(peer, client):
    frame = SensorFrame(seq=5, monotonic_ns=1000, value_a=0.25, value_b=-1.5, value_c=2.0)
    assert client.send_sensor_frame(frame, 1.0)
    assert _read_message(peer) == frame


def test_receives_pong(peer, client):
    pong = Pong(seq=4, t0_monotonic_ns=10, t1_monotonic_ns=20)
    peer.sendall(encode_frame(pong))
    assert client.try_receive_pong(2.0) == pong


def test_receives_algo_results_in_order(peer, client):
    first = AlgoResult(sensor_seq=1, produced_monotonic_ns=5, out_value=0.5, latency_ms=1.25)
    second = AlgoResult(sensor_seq=2, produced_monotonic_ns=6, out_value=0.75, latency_ms=2.5)
    peer.sendall(encode_frame(first) + encode_frame(second))
    assert client.try_receive_algo_result(2.0) == first
    assert client.try_receive_algo_result(2.0) == second


def test_unexpected_message_types_are_ignored(peer, client):
    pong = Pong(seq=8)
    peer.sendall(encode_frame(SensorFrame(seq=1)) + encode_frame(pong))
    assert client.try_receive_pong(2.0) == pong
    assert client.try_receive_algo_result(0.1) is None


def test_frame_split_across_writes_is_reassembled(peer, client):
    result = AlgoResult(sensor_seq=11, out_value=3.5)
    data = encode_frame(result)
    peer.sendall(data[:5])
    time.sleep(0.05)
    peer.sendall(data[5:])
    assert client.try_receive_algo_result(2.0) == result


def test_disconnect_marks_client_disconnected(peer, client):
    client.disconnect()
    assert client.is_connected() is False
    assert client.send_ping(Ping(seq=1), 0.1) is False


def test_reconnect_discards_queued_replies(listener, peer, client):
    peer.sendall(encode_frame(Pong(seq=1)))
    time.sleep(0.3)
    assert client.connect(listener.getsockname()[:2], 2.0)
    second, _ = listener.accept()
    try:
        assert client.is_connected()
        assert client.try_receive_pong(0.2) is None
    finally:
        second.close()


def test_peer_close_disconnects(peer, client):
    peer.close()
    assert _wait_until(lambda: not client.is_connected())
    assert client.try_receive_pong(0.05) is None


def test_bad_magic_disconnects(peer, client):
    peer.sendall(b"XXXX" + bytes(8))
    assert _wait_until(lambda: not client.is_connected())
    assert client.is_connected() is False
    assert client.send_ping(Ping(seq=1), 0.1) is False
    assert client.try_receive_pong(0.05) is None