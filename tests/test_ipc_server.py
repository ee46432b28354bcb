import socket
import time

import pytest

from mrcdemo.ipc_client import IpcClient
from mrcdemo.ipc_server import IpcServer
from mrcdemo.protocol import (
    HEADER_SIZE,
    AlgoResult,
    Ping,
    Pong,
    SensorFrame,
    decode_header,
    decode_payload,
    encode_frame,
    now_monotonic_ns,
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
def server():
    srv = IpcServer(("127.0.0.1", 0))
    yield srv
    srv.close()


@pytest.fixture
def peer(server):
    conn = socket.create_connection(server.address, timeout=2.0)
    assert server.accept_one(2.0)
    yield conn
    conn.close()


def test_start_reports_success(server):
    assert server.start() is True


def test_accept_times_out_without_client(server):
    assert server.accept_one(0.1) is False
    assert server.is_connected() is False


def test_connected_after_accept(peer, server):
    assert server.is_connected() is True


def test_ping_is_answered_with_pong(peer, server):
    before = now_monotonic_ns()
    peer.sendall(encode_frame(Ping(seq=7, t0_monotonic_ns=123)))
    pong = _read_message(peer)
    assert isinstance(pong, Pong)
    assert pong.seq == 7
    assert pong.t0_monotonic_ns == 123
    assert pong.t1_monotonic_ns >= before


def test_pings_are_not_queued(peer, server):
    peer.sendall(encode_frame(Ping(seq=1)))
    assert isinstance(_read_message(peer), Pong)
    assert server.try_receive_ping(0.1) is None


def test_sensor_frames_are_queued_in_order(peer, server):
    first = SensorFrame(seq=1, monotonic_ns=10, value_a=0.5, value_b=0.25, value_c=-0.5)
    second = SensorFrame(seq=2, monotonic_ns=20, value_a=1.0)
    peer.sendall(encode_frame(first) + encode_frame(second))
    assert server.try_receive_sensor_frame(2.0) == first
    assert server.try_receive_sensor_frame(2.0) == second
    assert server.try_receive_sensor_frame(0.05) is None


def test_send_algo_result_reaches_peer(peer, server):
    result = AlgoResult(sensor_seq=9, produced_monotonic_ns=77, out_value=1.5, latency_ms=10.5)
    assert server.send_algo_result(result, 1.0)
    assert _recv_exact(peer, len(encode_frame(result))) == encode_frame(result)


def test_stop_disconnects(peer, server):
    server.stop()
    assert server.is_connected() is False
    assert server.send_algo_result(AlgoResult(sensor_seq=1), 0.1) is False
    assert _recv_exact(peer, 1) == b""


def test_peer_close_disconnects(peer, server):
    peer.close()
    assert _wait_until(lambda: not server.is_connected())
    assert server.try_receive_sensor_frame(0.05) is None


def test_second_accept_replaces_connection(server):
    first = socket.create_connection(server.address, timeout=2.0)
    second = socket.create_connection(server.address, timeout=2.0)
    try:
        assert server.accept_one(2.0)
        assert server.accept_one(2.0)
        assert _recv_exact(first, 1) == b""
        second.sendall(encode_frame(Ping(seq=42)))
        assert _read_message(second).seq == 42
    finally:
        first.close()
        second.close()


def test_end_to_end_with_client(server):
    client = IpcClient()
    try:
        assert client.connect(server.address, 2.0)
        assert server.accept_one(2.0)

        assert client.send_ping(Ping(seq=5, t0_monotonic_ns=now_monotonic_ns()), 1.0)
        pong = client.try_receive_pong(2.0)
        assert pong is not None and pong.seq == 5

        frame = SensorFrame(seq=3, value_a=0.1, value_b=0.2, value_c=0.3)
        assert client.send_sensor_frame(frame, 1.0)
        assert server.try_receive_sensor_frame(2.0) == frame

        result = AlgoResult(sensor_seq=3, out_value=0.25)
        assert server.send_algo_result(result, 1.0)
        assert client.try_receive_algo_result(2.0) == result
    finally:
        client.disconnect()