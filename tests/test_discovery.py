import io
import socket
import threading
import time

import pytest

from itshare.discovery import (
    DiscoveredServer,
    ManualEntryRequested,
    discover_servers,
    parse_broadcast,
    select_server,
)


def _free_udp_port():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


def _servers():
    return [
        DiscoveredServer(address="10.0.0.5:8080", ip="10.0.0.5", port="8080"),
        DiscoveredServer(address="10.0.0.6:9090", ip="10.0.0.6", port="9090"),
    ]


def test_parse_broadcast_valid():
    server = parse_broadcast("DRIZLINK_SERVER:192.168.1.4:8080")
    assert server == DiscoveredServer(address="192.168.1.4:8080", ip="192.168.1.4", port="8080")


@pytest.mark.parametrize(
    "message",
    ["HELLO:1.2.3.4:80", "DRIZLINK_SERVER:1.2.3.4", "DRIZLINK_SERVER:a:b:c", ""],
)
def test_parse_broadcast_rejects(message):
    assert parse_broadcast(message) is None


def test_discover_servers_collects_unique():
    port = _free_udp_port()

    def announce():
        time.sleep(0.2)
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sender:
            for payload in (
                b"DRIZLINK_SERVER:10.1.1.1:8080",
                b"noise",
                b"DRIZLINK_SERVER:10.1.1.1:8080",
                b"DRIZLINK_SERVER:10.1.1.2:9000",
            ):
                sender.sendto(payload, ("127.0.0.1", port))

    worker = threading.Thread(target=announce)
    worker.start()
    servers = discover_servers(1.0, port=port)
    worker.join()
    assert [s.address for s in servers] == ["10.1.1.1:8080", "10.1.1.2:9000"]


def test_discover_servers_times_out_empty():
    started = time.monotonic()
    assert discover_servers(0.2, port=_free_udp_port()) == []
    assert time.monotonic() - started < 2


def test_select_server_returns_address():
    assert select_server(_servers(), io.StringIO("2\n")) == "10.0.0.6:9090"


def test_select_server_manual_entry():
    with pytest.raises(ManualEntryRequested):
        select_server(_servers(), io.StringIO("3\n"))


def test_select_server_invalid_input():
    with pytest.raises(ValueError, match="invalid input"):
        select_server(_servers(), io.StringIO("abc\n"))


@pytest.mark.parametrize("answer", ["0\n", "4\n"])
def test_select_server_invalid_choice(answer):
    with pytest.raises(ValueError, match="invalid choice"):
        select_server(_servers(), io.StringIO(answer))


def test_select_server_none_discovered():
    with pytest.raises(ValueError, match="no servers discovered"):
        select_server([], io.StringIO("1\n"))