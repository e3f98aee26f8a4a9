import io
import socket

import pytest

from itshare.client import (
    connect,
    format_user_list,
    handle_command,
    handle_message,
    read_loop,
    send_user_input,
    write_loop,
)
from itshare.transfers import TransferRegistry


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    right.settimeout(3)
    yield left, right
    left.close()
    right.close()


@pytest.fixture
def registry():
    return TransferRegistry()


def _recv_until(sock, suffix):
    data = b""
    while not data.endswith(suffix):
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def test_connect_reaches_listener():
    with socket.create_server(("127.0.0.1", 0)) as srv:
        port = srv.getsockname()[1]
        with connect(f"127.0.0.1:{port}") as conn:
            assert conn.getpeername()[1] == port


def test_connect_without_port_raises():
    with pytest.raises(ValueError):
        connect("localhost")


def test_send_user_input_reconnect(pair, capsys):
    conn, other = pair
    other.sendall(b"/RECONNECT alice /store")
    assert send_user_input(conn, "Username", io.StringIO("")) is True
    assert "Welcome back alice!" in capsys.readouterr().out


def test_send_user_input_sends_username(pair):
    conn, other = pair
    assert send_user_input(conn, "Username", io.StringIO("bob\n")) is False
    assert other.recv(1024) == b"bob"


def test_send_user_input_validates_store_path(pair, tmp_path, capsys):
    conn, other = pair
    a_file = tmp_path / "f.txt"
    a_file.write_text("x")
    stream = io.StringIO(f"{tmp_path / 'missing'}\n{a_file}\n{tmp_path}\n")
    assert send_user_input(conn, "Store File Path", stream) is False
    assert other.recv(4096) == str(tmp_path).encode()
    out = capsys.readouterr().out
    assert "Directory does not exist" in out
    assert "Path is not a directory" in out


def test_send_user_input_end_of_input(pair):
    conn, _ = pair
    with pytest.raises(EOFError):
        send_user_input(conn, "Username", io.StringIO(""))


def test_format_user_list_empty():
    lines = format_user_list("")
    assert len(lines) == 1
    assert "No users currently online" in lines[0]


def test_format_user_list_with_ids():
    lines = format_user_list("alice [ID: 42] online\n\n")
    assert len(lines) == 1
    assert "alice" in lines[0] and "42" in lines[0]


def test_format_user_list_counts_lines_without_ids():
    assert format_user_list("bob (7) is online\n") == []


def test_handle_message_ping(pair, registry, capsys):
    conn, other = pair
    handle_message(conn, "PING\n", registry)
    assert capsys.readouterr().out == ""
    assert other.recv(1024) == b"PONG\n"


def test_handle_message_file_response(pair, registry, tmp_path):
    conn, other = pair
    other.sendall(b"hello")
    handle_message(conn, f"/FILE_RESPONSE 5 a.txt 5 {tmp_path}", registry)
    assert (tmp_path / "a.txt").read_bytes() == b"hello"
    assert len(registry) == 0


def test_handle_message_file_response_bad_args(pair, registry, capsys):
    conn, _ = pair
    handle_message(conn, "/FILE_RESPONSE 5 a.txt", registry)
    assert "Invalid arguments" in capsys.readouterr().out


def test_handle_message_file_response_bad_size(pair, registry, capsys, tmp_path):
    conn, _ = pair
    handle_message(conn, f"/FILE_RESPONSE 5 a.txt big {tmp_path}", registry)
    assert "Invalid fileSize" in capsys.readouterr().out
    assert not (tmp_path / "a.txt").exists()


def test_handle_message_users(pair, registry, capsys):
    conn, other = pair
    other.sendall(b"alice [ID: 1] online\n")
    handle_message(conn, "USERS:", registry)
    out = capsys.readouterr().out
    assert "Online Users" in out
    assert "alice" in out


def test_handle_message_look_request(pair, registry, tmp_path, capsys):
    conn, other = pair
    (tmp_path / "a.txt").write_text("x")
    handle_message(conn, f"/LOOK_REQUEST 5 {tmp_path}", registry)
    out = capsys.readouterr().out
    assert "=== FILES ===" in out
    assert "a.txt" in out
    data = _recv_until(other, b"\n")
    assert data.startswith(b"LOOK_RESPONSE 5 === FILES ===")


def test_handle_message_look_response(pair, registry, capsys):
    conn, _ = pair
    handle_message(conn, "/LOOK_RESPONSE 7 [FILE] a.txt", registry)
    out = capsys.readouterr().out
    assert "Directory Listing" in out
    assert "[FILE]" in out


def test_handle_message_download_request(pair, registry, tmp_path, capsys):
    conn, other = pair
    target = tmp_path / "a.txt"
    target.write_bytes(b"hello")
    handle_message(conn, f"/DOWNLOAD_REQUEST 4 {target}", registry)
    out = capsys.readouterr().out
    assert "Download request from" in out
    assert len(registry) == 0
    data = _recv_until(other, b"hello")
    assert data.startswith(b"/FILE_REQUEST 4 a.txt 5 ")
    assert data.endswith(b"hello")


def test_handle_message_joined(pair, registry, capsys):
    conn, _ = pair
    handle_message(conn, "User bob has joined the chat", registry)
    assert "👋 User bob has joined the chat" in capsys.readouterr().out


def test_handle_message_plain(pair, registry, capsys):
    conn, _ = pair
    handle_message(conn, "bob: hi", registry)
    assert capsys.readouterr().out == "bob: hi\n"


def test_read_loop_stops_at_end(pair, registry, capsys):
    conn, other = pair
    other.sendall(b"hi there")
    other.shutdown(socket.SHUT_WR)
    read_loop(conn, registry)
    out = capsys.readouterr().out
    assert "hi there" in out
    assert "Connection lost" in out


def test_handle_command_exit_closes(pair, registry):
    conn, _ = pair
    assert handle_command(conn, "exit", registry) is False
    assert conn.fileno() == -1


def test_handle_command_chat_message(pair, registry):
    conn, other = pair
    assert handle_command(conn, "hello everyone\n", registry) is True
    assert other.recv(1024) == b"hello everyone"


def test_handle_command_status(pair, registry):
    conn, other = pair
    assert handle_command(conn, "/status", registry) is True
    assert other.recv(1024) == b"/status"


def test_handle_command_download(pair, registry):
    conn, other = pair
    assert handle_command(conn, "/download 3 x.txt", registry) is True
    assert other.recv(1024) == b"/DOWNLOAD_REQUEST 3 x.txt\n"


def test_handle_command_lookup(pair, registry):
    conn, other = pair
    assert handle_command(conn, "/lookup 5", registry) is True
    assert other.recv(1024) == b"/LOOK 5\n"


def test_handle_command_pause_usage_and_missing(pair, registry, capsys):
    conn, _ = pair
    assert handle_command(conn, "/pause", registry) is True
    assert handle_command(conn, "/pause 9", registry) is True
    out = capsys.readouterr().out
    assert "Invalid arguments" in out
    assert "Transfer not found" in out


def test_handle_command_transfers_empty(pair, registry, capsys):
    conn, _ = pair
    assert handle_command(conn, "/transfers", registry) is True
    assert "No active transfers" in capsys.readouterr().out


def test_handle_command_sendfile_usage(pair, registry, capsys):
    conn, _ = pair
    assert handle_command(conn, "/sendfile 3", registry) is True
    assert "Use: /sendfile <userId> <filename>" in capsys.readouterr().out


def test_write_loop_sends_then_exits(pair, registry):
    conn, other = pair
    write_loop(conn, registry, io.StringIO("hello\n\nexit\nignored\n"))
    assert other.recv(1024) == b"hello"
    assert conn.fileno() == -1