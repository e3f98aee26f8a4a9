import socket

import pytest

from itshare.client_files import receive_file, request_download, respond_download, send_file
from itshare.helper import calculate_file_checksum
from itshare.transfers import TransferRegistry, TransferStatus, TransferType


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    a.settimeout(5)
    b.settimeout(5)
    yield a, b
    a.close()
    b.close()


def _read_line(sock):
    buf = bytearray()
    while True:
        ch = sock.recv(1)
        if not ch or ch == b"\n":
            return buf.decode()
        buf += ch


def test_file_round_trip(pair, tmp_path, capsys):
    sender, receiver = pair
    source = tmp_path / "report.bin"
    payload = bytes(range(256)) * 200
    source.write_bytes(payload)
    store = tmp_path / "store"
    store.mkdir()

    send_registry = TransferRegistry()
    sent = send_file(sender, "12", str(source), send_registry)
    assert sent.status is TransferStatus.COMPLETED
    assert sent.kind is TransferType.FILE
    assert sent.bytes_complete == len(payload)
    assert len(send_registry) == 0

    header = _read_line(receiver).split(" ")
    assert header == [
        "/FILE_REQUEST",
        "12",
        "report.bin",
        str(len(payload)),
        calculate_file_checksum(source),
        "1",
    ]

    recv_registry = TransferRegistry()
    received = receive_file(
        receiver, "12", f"{header[2]}|{header[4]}|{header[5]}", int(header[3]), str(store), recv_registry
    )
    assert received.status is TransferStatus.COMPLETED
    assert received.id == "1"
    assert len(recv_registry) == 0
    assert (store / "report.bin").read_bytes() == payload
    assert "Checksum verification successful! File integrity confirmed." in capsys.readouterr().out


def test_receive_file_checksum_mismatch(pair, tmp_path, capsys):
    sender, receiver = pair
    sender.sendall(b"hello")
    transfer = receive_file(receiver, "3", "note.txt|deadbeef|77", 5, str(tmp_path), TransferRegistry())
    assert transfer.id == "77"
    assert transfer.checksum == "deadbeef"
    assert transfer.status is TransferStatus.COMPLETED
    assert (tmp_path / "note.txt").read_bytes() == b"hello"
    assert "Checksum verification failed! File may be corrupted." in capsys.readouterr().out


def test_receive_file_without_checksum_generates_id(pair, tmp_path):
    sender, receiver = pair
    sender.sendall(b"data")
    registry = TransferRegistry()
    transfer = receive_file(receiver, "3", "plain.txt", 4, str(tmp_path), registry)
    assert transfer.id == "1"
    assert transfer.checksum == ""
    assert (tmp_path / "plain.txt").read_bytes() == b"data"


def test_receive_file_short_data_fails(pair, tmp_path):
    sender, receiver = pair
    sender.sendall(b"abc")
    sender.shutdown(socket.SHUT_WR)
    registry = TransferRegistry()
    transfer = receive_file(receiver, "3", "part.txt", 10, str(tmp_path), registry)
    assert transfer.status is TransferStatus.FAILED
    assert transfer.bytes_complete == 3
    assert len(registry) == 0


def test_send_missing_file(pair, tmp_path, capsys):
    sender, _ = pair
    registry = TransferRegistry()
    assert send_file(sender, "1", str(tmp_path / "none.txt"), registry) is None
    assert "Error opening file" in capsys.readouterr().out
    assert len(registry) == 0


def test_request_download_wire(pair, capsys):
    sender, receiver = pair
    request_download(sender, "42", "notes.txt")
    assert _read_line(receiver) == "/DOWNLOAD_REQUEST 42 notes.txt"
    assert "File download request sent successfully" in capsys.readouterr().out


def test_respond_download_file(pair, tmp_path):
    sender, receiver = pair
    target = tmp_path / "song.txt"
    target.write_bytes(b"la la")
    transfer = respond_download(sender, "4", f"  {target}  ", TransferRegistry())
    assert transfer.kind is TransferType.FILE
    header = _read_line(receiver).split(" ")
    assert header[:4] == ["/FILE_REQUEST", "4", "song.txt", "5"]
    assert receiver.recv(5) == b"la la"


def test_respond_download_folder(pair, tmp_path):
    sender, receiver = pair
    folder = tmp_path / "docs"
    folder.mkdir()
    (folder / "x.txt").write_text("x")
    transfer = respond_download(sender, "4", str(folder), TransferRegistry())
    assert transfer.kind is TransferType.FOLDER
    header = _read_line(receiver).split(" ")
    assert header[:3] == ["/FOLDER_REQUEST", "4", "docs"]
    assert not (tmp_path / "docs.zip").exists()


def test_respond_download_missing(pair, tmp_path, capsys):
    sender, _ = pair
    assert respond_download(sender, "4", str(tmp_path / "missing"), TransferRegistry()) is None
    assert "error in stat file" in capsys.readouterr().out