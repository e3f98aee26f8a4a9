"""Client connection: login, the incoming message loop and the command loop."""

from __future__ import annotations

import contextlib
import os
import socket
import sys
from typing import TextIO

from itshare.client_files import receive_file, request_download, respond_download, send_file
from itshare.client_folders import receive_folder, request_lookup, respond_lookup, send_folder
from itshare.transfers import TransferRegistry, handle_pause, handle_resume, show_transfers
from itshare.ui import (
    command_color,
    error_color,
    header_color,
    info_color,
    print_help,
    success_color,
    user_color,
    warning_color,
)

RECONNECT_WAIT = 2.0
USERS_WAIT = 2.0
_BUFFER = 1024


def connect(address: str) -> socket.socket:
    """Open a TCP connection to ``host:port``."""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"address {address}: invalid port") from None
    return socket.create_connection((host.strip("[]"), port_num))


def _read_line(stream: TextIO) -> str:
    line = stream.readline()
    if not line:
        raise EOFError("no more input")
    return line.strip()


def _reconnect_signal(conn: socket.socket, wait: float) -> bool:
    conn.settimeout(wait)
    try:
        data = conn.recv(_BUFFER)
    except OSError:
        data = b""
    finally:
        conn.settimeout(None)
    message = data.decode("utf-8", errors="replace")
    if message.startswith("/RECONNECT"):
        parts = message.split(" ", 3)
        if len(parts) == 3:
            print(f"Welcome back {parts[1]}!")
            return True
    return False


def send_user_input(
    conn: socket.socket,
    attribute: str,
    stream: TextIO | None = None,
) -> bool:
    """Ask the user for ``attribute`` and send it; return True if the server signals a reconnection instead."""
    if _reconnect_signal(conn, RECONNECT_WAIT):
        return True
    stream = stream if stream is not None else sys.stdin

    print(f"Enter your {attribute}: ")
    value = _read_line(stream)
    if attribute == "Store File Path":
        while not os.path.isdir(value):
            if not os.path.exists(value):
                print(error_color("❌ Error: Directory does not exist"))
            else:
                print(error_color("❌ Error: Path is not a directory"))
            print(f"Enter a valid {attribute}: ")
            value = _read_line(stream)

    conn.sendall(value.encode())
    return False


def format_user_list(text: str) -> list[str]:
    """Return the display lines for a user list sent by the server."""
    lines: list[str] = []
    count = 0
    for line in text.split("\n"):
        if not line.strip():
            continue
        count += 1
        if "[ID:" not in line:
            continue
        username, _, rest = line.partition("[ID:")
        user_id, sep, status = rest.partition("]")
        if not sep:
            continue
        lines.append(
            f"{success_color(' •')} {user_color(username.strip())} {info_color('(ID:')} "
            f"{command_color(user_id.strip())} {info_color(')' + status.strip())}"
        )
    if count == 0:
        lines.append(info_color(" No users currently online"))
    return lines


def _read_user_list(conn: socket.socket) -> str:
    chunks: list[bytes] = []
    conn.settimeout(USERS_WAIT)
    try:
        while True:
            try:
                data = conn.recv(_BUFFER)
            except OSError:
                break
            if not data:
                break
            chunks.append(data)
            if len(data) < _BUFFER:
                break
    finally:
        conn.settimeout(None)
    return b"".join(chunks).decode("utf-8", errors="replace")


def _parse_size(text: str) -> int | None:
    try:
        return int(text.strip())
    except ValueError:
        return None


def _show_listing(user_id: str, files: list[str]) -> None:
    print(header_color("\n📂 Directory Listing for User:"), user_color(user_id))
    print(info_color("-------------------------------------------"))
    for entry in files:
        if entry.startswith("[FOLDER]"):
            print(warning_color("📁"), info_color(entry))
        elif entry.startswith("[FILE]"):
            print(success_color("📄"), info_color(entry))
        elif entry.startswith("==="):
            print(header_color(entry))
        else:
            print(info_color(entry))
    print(info_color("-------------------------------------------\n"))


def handle_message(conn: socket.socket, message: str, registry: TransferRegistry) -> None:
    """Act on one message received from the server."""
    if message.startswith("/FILE_RESPONSE"):
        print(info_color("📥 File transfer starting..."))
        args = message.split(" ", 4)
        usage = "/FILE_RESPONSE <userId> <filename> <fileSize> <storeFilePath>"
        if len(args) != 5:
            print(error_color(f"❌ Invalid arguments. Use: {usage}"))
            return
        size = _parse_size(args[3])
        if size is None:
            print(error_color(f"❌ Invalid fileSize. Use: {usage}"))
            return
        receive_file(conn, args[1], args[2], size, args[4], registry)
    elif message.startswith("/FOLDER_RESPONSE"):
        print(info_color("📥 Folder transfer starting..."))
        args = message.split(" ", 4)
        usage = "/FOLDER_RESPONSE <userId> <folderName> <folderSize> <storeFilePath>"
        if len(args) != 5:
            print(error_color(f"❌ Invalid arguments. Use: {usage}"))
            return
        size = _parse_size(args[3])
        if size is None:
            print(error_color(f"❌ Invalid folderSize. Use: {usage}"))
            return
        receive_folder(conn, args[1], args[2], size, args[4], registry)
    elif message.startswith("PING"):
        try:
            conn.sendall(b"PONG\n")
        except OSError as exc:
            print(error_color("❌ Error responding to heartbeat:"), exc)
    elif message == "USERS:":
        print(header_color("\n👥 Online Users:"))
        print(info_color("-------------------"))
        for line in format_user_list(_read_user_list(conn)):
            print(line)
        print(info_color("-------------------"))
    elif message.startswith("/LOOK_REQUEST"):
        args = message.split(" ", 2)
        if len(args) != 3:
            print(error_color("❌ Invalid arguments. Use: /LOOK_REQUEST <storageFilePath> <userId>"))
            return
        user_id, storage_path = args[1], args[2]
        print(info_color("🔍 Processing directory lookup request from"), user_color(user_id))
        respond_lookup(conn, storage_path, user_id)
    elif message.startswith("/LOOK_RESPONSE"):
        args = message.split(" ", 2)
        if len(args) != 3:
            print(error_color("❌ Invalid arguments. Use: /LOOK_RESPONSE <userId> <files>"))
            return
        _show_listing(args[1], args[2].split(" "))
    elif message.startswith("/DOWNLOAD_REQUEST"):
        args = message.split(" ", 2)
        if len(args) != 3:
            print(error_color("❌ Invalid arguments. Use: /DOWNLOAD_REQUEST <userId> <filename>"))
            return
        user_id, file_path = args[1], args[2]
        print(
            info_color("📤 Download request from"),
            user_color(user_id),
            info_color("for"),
            info_color(file_path),
        )
        respond_download(conn, user_id, file_path, registry)
    elif "has joined the chat" in message:
        print(warning_color("👋 " + message))
    elif "has rejoined the chat" in message:
        print(warning_color("🔄 " + message))
    elif "is now offline" in message:
        print(warning_color("👋 " + message))
    else:
        print(message)


def read_loop(conn: socket.socket, registry: TransferRegistry) -> None:
    """Handle messages from the server until the connection ends."""
    while True:
        try:
            data = conn.recv(_BUFFER)
        except OSError as exc:
            print(error_color("❌ Connection lost:"), exc)
            return
        if not data:
            print(error_color("❌ Connection lost:"), "EOF")
            return
        handle_message(conn, data.decode("utf-8", errors="replace"), registry)


def _close(conn: socket.socket) -> None:
    with contextlib.suppress(OSError):
        conn.shutdown(socket.SHUT_RDWR)
    conn.close()


def handle_command(conn: socket.socket, line: str, registry: TransferRegistry) -> bool:
    """Act on one line typed by the user; return False when the session should end."""
    message = line.strip()
    if message == "exit":
        print(info_color("👋 Goodbye!"))
        _close(conn)
        return False
    if message == "/help":
        print_help()
    elif message.startswith("/sendfile"):
        args = message.split(" ", 2)
        if len(args) != 3:
            print(error_color("❌ Invalid arguments. Use: /sendfile <userId> <filename>"))
        else:
            print(info_color("📤 Sending file to"), user_color(args[1]))
            send_file(conn, args[1], args[2], registry)
    elif message.startswith("/sendfolder"):
        args = message.split(" ", 2)
        if len(args) != 3:
            print(error_color("❌ Invalid arguments. Use: /sendfolder <userId> <folderPath>"))
        else:
            print(info_color("📤 Sending folder to"), user_color(args[1]))
            send_folder(conn, args[1], args[2], registry)
    elif message.startswith("/lookup"):
        args = message.split(" ", 1)
        if len(args) != 2:
            print(error_color("❌ Invalid arguments. Use: /lookup <userId>"))
        else:
            print(info_color("🔍 Looking up files for user"), user_color(args[1]))
            request_lookup(conn, args[1])
    elif message.startswith("/status"):
        print(info_color("👥 Fetching online users..."))
        try:
            conn.sendall(message.encode())
        except OSError as exc:
            print(error_color("❌ Error checking status:"), exc)
    elif message.startswith("/download"):
        args = message.split(" ", 2)
        if len(args) != 3:
            print(error_color("❌ Invalid arguments. Use: /download <userId> <filename>"))
        else:
            print(info_color("📥 Requesting download from"), user_color(args[1]))
            request_download(conn, args[1], args[2])
    elif message.startswith("/transfers"):
        show_transfers(registry)
    elif message.startswith("/pause"):
        args = message.split(" ", 1)
        if len(args) != 2:
            print(error_color("❌ Invalid arguments. Use: /pause <transferId>"))
        else:
            handle_pause(registry, args[1])
    elif message.startswith("/resume"):
        args = message.split(" ", 1)
        if len(args) != 2:
            print(error_color("❌ Invalid arguments. Use: /resume <transferId>"))
        else:
            handle_resume(registry, args[1])
    elif message:
        try:
            conn.sendall(message.encode())
        except OSError as exc:
            print(error_color("❌ Error sending message:"), exc)
            return False
    return True


def write_loop(conn: socket.socket, registry: TransferRegistry, stream: TextIO | None = None) -> None:
    """Read user commands from ``stream`` until exit or end of input."""
    stream = stream if stream is not None else sys.stdin
    while True:
        print(command_color(">>> "), end="", flush=True)
        line = stream.readline()
        if not line:
            return
        if not handle_command(conn, line, registry):
            return