"""Sending, receiving and requesting single files on the client side."""

from __future__ import annotations

import os
import stat
from typing import Any

from itshare.client_folders import _transfer_bytes, send_folder
from itshare.helper import calculate_file_checksum, verify_checksum
from itshare.transfers import (
    CHUNK_SIZE,
    CheckpointedReader,
    CheckpointedWriter,
    Transfer,
    TransferRegistry,
    TransferStatus,
    TransferType,
    parse_transfer_name,
)
from itshare.ui import (
    command_color,
    create_progress_bar,
    error_color,
    info_color,
    success_color,
    user_color,
)


def send_file(
    conn: Any, recipient_id: str, file_path: str | os.PathLike[str], registry: TransferRegistry
) -> Transfer | None:
    """Stream a file to ``recipient_id``; return the transfer, or None if it never started."""
    file_path = os.fspath(file_path)
    try:
        handle = open(file_path, "rb")
    except OSError as exc:
        print(error_color("❌ Error opening file:"), exc)
        return None

    with handle:
        try:
            file_size = os.fstat(handle.fileno()).st_size
        except OSError as exc:
            print(error_color("❌ Error getting file info:"), exc)
            return None
        file_name = os.path.basename(file_path)

        try:
            checksum = calculate_file_checksum(file_path)
        except OSError as exc:
            print(error_color("❌ Error calculating checksum:"), exc)
            return None

        transfer_id = registry.generate_id()
        print(
            f"{info_color('📤')} Sending file '{info_color(file_name)}' to user "
            f"{user_color(recipient_id)} (Transfer ID: {command_color(transfer_id)})..."
        )
        request = f"/FILE_REQUEST {recipient_id} {file_name} {file_size} {checksum} {transfer_id}\n"
        try:
            conn.sendall(request.encode())
        except OSError as exc:
            print(error_color("❌ Error sending file request:"), exc)
            return None

        bar = create_progress_bar(file_size, "📤 Sending file")
        bar.transfer_id = transfer_id
        transfer = Transfer(
            id=transfer_id,
            kind=TransferType.FILE,
            name=file_name,
            size=file_size,
            direction="send",
            recipient=recipient_id,
            path=file_path,
            checksum=checksum,
            file=handle,
            connection=conn,
            progress_bar=bar,
        )
        registry.register(transfer)

        reader = CheckpointedReader(handle, transfer, CHUNK_SIZE)
        if not _transfer_bytes(registry, transfer, reader.read, conn.sendall, "sending file"):
            return transfer

    registry.update_status(transfer_id, TransferStatus.COMPLETED)
    print(f"{success_color(chr(10) + '✅')} File '{success_color(file_name)}' sent successfully!")
    print(info_color("  MD5 Checksum:"), info_color(checksum))
    registry.remove(transfer_id)
    return transfer


def receive_file(
    conn: Any,
    recipient_id: str,
    file_name: str,
    file_size: int,
    store_path: str | os.PathLike[str],
    registry: TransferRegistry,
) -> Transfer | None:
    """Receive ``file_size`` bytes from ``conn`` into ``store_path`` and verify the checksum."""
    has_checksum = "|" in file_name
    file_name, checksum, transfer_id = parse_transfer_name(file_name, registry)
    if has_checksum:
        print(info_color("📋 Original checksum:"), info_color(checksum))

    print(
        f"{info_color('📥')} Receiving file: {info_color(file_name)} "
        f"(Size: {info_color(f'{file_size} bytes')}, Transfer ID: {command_color(transfer_id)})"
    )

    file_path = os.path.join(os.fspath(store_path), file_name)
    try:
        handle = open(file_path, "wb")
    except OSError as exc:
        print(error_color("❌ Error creating file:"), exc)
        return None

    bar = create_progress_bar(file_size, "📥 Receiving file")
    bar.transfer_id = transfer_id
    transfer = Transfer(
        id=transfer_id,
        kind=TransferType.FILE,
        name=file_name,
        size=file_size,
        direction="receive",
        recipient=recipient_id,
        path=file_path,
        checksum=checksum,
        file=handle,
        connection=conn,
        progress_bar=bar,
    )
    registry.register(transfer)

    writer = CheckpointedWriter(handle, transfer, CHUNK_SIZE)
    with handle:
        received = _transfer_bytes(registry, transfer, conn.recv, writer.write, "receiving file")
    if not received:
        return transfer

    if checksum:
        try:
            received_checksum = calculate_file_checksum(file_path)
        except OSError as exc:
            print(error_color("\n❌ Error calculating checksum:"), exc)
        else:
            print(info_color("\n📋 Calculated checksum:"), info_color(received_checksum))
            if verify_checksum(checksum, received_checksum):
                print(success_color("✅ Checksum verification successful! File integrity confirmed."))
            else:
                print(error_color("❌ Checksum verification failed! File may be corrupted."))

    registry.update_status(transfer_id, TransferStatus.COMPLETED)
    print(f"{success_color('✅')} File '{success_color(file_name)}' received successfully!")
    print(info_color("📂 Saved to:"), info_color(file_path))
    registry.remove(transfer_id)
    return transfer


def request_download(conn: Any, recipient_id: str, file_path: str) -> None:
    """Ask ``recipient_id`` to send the file or folder at ``file_path``."""
    try:
        conn.sendall(f"/DOWNLOAD_REQUEST {recipient_id} {file_path}\n".encode())
    except OSError as exc:
        print("Error sending file request:", exc)
        return
    print("File download request sent successfully")


def respond_download(
    conn: Any, user_id: str, file_path: str, registry: TransferRegistry
) -> Transfer | None:
    """Answer a download request by sending the named file or folder to ``user_id``."""
    abs_path = os.path.abspath(os.path.normpath(file_path.strip()))
    try:
        info = os.stat(abs_path)
    except OSError as exc:
        print("error in stat file", exc)
        return None
    if stat.S_ISDIR(info.st_mode):
        return send_folder(conn, user_id, abs_path, registry)
    return send_file(conn, user_id, abs_path, registry)